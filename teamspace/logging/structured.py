"""structlog setup for the teamspace services.

Log entries carry the service name plus whatever request context the
caller bound (request, acting user, workspace). Context lives in
structlog's contextvars store, so each thread or task sees only its own.
"""

import logging
import sys
from typing import Optional
from uuid import UUID

import structlog
from structlog.contextvars import (
    bind_contextvars,
    clear_contextvars,
    merge_contextvars,
)
from structlog.types import EventDict, WrappedLogger

SERVICE_NAME = "teamspace"


def add_service_name(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _renderers(json_format: bool) -> list:
    if json_format:
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=False)]


def configure_structlog(json_format: bool = True, log_level: str = "INFO") -> None:
    """Route structlog through stdlib logging at ``log_level``.

    JSON lines in production, readable console output otherwise.
    """
    level = logging.getLevelName(log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            add_service_name,
            *_renderers(json_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(
    request_id: Optional[str] = None,
    user_id: Optional[UUID] = None,
    workspace_id: Optional[UUID] = None,
) -> None:
    """Attach request identifiers to every entry logged from this context."""
    values = {
        "request_id": request_id,
        "user_id": str(user_id) if user_id else None,
        "workspace_id": str(workspace_id) if workspace_id else None,
    }
    bind_contextvars(**{key: value for key, value in values.items() if value})


def clear_context() -> None:
    clear_contextvars()
