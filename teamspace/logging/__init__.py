"""Structured logging for the teamspace services."""

from teamspace.config import LOG_JSON, LOG_LEVEL
from teamspace.logging.structured import (
    configure_structlog,
    get_logger,
    bind_context,
    clear_context,
)

# Sensible defaults; applications may call configure_structlog() again
configure_structlog(json_format=LOG_JSON, log_level=LOG_LEVEL)

__all__ = [
    "configure_structlog",
    "get_logger",
    "bind_context",
    "clear_context",
]
