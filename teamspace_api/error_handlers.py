"""FastAPI exception handlers for the teamspace services.

Maps the TeamspaceException taxonomy to a stable JSON body:

    {"error": {"code": ..., "message": ..., "details": ...}}

Transport failures and unexpected exceptions are logged with their cause
but only a generic message reaches the client.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from teamspace.logging import get_logger
from teamspace_api.exceptions import TeamspaceException, TransportError

logger = get_logger(__name__)


def create_error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create standardized error response structure.

    Args:
        code: Machine-readable error code
        message: Human-readable error message
        details: Optional additional context

    Returns:
        Error response dictionary
    """
    error = {
        "code": code,
        "message": message,
    }
    if details:
        error["details"] = details
    return {"error": error}


async def teamspace_exception_handler(
    request: Request, exc: TeamspaceException
) -> JSONResponse:
    """Handle TeamspaceException and subclasses."""
    if isinstance(exc, TransportError):
        logger.error(
            "transport_error",
            code=exc.error_code,
            path=request.url.path,
            cause=repr(exc.__cause__) if exc.__cause__ else None,
        )
    else:
        logger.warning(
            "api_error",
            code=exc.error_code,
            status=exc.status_code,
            path=request.url.path,
            message=exc.message,
        )

    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code=exc.error_code,
            message=exc.message,
            details=exc.details if exc.details else None,
        ),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body/query validation errors."""
    errors = []
    for error in exc.errors():
        loc = ".".join(str(x) for x in error.get("loc", []))
        errors.append(
            {
                "field": loc,
                "message": error.get("msg", "Invalid value"),
                "type": error.get("type", "value_error"),
            }
        )

    logger.info("request_validation_failed", errors=len(errors), path=request.url.path)

    return JSONResponse(
        status_code=400,
        content=create_error_response(
            code="VALIDATION_ERROR",
            message="Request validation failed",
            details={"errors": errors},
        ),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Convert standard HTTPExceptions to the same format."""
    status_code_map = {
        400: "BAD_REQUEST",
        401: "AUTHENTICATION_FAILED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
        410: "EXPIRED",
        422: "UNPROCESSABLE_ENTITY",
        500: "INTERNAL_ERROR",
    }

    error_code = status_code_map.get(exc.status_code, "ERROR")
    message = str(exc.detail) if exc.detail else "An error occurred"

    if exc.status_code >= 500:
        logger.error("http_error", status=exc.status_code, path=request.url.path)
    else:
        logger.info("http_error", status=exc.status_code, path=request.url.path)

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(code=error_code, message=message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback; return a generic 500."""
    logger.exception("unhandled_exception", path=request.url.path, exc_info=exc)

    return JSONResponse(
        status_code=500,
        content=create_error_response(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred",
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(TeamspaceException, teamspace_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
