"""Standard exception classes for the teamspace services.

All custom exceptions inherit from TeamspaceException and include:
- message: Human-readable error message (stable per kind)
- error_code: Machine-readable error code (e.g., "NOT_FOUND")
- details: Optional dictionary with additional context

Domain rule violations (validation, not found, conflict, forbidden,
expired) are never worth retrying. Transport failures (storage, delivery
provider) may be; their public message never carries the underlying
error text, which stays on ``__cause__`` and in the logs.
"""

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session


class TeamspaceException(Exception):
    """Base exception for all teamspace errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for client handling
        details: Optional dictionary with additional error context
        status_code: HTTP status code (set by subclasses)
    """

    status_code: int = 500
    default_error_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred"
    retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        result = {
            "code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Domain errors
# =============================================================================


class ValidationError(TeamspaceException):
    """Bad input shape or format (HTTP 400). Caller's fault."""

    status_code = 400
    default_error_code = "VALIDATION_ERROR"
    default_message = "Validation failed"


class NotFoundError(TeamspaceException):
    """Referenced entity does not exist (HTTP 404)."""

    status_code = 404
    default_error_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(TeamspaceException):
    """State-uniqueness violation or already-consumed resource (HTTP 409)."""

    status_code = 409
    default_error_code = "CONFLICT"
    default_message = "Resource conflict"


class RetryLimitExceededError(ConflictError):
    """A notification has used all of its retries (HTTP 409)."""

    default_error_code = "RETRY_LIMIT_EXCEEDED"
    default_message = "Notification has no retries left"


class ForbiddenOperationError(TeamspaceException):
    """Structurally disallowed operation (HTTP 403).

    For example removing the workspace owner, or acting without the
    required role.
    """

    status_code = 403
    default_error_code = "FORBIDDEN"
    default_message = "Operation not allowed"


class ExpiredError(TeamspaceException):
    """Invite past its TTL (HTTP 410)."""

    status_code = 410
    default_error_code = "EXPIRED"
    default_message = "Invite has expired"


# =============================================================================
# Transport errors
# =============================================================================


class TransportError(TeamspaceException):
    """Storage or provider failure (HTTP 503). Safe to retry."""

    status_code = 503
    default_error_code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"
    retryable = True


class StorageError(TransportError):
    """The database could not complete the operation."""

    default_error_code = "STORAGE_UNAVAILABLE"
    default_message = "Storage temporarily unavailable"


class DeliveryTransportError(TransportError):
    """The delivery provider could not be reached."""

    default_error_code = "DELIVERY_UNAVAILABLE"
    default_message = "Delivery provider temporarily unavailable"


def is_retryable(exc: BaseException) -> bool:
    """Whether a caller may retry the operation that raised ``exc``."""
    return isinstance(exc, TeamspaceException) and exc.retryable


@contextmanager
def storage_errors(
    session: Session,
    conflict_message: str = "Resource conflict",
) -> Iterator[None]:
    """Translate SQLAlchemy failures into the teamspace taxonomy.

    Unique-constraint violations become ConflictError; any other database
    error becomes StorageError. The session is rolled back either way.
    """
    try:
        yield
    except IntegrityError as e:
        session.rollback()
        raise ConflictError(conflict_message) from e
    except SQLAlchemyError as e:
        session.rollback()
        raise StorageError() from e
