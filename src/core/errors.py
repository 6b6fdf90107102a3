"""Domain error taxonomy and classification utilities."""

from enum import Enum

from pydantic import BaseModel


class ChomperError(Exception):
    """Base class for all domain errors."""


class NotFoundError(ChomperError, LookupError):
    """Entity is absent or not owned by the caller.

    The message never tells the two cases apart, so existence is not leaked
    to a different owner.
    """

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ValidationError(ChomperError, ValueError):
    """Malformed input such as recurrence parameters outside their range."""


class TransientStoreError(ChomperError):
    """I/O failure against the task store."""


class DispatchError(ChomperError):
    """Push transport failure for a single subscription.

    A stale subscription (the push service answered 404 or 410) is removed
    instead of being retried.
    """

    def __init__(self, message: str, *, status_code: int | None = None, stale: bool = False) -> None:
        self.status_code = status_code
        self.stale = stale
        super().__init__(message)


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_VALIDATION = "ERR_VALIDATION"
    ERR_INVALID_RECURRENCE_PATTERN = "ERR_INVALID_RECURRENCE_PATTERN"
    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    ERR_DISPATCH_FAILED = "ERR_DISPATCH_FAILED"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


def classify_error(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised by a service call

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, NotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message=f"That {exception.entity.lower()} could not be found.",
            suggestion="Refresh your list and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, ValidationError):
        error_str = str(exception).lower()
        if "recurr" in error_str or "day_of" in error_str or "pattern" in error_str:
            return ErrorResponse(
                code=ErrorCode.ERR_INVALID_RECURRENCE_PATTERN,
                message=str(exception),
                suggestion="Use 'daily', 'weekly' with a weekday (0-6), or 'monthly' with a day between 1 and 28.",
                severity=ErrorSeverity.LOW,
            )
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION,
            message=str(exception),
            suggestion="Check the submitted values and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, TransientStoreError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORE_UNAVAILABLE,
            message="Your data could not be saved right now.",
            suggestion="Please try again in a moment.",
            severity=ErrorSeverity.HIGH,
        )

    if isinstance(exception, DispatchError):
        return ErrorResponse(
            code=ErrorCode.ERR_DISPATCH_FAILED,
            message="The notification could not be delivered.",
            suggestion="Re-enable notifications on this device.",
            severity=ErrorSeverity.MEDIUM,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
