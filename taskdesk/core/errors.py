"""Typed errors raised by the task core and their user-facing classification."""

from enum import Enum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    # Access errors
    ERR_UNAUTHORIZED = "ERR_UNAUTHORIZED"
    ERR_FORBIDDEN = "ERR_FORBIDDEN"

    # Lookup errors
    ERR_NOT_FOUND = "ERR_NOT_FOUND"

    # Task rule errors
    ERR_CHECKLIST_INCOMPLETE = "ERR_CHECKLIST_INCOMPLETE"
    ERR_DUPLICATE_TITLE = "ERR_DUPLICATE_TITLE"
    ERR_VALIDATION = "ERR_VALIDATION"

    # Store errors
    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    ERR_CONCURRENT_UPDATE = "ERR_CONCURRENT_UPDATE"
    ERR_SWEEP_INCOMPLETE = "ERR_SWEEP_INCOMPLETE"

    # Generic errors
    ERR_UNKNOWN = "ERR_UNKNOWN"


class TaskdeskError(Exception):
    """Base class for every error the task core raises on purpose."""

    code: str = ErrorCode.ERR_UNKNOWN


class UnauthorizedError(TaskdeskError):
    """Actor is neither the task owner nor an elevated role."""

    code = ErrorCode.ERR_UNAUTHORIZED


class ForbiddenError(TaskdeskError):
    """Actor tried to touch a record that belongs to someone else."""

    code = ErrorCode.ERR_FORBIDDEN


class NotFoundError(TaskdeskError):
    """Referenced task, checklist item or notification does not exist."""

    code = ErrorCode.ERR_NOT_FOUND


class ChecklistIncompleteError(TaskdeskError):
    """Completion blocked by at least one unchecked checklist item."""

    code = ErrorCode.ERR_CHECKLIST_INCOMPLETE


class DuplicateTitleError(TaskdeskError):
    """Checklist already has an item with the same title (case-insensitive)."""

    code = ErrorCode.ERR_DUPLICATE_TITLE


class TaskValidationError(TaskdeskError):
    """Malformed date, frequency, status or range input."""

    code = ErrorCode.ERR_VALIDATION


class StoreUnavailableError(TaskdeskError):
    """The persistence layer failed or timed out."""

    code = ErrorCode.ERR_STORE_UNAVAILABLE


class ConcurrentUpdateError(StoreUnavailableError):
    """A compare-and-set kept losing to concurrent writers."""

    code = ErrorCode.ERR_CONCURRENT_UPDATE


class SweepIncompleteError(StoreUnavailableError):
    """Overdue sweep could not emit alerts for some tasks; their flags were rolled back."""

    code = ErrorCode.ERR_SWEEP_INCOMPLETE

    def __init__(self, message: str, *, flagged_count: int, failed_task_ids: list[str]) -> None:
        super().__init__(message)
        self.flagged_count = flagged_count
        self.failed_task_ids = failed_task_ids


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_RESPONSES: dict[str, tuple[str, str, ErrorSeverity]] = {
    ErrorCode.ERR_UNAUTHORIZED: (
        "You don't have permission to modify this task.",
        "Only the assigned user or an admin can change it.",
        ErrorSeverity.MEDIUM,
    ),
    ErrorCode.ERR_FORBIDDEN: (
        "That item doesn't belong to you.",
        "Refresh your notifications and try again.",
        ErrorSeverity.MEDIUM,
    ),
    ErrorCode.ERR_NOT_FOUND: (
        "The requested item no longer exists.",
        "It may have been deleted. Refresh the page.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.ERR_CHECKLIST_INCOMPLETE: (
        "The task can't be completed while checklist items are pending.",
        "Complete every checklist item first.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.ERR_DUPLICATE_TITLE: (
        "A checklist item with that name already exists.",
        "Use a different title.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.ERR_VALIDATION: (
        "Some of the data is invalid.",
        "Check dates (YYYY-MM-DD), frequency and status values.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.ERR_CONCURRENT_UPDATE: (
        "Someone else changed this task at the same time.",
        "Reload the task and try again.",
        ErrorSeverity.MEDIUM,
    ),
    ErrorCode.ERR_SWEEP_INCOMPLETE: (
        "Some overdue alerts could not be delivered.",
        "The next sweep will retry them.",
        ErrorSeverity.HIGH,
    ),
    ErrorCode.ERR_STORE_UNAVAILABLE: (
        "The database is not responding.",
        "Please try again in a moment.",
        ErrorSeverity.HIGH,
    ),
}


def to_error_response(exception: Exception) -> ErrorResponse:
    """Convert an exception into a structured response for the CRUD layer.

    Domain errors keep their own message so the user sees the concrete reason;
    anything else is reported as unknown without leaking internals.

    Args:
        exception: The exception raised by a service call

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, TaskdeskError) and exception.code in _RESPONSES:
        default_message, suggestion, severity = _RESPONSES[exception.code]
        return ErrorResponse(
            code=exception.code,
            message=str(exception) or default_message,
            suggestion=suggestion,
            severity=severity,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
