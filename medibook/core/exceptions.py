"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    kind = "ApplicationError"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and structured details."""
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundException(AppException):
    """Referenced clinician, requester, appointment or earning does not exist."""

    kind = "NotFound"

    def __init__(self, message: str = "Resource not found", details: dict[str, Any] | None = None):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, details=details)


class ForbiddenException(AppException):
    """Caller has no relationship to the record that allows the operation."""

    kind = "Forbidden"

    def __init__(self, message: str = "Forbidden", details: dict[str, Any] | None = None):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403, details=details)


class ValidationException(AppException):
    """Missing or malformed required field."""

    kind = "ValidationError"

    def __init__(self, message: str = "Validation error", details: dict[str, Any] | None = None):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422, details=details)


class SlotUnavailableException(AppException):
    """Requested interval collides with an existing booking or published hours."""

    kind = "SlotUnavailable"

    def __init__(
        self,
        message: str = "This time slot is not available",
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)


class InvalidTransitionException(AppException):
    """Requested status change is not an edge of the appointment state machine."""

    kind = "InvalidTransition"

    def __init__(
        self,
        message: str = "Invalid status transition",
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)


class AlreadyTerminalException(AppException):
    """Cancel or reschedule requested on a completed, cancelled or no-show appointment."""

    kind = "AlreadyTerminal"

    def __init__(
        self,
        message: str = "Appointment is already closed",
        details: dict[str, Any] | None = None,
    ):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)


class AlreadyPostedException(AppException):
    """An earning already exists for the appointment.

    Raised by the earnings poster only; callers treat it as a successful no-op.
    """

    kind = "AlreadyPosted"

    def __init__(self, appointment_id: Any):
        """Initialize with 409 status code."""
        super().__init__(
            "Earning already posted for this appointment",
            status_code=409,
            details={"appointment_id": str(appointment_id)},
        )


# Business errors the scheduling facade converts into a failed result
SCHEDULING_ERRORS: tuple[type[AppException], ...] = (
    ValidationException,
    NotFoundException,
    ForbiddenException,
    SlotUnavailableException,
    InvalidTransitionException,
    AlreadyTerminalException,
)
