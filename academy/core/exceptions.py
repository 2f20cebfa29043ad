"""Service exceptions.

Every exception carries the HTTP status it is rendered with, so the API
layer maps the whole hierarchy with a single handler.
"""


class AcademyException(Exception):
    """Base exception for all academy service errors."""

    status_code: int = 500

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialize exception with message and optional details.

        Args:
            message: Error message returned to the caller
            details: Additional error details, logged but never returned
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> dict[str, str]:
        """Body of the error response."""
        return {"error": self.message}


class ValidationException(AcademyException):
    """Request data failed validation."""

    status_code = 400


class NoRecipientsError(ValidationException):
    """Notification target resolution produced an empty set."""

    def __init__(self, message: str = "No target users found", details: dict | None = None) -> None:
        super().__init__(message, details)


class StorageException(AcademyException):
    """Database operation failed."""


class DeliveryFailedError(AcademyException):
    """Forward destination rejected the delivery or could not be reached."""

    status_code = 502

    def __init__(
        self,
        message: str,
        response_status: int | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.response_status = response_status


class UnauthorizedException(AcademyException):
    """Caller is not identified or lacks the service role."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: dict | None = None) -> None:
        super().__init__(message, details)


class NotFoundException(AcademyException):
    """Resource not found, or not visible to the caller."""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: dict | None = None) -> None:
        super().__init__(message, details)
