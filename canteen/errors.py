"""
Service Error Taxonomy

Every failure the order service reports to clients is a ServiceError.
Each error carries the HTTP status it maps to, a short machine-readable
``error`` label and optionally a human ``message`` and diagnostic
``details``. The API layer renders them as::

    {"error": "...", "message": "...", "details": "..."}

omitting the optional keys when they are not set.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code: int = 500
    default_error: str = "Server error"

    def __init__(
        self,
        error: Optional[str] = None,
        message: Optional[str] = None,
        details: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.error = error or self.default_error
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message or error or self.default_error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON error body."""
        body: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            body["details"] = self.details
        if self.message is not None:
            body["message"] = self.message
        return body


class ConflictError(ServiceError):
    """A unique field is already taken."""
    status_code = 400
    default_error = "Conflict"


class NotFoundError(ServiceError):
    """The referenced account or order does not exist."""
    status_code = 404
    default_error = "Not found"


class InvalidCredentialError(ServiceError):
    """Password verification failed."""
    status_code = 400
    default_error = "Invalid password"


class UnexpectedError(ServiceError):
    """Any storage or transport failure not otherwise classified."""
    status_code = 500
    default_error = "Server error"

    @classmethod
    def wrap(cls, error: str, exc: BaseException) -> "UnexpectedError":
        """Build an UnexpectedError labelled ``error`` around ``exc``."""
        return cls(error, details=str(exc))
