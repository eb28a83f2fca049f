"""
Error taxonomy for the periodization service.

Every failure in the builder, repository and objective tracker raises one of
these. The API layer maps each kind to an HTTP status code.
"""

from typing import Any, Dict, Optional


class PeriodizationError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    error_type: str = "Periodization Error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.error_type,
            "message": self.message,
            "details": self.details or None,
        }


class ValidationError(PeriodizationError):
    """Malformed input to a builder or tracker operation."""

    status_code = 400
    error_type = "Validation Error"


class NotFoundError(PeriodizationError):
    """A referenced program, exercise, objective or technique does not exist."""

    status_code = 404
    error_type = "Not Found"


class PermissionDeniedError(PeriodizationError):
    """The caller does not own the resource."""

    status_code = 403
    error_type = "Forbidden"


class ConflictError(PeriodizationError):
    """Duplicate position/week/association, stale version, or closed objective."""

    status_code = 409
    error_type = "Conflict"


class StorageError(PeriodizationError):
    """
    Underlying store failure.

    The original exception is kept on ``cause`` for logging; ``message`` is
    what callers see and never includes store internals.
    """

    status_code = 500
    error_type = "Storage Error"

    def __init__(
        self,
        message: str = "The storage backend failed to complete the request",
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.cause = cause
