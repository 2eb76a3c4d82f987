from __future__ import annotations
from typing import Any, Optional


class AppError(Exception):
    """
    Base class for errors that map onto an HTTP response.
    `details` is rendered next to the message (field names, ids, ...).
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Conflict"


class DependencyError(AppError):
    """Store or provider failure. Details are only exposed in development."""

    status_code = 500
    default_message = "Internal server error"


class DuplicateRecordError(ConflictError):
    default_message = "Duplicate record"


class EmailDeliveryError(DependencyError):
    default_message = "Email delivery failed"
