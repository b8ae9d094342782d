"""
MailTrack Backend: Custom Exception Hierarchy
===============================================

What:  Application-specific exceptions for the error scenarios of the API.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) map them to
       HTTP status codes and structured JSON error bodies.
Who:   Raised by services, dependencies and routes; caught by global handlers.

Exception Hierarchy:
    MailTrackError (base)
    ├── ValidationError          → 400 Bad Request
    │   ├── DuplicateError       → 400 (unique username / code / QR)
    │   └── DeletionBlockedError → 400 (department still referenced)
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── FileStorageError         → 500 Internal Server Error
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, Optional


class MailTrackError(Exception):
    """
    Base exception for all MailTrack application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response).
                  Falls back to the class's `default_message`.
        context:  Additional debug info. Returned as `details` only for 4xx
                  errors; server errors log it and keep it out of the body.
    """

    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.context = dict(context or {})
        super().__init__(self.message)


class ValidationError(MailTrackError):
    """
    Client input broke a business rule (400). `field` names the offending
    input and is echoed in `details.field`.
    """

    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.field = field
        if field:
            self.context["field"] = field


class DuplicateError(ValidationError):
    """A unique value (username, department code, courier code, QR code) is taken."""


class DeletionBlockedError(ValidationError):
    """A department still has letters; the message says how many."""

    def __init__(self, message: str, blocking_count: int = 0):
        super().__init__(message, context={"blocking_count": blocking_count})
        self.blocking_count = blocking_count


class AuthenticationError(MailTrackError):
    """Missing, malformed, invalid or expired credentials. Answered with 401 and `WWW-Authenticate: Bearer`."""

    default_message = "Invalid or expired token"


class PermissionDeniedError(MailTrackError):
    default_message = "Access denied. Super admin privileges required."


class NotFoundError(MailTrackError):
    """
    A looked-up row or file does not exist (404).

    Services turn SQLAlchemy's None into this, so routes stay free of
    status logic. Without an explicit `message`, one is built from
    `resource` and `resource_id`.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
    ):
        if message is None:
            message = (
                f"{resource} with ID '{resource_id}' was not found"
                if resource_id
                else f"The requested {resource} was not found"
            )
        context: Dict[str, Any] = {"resource": resource}
        if resource_id:
            context["resource_id"] = resource_id
        super().__init__(message, context)


class FileStorageError(MailTrackError):
    """Writing or sniffing a letter image failed (500). OS details stay in the log."""

    default_message = "File storage operation failed"


class DatabaseError(MailTrackError):
    default_message = "A database error occurred. Please try again later."
