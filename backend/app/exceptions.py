"""
Travel Admin Backend — Custom Exception Hierarchy
===================================================

What:  Application-specific exceptions for the different failure scenarios.
Why:   Custom exceptions enable targeted error handling with the right HTTP
       status code and a user-friendly message, without leaking internals.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) turn them into the
       `{success: false, message, error}` envelope.
Who:   Raised by services and the object store; caught by global handlers.

Exception Hierarchy:
    TravelAdminError (base)          → 500
    ├── ValidationError              → 400 Bad Request (client can fix)
    ├── NotFoundError                → 404 Not Found
    ├── StorageError                 → 400 (asset could not be stored)
    ├── WriteFailedError             → 400 (create/update/delete failed)
    └── DatabaseError                → 500 (read failed, backend unavailable)

StorageError raised while *reclaiming* an old asset never reaches a handler:
the attachment lifecycle manager logs and discards it.
"""

from typing import Any, Dict, Optional


class TravelAdminError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(TravelAdminError):
    """
    Raised when client input fails validation.

    When:    Missing required field, malformed number, negative price,
             over-long string, malformed record id.
    HTTP:    400 Bad Request
    """

    error_code = "validation_error"

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(TravelAdminError):
    """
    Raised when a requested record does not exist.

    SQLAlchemy returns None for missing rows; the record store converts that
    into NotFoundError so the 404 mapping stays out of the store logic.
    """

    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class StorageError(TravelAdminError):
    """
    Raised by the object store client.

    Reasons:
        invalid_input:   format not in the allow-list, empty, or over 5 MiB
                         (rejected before any transfer)
        upload_failed:   the remote host refused or the network failed
        delete_failed:   reclamation of a handle failed
        not_configured:  the backend has no bucket/credentials
    """

    error_code = "storage_error"

    INVALID_INPUT = "invalid_input"
    UPLOAD_FAILED = "upload_failed"
    DELETE_FAILED = "delete_failed"
    NOT_CONFIGURED = "not_configured"

    def __init__(
        self,
        message: str = "Image storage operation failed",
        reason: str = UPLOAD_FAILED,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["reason"] = reason
        super().__init__(message=message, context=ctx)
        self.reason = reason


class WriteFailedError(TravelAdminError):
    """
    Raised when a create/update/delete fails for a reason other than
    validation or a missing record (constraint violation, lost connection).

    HTTP: 400, matching how the service has always reported failed writes.
    """

    error_code = "write_failed"

    def __init__(
        self,
        message: str = "Failed to save changes",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(TravelAdminError):
    """
    Raised when a read fails, including when the database is unreachable.

    The message returned to the client is always generic; details are
    logged server-side only.
    """

    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
