"""
AuthGate — Custom Exception Hierarchy
======================================

What:  Application-specific exceptions carrying the HTTP status they map to.
Why:   Services raise meaningful errors without knowing about HTTP; the global
       error handler (registered in main.py) turns them into `{"msg": ...}`
       responses with the right status code.
Who:   Raised by services and routes; caught by global handlers.

Exception Hierarchy:
    AuthGateError (base)          → 500 Internal Server Error
    ├── BadRequestError           → 400 Bad Request (client can fix)
    ├── UnauthenticatedError      → 401 Unauthorized
    ├── NotFoundError             → 404 Not Found
    └── DatabaseError             → 500 Internal Server Error (generic message)
"""

from typing import Any, Dict, Optional

GENERIC_ERROR_MESSAGE = "Something went wrong try again later"


class AuthGateError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:     User-facing error description (safe to return in API response)
        status_code: HTTP status the error handler responds with
        context:     Additional debug info (logged but NOT returned to client)
    """

    status_code: int = 500

    def __init__(
        self,
        message: str = GENERIC_ERROR_MESSAGE,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class BadRequestError(AuthGateError):
    """Raised when client input is missing or cannot be accepted."""

    status_code = 400


class UnauthenticatedError(AuthGateError):
    """Raised when credentials or tokens are missing, wrong, or expired."""

    status_code = 401


class NotFoundError(AuthGateError):
    """
    Raised when a requested resource does not exist.

    The message names the resource, optionally with its identifier.
    """

    status_code = 404

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"No {resource} found"
        if resource_id:
            message = f"No {resource} found with id {resource_id}"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DatabaseError(AuthGateError):
    """
    Raised when database operations fail unexpectedly.

    Security Note:
        The message returned to the client is always generic. Detailed error
        info (SQL, constraint name) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
