"""
Smart Mobility Backend - Custom Exception Hierarchy
====================================================

What:  Application-specific exceptions for the error scenarios of the service.
How:   Each exception carries a message and an optional context dict.
       Global exception handlers (registered in main.py) map them to HTTP
       status codes and structured JSON error responses.
Who:   Raised by services, stores, auth strategies and middleware.

Exception Hierarchy:
    MobilityError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── StorageError             → 500 Internal Server Error (never retried)
    ├── UpstreamServiceError     → 503 Service Unavailable
    └── CircuitBreakerOpenError  → 503 Service Unavailable (circuit open)

None of these trigger an automatic retry inside the core: repeating a failed
operation fails the same way.
"""

from typing import Any, Dict, Optional


class MobilityError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only for 4xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(MobilityError):
    """
    Raised when client input fails a business validation rule.

    When:  Missing origin/destination coordinates, non-numeric or
           out-of-range coordinates, missing registration fields,
           invalid pagination values.

    FastAPI still answers schema-level problems with its own 422; this error
    covers the rules the services enforce themselves.
    """

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


class AuthenticationError(MobilityError):
    """Raised when the caller cannot be identified (missing/invalid credentials)."""

    def __init__(
        self,
        message: str = "Not authenticated",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(MobilityError):
    """Raised when an operation is not allowed in the current deployment or for the caller."""

    def __init__(
        self,
        message: str = "This operation is not allowed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(MobilityError):
    """
    Raised when a requested resource does not exist.

    For frequent routes this also covers routes that exist but are inactive
    or owned by a different user: the caller must not be able to tell the
    difference.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class ConflictError(MobilityError):
    """Raised when a unique value (e.g. an email address) is already taken."""

    def __init__(
        self,
        message: str = "The resource already exists",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class RateLimitExceededError(MobilityError):
    """
    Raised when a client exceeds the per-IP limit on credential endpoints.

    Response includes:
        - retry_after: Seconds until the oldest request leaves the window
        - Retry-After header for HTTP-compliant clients
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class StorageError(MobilityError):
    """
    Raised when the persistence layer fails.

    Security Note:
        The message returned to the client is always generic. The SQL error,
        constraint names and parameters are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UpstreamServiceError(MobilityError):
    """Raised when an upstream identity provider fails after all retries."""

    def __init__(
        self,
        message: str = "The identity provider is temporarily unavailable",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(MobilityError):
    """
    Raised when the circuit breaker guarding an upstream call is OPEN.

    How circuit breaker works:
        CLOSED (normal) → failures increment counter
        → After N failures → OPEN (reject all calls for recovery_timeout)
        → After recovery_timeout → HALF-OPEN (allow one test call)
        → Test succeeds → CLOSED; test fails → OPEN again
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "Sign-in provider is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time
