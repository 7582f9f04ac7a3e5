"""Agentur CRM Exception Hierarchy.

Provides structured error handling with context preservation
and proper HTTP status code mapping.

Messages carried by these exceptions are user-facing (German). The
underlying cause is kept on ``cause`` for logging and is never rendered
to end users.
"""

from __future__ import annotations

from typing import Any


class CrmError(Exception):
    """Base exception for all Agentur CRM errors.

    All custom exceptions should inherit from this class.
    Provides:
    - Structured error context
    - HTTP status code mapping
    - Logging-friendly representation
    """

    status_code: int = 500
    error_code: str = "CRM_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Additional context for debugging
            cause: Original exception if wrapping
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary.

        The wrapped cause is left out on purpose: clients only ever see
        the generic message.
        """
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """String representation for logging."""
        parts = [f"{self.error_code}: {self.message}"]
        if self.details:
            parts.append(f"details={self.details}")
        if self.cause:
            parts.append(f"cause={self.cause}")
        return " | ".join(parts)


# =============================================================================
# Database Errors
# =============================================================================


class DatabaseError(CrmError):
    """Base class for database-related errors."""

    status_code = 503
    error_code = "DATABASE_ERROR"


class StoreError(DatabaseError):
    """A read or write against the record store failed.

    Raised at the store boundary after the session was rolled back.
    """

    error_code = "STORE_ERROR"


class RecordNotFoundError(DatabaseError):
    """Requested record not found."""

    status_code = 404
    error_code = "RECORD_NOT_FOUND"


class RecordAlreadyExistsError(DatabaseError):
    """Record with given identifier already exists."""

    status_code = 409
    error_code = "RECORD_ALREADY_EXISTS"


# =============================================================================
# Business Logic Errors
# =============================================================================


class BusinessError(CrmError):
    """Base class for business logic errors."""

    status_code = 400
    error_code = "BUSINESS_ERROR"


class ValidationError(BusinessError):
    """Input validation failed before any write was attempted."""

    error_code = "VALIDATION_ERROR"


# =============================================================================
# Authentication/Authorization Errors
# =============================================================================


class AuthError(CrmError):
    """Base class for authentication/authorization errors."""

    status_code = 401
    error_code = "AUTH_ERROR"


class AuthenticationFailedError(AuthError):
    """Login was rejected (unknown email, wrong password, inactive account)."""

    error_code = "AUTHENTICATION_FAILED"


class UnauthorizedError(AuthError):
    """No user is signed in."""

    error_code = "UNAUTHORIZED"


class PermissionDeniedError(AuthError):
    """Signed-in user lacks the capability for this action."""

    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(
        self,
        message: str = "Keine Berechtigung für diese Aktion.",
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    exc: Exception,
    wrapper_class: type[CrmError] = CrmError,
    message: str | None = None,
    **details: Any,
) -> CrmError:
    """Wrap a generic exception in a CrmError.

    Args:
        exc: Original exception to wrap
        wrapper_class: CrmError subclass to use
        message: Override message (defaults to str(exc))
        **details: Additional context details

    Returns:
        Wrapped CrmError instance
    """
    return wrapper_class(
        message or str(exc),
        details=details or None,
        cause=exc,
    )
