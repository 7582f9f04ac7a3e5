"""Core building blocks for Agentur CRM: errors and logging."""

from agentur_crm.core.exceptions import (
    CrmError,
    DatabaseError,
    StoreError,
    RecordNotFoundError,
    RecordAlreadyExistsError,
    BusinessError,
    ValidationError,
    AuthError,
    AuthenticationFailedError,
    UnauthorizedError,
    PermissionDeniedError,
    wrap_exception,
)
from agentur_crm.core.log_setup import (
    setup_logging,
    get_logger,
    bind_actor,
    unbind_actor,
)

__all__ = [
    # Exceptions
    "CrmError",
    "DatabaseError",
    "StoreError",
    "RecordNotFoundError",
    "RecordAlreadyExistsError",
    "BusinessError",
    "ValidationError",
    "AuthError",
    "AuthenticationFailedError",
    "UnauthorizedError",
    "PermissionDeniedError",
    "wrap_exception",
    # Logging
    "setup_logging",
    "get_logger",
    "bind_actor",
    "unbind_actor",
]
