# =============================================================================
# pos_core/errors/__init__.py
# Centralized Error Handling for the POS data layer
# =============================================================================

from .exceptions import (
    ErrorKind,
    POSError,
    UnreachableError,
    UnauthorizedError,
    NotFoundError,
    ValidationError,
    MalformedEventError,
    ConfigurationError,
)

from .handlers import (
    handle_error,
    error_from_result,
)

__all__ = [
    # Exceptions
    "ErrorKind",
    "POSError",
    "UnreachableError",
    "UnauthorizedError",
    "NotFoundError",
    "ValidationError",
    "MalformedEventError",
    "ConfigurationError",
    # Handlers
    "handle_error",
    "error_from_result",
]
