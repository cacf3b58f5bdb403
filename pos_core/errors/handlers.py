# =============================================================================
# pos_core/errors/handlers.py
# Error Handling Utilities for the POS data layer
# =============================================================================

from __future__ import annotations
import traceback
from typing import Any, Dict, Optional

from pos_core.logging import get_logger
from .exceptions import ERRORS_BY_KIND, ErrorKind, POSError, UnreachableError

logger = get_logger(__name__)


def handle_error(
    error: Exception,
    operation: Optional[str] = None,
    log_error: bool = True,
) -> Dict[str, Any]:
    """
    Centralized error logging.

    Domain errors (not found, validation) are expected traffic and log at
    DEBUG; transport and credential errors log at WARNING; anything that is
    not a POSError logs at ERROR with its traceback.

    Args:
        error: The exception to handle
        operation: Name of the operation that failed
        log_error: Whether to log the error

    Returns:
        Dictionary form of the error
    """
    prefix = f"{operation}: " if operation else ""

    if isinstance(error, POSError):
        payload = error.to_dict()
        if log_error:
            if error.kind in (ErrorKind.NOT_FOUND, ErrorKind.VALIDATION):
                logger.debug(f"{prefix}[{error.code}] {error.message}")
            else:
                logger.warning(
                    f"{prefix}[{error.code}] {error.message}",
                    extra={"details": error.details},
                )
        return payload

    payload = {
        "error_type": error.__class__.__name__,
        "kind": None,
        "code": "UNKNOWN",
        "message": str(error),
        "details": {"traceback": traceback.format_exc()},
        "recoverable": True,
    }
    if log_error:
        logger.error(f"{prefix}{error}", exc_info=True)
    return payload


def error_from_result(result: Any) -> POSError:
    """
    Rebuild the typed exception carried by a failed ServiceResult.

    Unknown error codes are treated as the backend being unreachable, since
    the caller cannot tell a broken contract apart from a broken link.
    """
    try:
        kind = ErrorKind(result.error_code)
    except ValueError:
        kind = ErrorKind.UNREACHABLE

    error_cls = ERRORS_BY_KIND.get(kind, UnreachableError)
    return error_cls(
        result.error or "Request failed",
        details=dict(result.metadata or {}),
    )
