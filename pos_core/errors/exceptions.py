# =============================================================================
# pos_core/errors/exceptions.py
# Custom Exception Hierarchy for the POS data layer
# =============================================================================

from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(Enum):
    """Failure categories every data-access call is normalized into."""
    UNREACHABLE = "unreachable"     # Remote call could not complete
    NOT_FOUND = "not_found"         # Target id missing in the active source
    VALIDATION = "validation"       # Caller data violates an entity invariant
    UNAUTHORIZED = "unauthorized"   # Credential rejected by the backend
    MALFORMED = "malformed"         # Stream payload could not be decoded


class POSError(Exception):
    """
    Base exception for all POS data-layer errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "NET_001")
        details: Additional context as a dictionary
        recoverable: Whether retrying or continuing makes sense
    """

    kind: Optional[ErrorKind] = None

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "POS_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind.value if self.kind else None,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# TRANSPORT EXCEPTIONS
# =============================================================================

class UnreachableError(POSError):
    """Raised when the backend could not be reached (network, timeout, 5xx)"""

    kind = ErrorKind.UNREACHABLE

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            code="NET_001",
            details=details,
            **kwargs,
        )


class UnauthorizedError(POSError):
    """Raised when the backend rejects the attached credential"""

    kind = ErrorKind.UNAUTHORIZED

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if endpoint:
            details["endpoint"] = endpoint

        super().__init__(
            message=message,
            code="AUTH_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


# =============================================================================
# DATA EXCEPTIONS
# =============================================================================

class NotFoundError(POSError):
    """Raised when an order, table or customer id does not exist"""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if entity:
            details["entity"] = entity
        if entity_id is not None:
            details["entity_id"] = entity_id

        super().__init__(
            message=message,
            code="DATA_404",
            details=details,
            **kwargs,
        )


class ValidationError(POSError):
    """Raised when caller-supplied data violates an entity invariant"""

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        if expected:
            details["expected"] = expected
        if actual is not None:
            details["actual"] = actual

        super().__init__(
            message=message,
            code="DATA_001",
            details=details,
            **kwargs,
        )


class MalformedEventError(POSError):
    """Raised when a stream frame cannot be decoded into an event"""

    kind = ErrorKind.MALFORMED

    def __init__(
        self,
        message: str,
        payload: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if payload is not None:
            details["payload"] = payload[:200]

        super().__init__(
            message=message,
            code="STREAM_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(POSError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


ERRORS_BY_KIND = {
    ErrorKind.UNREACHABLE: UnreachableError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.UNAUTHORIZED: UnauthorizedError,
    ErrorKind.MALFORMED: MalformedEventError,
}
