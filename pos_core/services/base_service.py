# =============================================================================
# pos_core/services/base_service.py
# Base Service Class with Common Functionality
# =============================================================================

from __future__ import annotations
from abc import ABC
from typing import Optional, Dict, Any
from dataclasses import dataclass

from pos_core.logging import get_logger, LogContext
from pos_core.errors import ErrorKind


@dataclass
class ServiceResult:
    """
    Standard result container for data-source operations.

    The remote connector returns one of these for every call instead of
    raising, so callers decide on a typed value: ``error_code`` holds an
    ``ErrorKind`` value whenever ``success`` is False.
    """
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def kind(self) -> Optional[ErrorKind]:
        """ErrorKind of a failed result, None on success or unknown codes."""
        if self.success or self.error_code is None:
            return None
        try:
            return ErrorKind(self.error_code)
        except ValueError:
            return None

    @property
    def is_unreachable(self) -> bool:
        return self.kind is ErrorKind.UNREACHABLE

    @classmethod
    def ok(cls, data: Any = None, metadata: Dict[str, Any] = None) -> ServiceResult:
        """Create a successful result"""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(
        cls,
        error: str,
        error_code: str = ErrorKind.UNREACHABLE.value,
        metadata: Dict[str, Any] = None
    ) -> ServiceResult:
        """Create a failed result"""
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            metadata=metadata,
        )


class BaseService(ABC):
    """
    Abstract base class for all services.

    Provides a per-class logger and timed operation logging.

    Usage:
        class MyService(BaseService):
            async def do_something(self):
                with self.log_operation("Doing something"):
                    ...
    """

    def __init__(self):
        self.logger = get_logger(self.__class__.__name__)

    def log_operation(self, operation: str, level: Optional[int] = None) -> LogContext:
        """
        Create a logging context for an operation.

        Usage:
            with self.log_operation("Refreshing tables"):
                ...
        """
        if level is None:
            return LogContext(self.logger, operation)
        return LogContext(self.logger, operation, level=level)
