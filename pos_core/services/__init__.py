"""
Services Module
Shared result container and base class for POS services.
"""

from .base_service import BaseService, ServiceResult

__all__ = ["BaseService", "ServiceResult"]
