"""
Backend API Module
Connector for the restaurant POS backend plus settings and wiring
"""

from .base_connector import BaseAPIConnector, APIConfig
from .pos_connector import POSAPIConnector
from .config_manager import APIConfigManager, POSSettings, load_settings

__all__ = [
    # Base classes
    "BaseAPIConnector",
    "APIConfig",

    # POS backend
    "POSAPIConnector",

    # Configuration
    "APIConfigManager",
    "POSSettings",
    "load_settings",
]
