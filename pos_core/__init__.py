# =============================================================================
# pos_core/__init__.py
# Dual-mode data layer for the restaurant point-of-sale client
# =============================================================================
"""
pos_core - orders, tables and customers served from the backend when it is
reachable and from an in-memory store when it is not.

Entry points:
    pos_core.api.load_settings / APIConfigManager   - build a data service
    pos_core.offline.UnifiedDataService             - the data API
    pos_core.logging.setup_logging                  - configure logging
"""

__version__ = "1.0.0"
