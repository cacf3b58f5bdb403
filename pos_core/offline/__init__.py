# =============================================================================
# pos_core/offline/__init__.py
# Dual-Mode Data Layer for the POS client
# =============================================================================
"""
Dual-Mode Data Module

The POS screens work identically whether the backend is reachable or not.
At startup the AvailabilityProber picks a mode; every operation is then
served by the backend (remote) or by the in-memory EntityStore (fallback).

Architecture:
------------
┌─────────────────────────────────────────────────────────────────┐
│                      DUAL-MODE DATA LAYER                        │
├─────────────────────────────────────────────────────────────────┤
│                                                                  │
│   ┌──────────────────────────────────────────────────────────┐  │
│   │                 UnifiedDataService                        │  │
│   │         (Single API - screens use this only)              │  │
│   └──────────────────────────────────────────────────────────┘  │
│              │                 │                  ▲              │
│              ▼                 ▼                  │              │
│   ┌──────────────────┐  ┌─────────────┐  ┌──────────────────┐  │
│   │AvailabilityProber│  │ EntityStore │  │LiveUpdateSupervsr│  │
│   │(Remote/Fallback) │  │ (In-memory) │  │ (Backoff/retry)  │  │
│   └──────────────────┘  └─────────────┘  └──────────────────┘  │
│              │                                    ▲              │
│              ▼                                    │              │
│   ┌──────────────────┐               ┌──────────────────┐      │
│   │  POSAPIConnector │               │EventStreamClient │      │
│   │   (REST, httpx)  │               │ (kitchen/stream) │      │
│   └──────────────────┘               └──────────────────┘      │
└─────────────────────────────────────────────────────────────────┘

Usage:
------
from pos_core.api import APIConfigManager, load_settings

service = APIConfigManager(load_settings()).create_data_service()
await service.start()

orders = await service.list_orders(status="pending")
print(service.mode)          # OperationMode.REMOTE / FALLBACK
print(service.get_status())  # Probe, stream and store details
"""

from pos_core.offline.models import (
    OperationMode,
    EntityKind,
    OrderSource,
    OrderStatus,
    TableStatus,
    PaymentMethod,
    EventType,
    OrderItem,
    TaxLine,
    Order,
    OrderDraft,
    Table,
    Customer,
    CustomerDraft,
    StreamEvent,
)

from pos_core.offline.entity_store import EntityStore

from pos_core.offline.connection_manager import (
    AvailabilityProber,
    ConnectionState,
)

from pos_core.offline.config import OfflineConfig
from pos_core.offline.context import DataContext

from pos_core.offline.event_stream import (
    EventStreamClient,
    StreamHandle,
)

from pos_core.offline.live_updates import (
    LiveUpdateSupervisor,
    LiveUpdateState,
)

from pos_core.offline.unified_data_service import (
    UnifiedDataService,
    StoreChange,
)

__all__ = [
    # Models
    "OperationMode",
    "EntityKind",
    "OrderSource",
    "OrderStatus",
    "TableStatus",
    "PaymentMethod",
    "EventType",
    "OrderItem",
    "TaxLine",
    "Order",
    "OrderDraft",
    "Table",
    "Customer",
    "CustomerDraft",
    "StreamEvent",
    # Entity Store
    "EntityStore",
    # Availability
    "AvailabilityProber",
    "ConnectionState",
    # Context and config
    "OfflineConfig",
    "DataContext",
    # Event stream
    "EventStreamClient",
    "StreamHandle",
    "LiveUpdateSupervisor",
    "LiveUpdateState",
    # Unified Data Service
    "UnifiedDataService",
    "StoreChange",
]
