# =============================================================================
# pos_core/offline/context.py
# Process-scoped data context
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass, field

from pos_core.offline.connection_manager import ConnectionState
from pos_core.offline.entity_store import EntityStore
from pos_core.offline.models import OperationMode


@dataclass
class DataContext:
    """
    Operation mode and entity store owned by one façade.

    Each façade gets its own context, so several (e.g. one per restaurant)
    can run side by side in a process.
    """
    store: EntityStore = field(default_factory=EntityStore)
    state: ConnectionState = field(default_factory=ConnectionState)

    @property
    def mode(self) -> OperationMode:
        return self.state.mode
