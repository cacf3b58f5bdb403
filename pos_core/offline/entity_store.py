# =============================================================================
# pos_core/offline/entity_store.py
# In-Memory Entity Store for Fallback Operations and Remote Caching
# =============================================================================
"""
EntityStore - volatile, process-lifetime storage for orders, tables and customers.

Features:
- One collection per entity kind, keyed by identifier
- Predicate filtering on list operations
- Total mutations: update/delete on a missing id report "not found"
  instead of inserting or raising
- DataFrame export (pandas) for reporting

In fallback mode the store is the canonical copy of every entity; in remote
mode it is a read cache filled from fetch results and stream events.
"""

from __future__ import annotations
from typing import Callable, Dict, Iterable, List, Optional, Union
import logging

import pandas as pd

from pos_core.errors import ValidationError
from pos_core.offline.models import Customer, EntityKind, Order, Table

logger = logging.getLogger(__name__)

Entity = Union[Order, Table, Customer]
Predicate = Callable[[Entity], bool]

ENTITY_TYPES = {
    EntityKind.ORDERS: Order,
    EntityKind.TABLES: Table,
    EntityKind.CUSTOMERS: Customer,
}


class EntityStore:
    """
    Synchronous in-memory store for POS entities.

    Usage:
        store = EntityStore()
        store.insert(EntityKind.ORDERS, order)
        pending = store.get_all(EntityKind.ORDERS, lambda o: o.status is OrderStatus.PENDING)
    """

    def __init__(self):
        self._collections: Dict[EntityKind, Dict[str, Entity]] = {
            kind: {} for kind in EntityKind
        }

    def _collection(self, kind: EntityKind, entity: Optional[Entity] = None) -> Dict[str, Entity]:
        if entity is not None and not isinstance(entity, ENTITY_TYPES[kind]):
            raise TypeError(
                f"{kind.value} store holds {ENTITY_TYPES[kind].__name__}, got {type(entity).__name__}"
            )
        return self._collections[kind]

    # =========================================================================
    # GENERIC CRUD OPERATIONS
    # =========================================================================

    def get(self, kind: EntityKind, entity_id: str) -> Optional[Entity]:
        """Get a record by id, None when absent."""
        return self._collections[kind].get(entity_id)

    def get_all(self, kind: EntityKind, predicate: Optional[Predicate] = None) -> List[Entity]:
        """Get all records of a kind in insertion order, optionally filtered."""
        records = list(self._collections[kind].values())
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    def find(self, kind: EntityKind, predicate: Predicate) -> Optional[Entity]:
        """First record matching the predicate."""
        for record in self._collections[kind].values():
            if predicate(record):
                return record
        return None

    def insert(self, kind: EntityKind, entity: Entity) -> Entity:
        """
        Insert a new record.

        Raises:
            ValidationError: if the id (or, for tables, the number) is taken
        """
        collection = self._collection(kind, entity)
        if entity.id in collection:
            raise ValidationError(
                f"{kind.value} record {entity.id} already exists",
                field="id",
                actual=entity.id,
            )
        if kind is EntityKind.TABLES and any(t.number == entity.number for t in collection.values()):
            raise ValidationError(
                f"Table number {entity.number} already exists",
                field="number",
                actual=entity.number,
            )
        collection[entity.id] = entity
        return entity

    def update(self, kind: EntityKind, entity: Entity) -> bool:
        """
        Replace an existing record.

        Returns:
            True if updated, False if no record has that id (nothing is inserted)
        """
        collection = self._collection(kind, entity)
        if entity.id not in collection:
            logger.debug(f"Update skipped, {kind.value} {entity.id} not found")
            return False
        collection[entity.id] = entity
        return True

    def upsert(self, kind: EntityKind, entity: Entity) -> bool:
        """
        Insert or fully replace a record.

        Returns:
            True if a record was replaced, False if it was inserted
        """
        collection = self._collection(kind, entity)
        existed = entity.id in collection
        collection[entity.id] = entity
        return existed

    def delete(self, kind: EntityKind, entity_id: str) -> bool:
        """
        Delete a record.

        Returns:
            True if deleted, False if no record has that id
        """
        removed = self._collections[kind].pop(entity_id, None)
        if removed is None:
            logger.debug(f"Delete skipped, {kind.value} {entity_id} not found")
            return False
        return True

    def replace_all(self, kind: EntityKind, entities: Iterable[Entity]) -> int:
        """Replace a whole collection, e.g. with a fresh remote listing."""
        fresh: Dict[str, Entity] = {}
        for entity in entities:
            self._collection(kind, entity)
            fresh[entity.id] = entity
        self._collections[kind] = fresh
        return len(fresh)

    def count(self, kind: EntityKind) -> int:
        return len(self._collections[kind])

    def clear(self, kind: Optional[EntityKind] = None) -> None:
        """Drop one collection, or every collection when kind is None."""
        kinds = [kind] if kind else list(EntityKind)
        for k in kinds:
            self._collections[k] = {}

    # =========================================================================
    # PANDAS INTEGRATION
    # =========================================================================

    def to_dataframe(
        self,
        kind: EntityKind,
        predicate: Optional[Predicate] = None,
    ) -> pd.DataFrame:
        """
        Load a collection into a pandas DataFrame.

        Columns follow the wire format of the entity (camelCase).
        """
        rows = [record.to_dict() for record in self.get_all(kind, predicate)]
        if not rows:
            return pd.DataFrame()
        return pd.DataFrame(rows)

    def get_stats(self) -> Dict[str, int]:
        """Record counts per collection for status display."""
        return {kind.value: len(records) for kind, records in self._collections.items()}
