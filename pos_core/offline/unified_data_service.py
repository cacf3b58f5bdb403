# =============================================================================
# pos_core/offline/unified_data_service.py
# Unified Data Service - Single API for Remote/Fallback Operations
# =============================================================================
"""
UnifiedDataService - The primary API for all POS data operations.

This service provides a unified interface that automatically handles:
- Remote mode: backend calls with cache-fill into the entity store
- Fallback mode: the in-memory entity store is the data source
- Mode detection at startup and re-detection on sustained failures
- Live order updates from the kitchen stream while remote

Usage:
------
from pos_core.api import APIConfigManager

service = APIConfigManager(load_settings()).create_data_service()
await service.start()

order = await service.create_order({
    "tableNumber": 1,
    "items": [{"id": "i1", "name": "Tea", "quantity": 2, "price": 20}],
})
orders = await service.list_orders(table_number=1)

# Check status
print(service.get_status())
"""

from __future__ import annotations
import asyncio
import itertools
from dataclasses import dataclass, replace
from typing import (
    TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union,
)

import pandas as pd

from pos_core.errors import (
    NotFoundError,
    POSError,
    ValidationError,
    ErrorKind,
    error_from_result,
    handle_error,
)
from pos_core.offline.config import OfflineConfig
from pos_core.offline.connection_manager import AvailabilityProber
from pos_core.offline.context import DataContext
from pos_core.offline.entity_store import Entity, EntityStore
from pos_core.offline.event_stream import EventStreamClient
from pos_core.offline.live_updates import LiveUpdateSupervisor
from pos_core.offline.models import (
    Customer,
    CustomerDraft,
    EntityKind,
    EventType,
    OperationMode,
    Order,
    OrderDraft,
    OrderStatus,
    PaymentMethod,
    StreamEvent,
    Table,
    TableStatus,
    format_datetime,
    generate_referral_code,
    new_id,
    normalize_customer_changes,
    parse_enum,
    utc_now,
)
from pos_core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from pos_core.api.pos_connector import POSAPIConnector


@dataclass(frozen=True)
class StoreChange:
    """Notification sent to subscribers after the façade mutates the store."""
    kind: EntityKind
    action: str                     # "upsert", "delete" or "refresh"
    entity_id: Optional[str] = None


ChangeHandler = Callable[[StoreChange], Any]


class UnifiedDataService(BaseService):
    """
    Unified data service providing a single API for remote/fallback operations.

    It automatically handles:
    - Operation mode detection (awaited before the first operation)
    - Data source selection (backend vs entity store)
    - Cache-fill of the entity store from remote results
    - Reconciliation of kitchen stream events

    Every operation either returns entities or raises a POSError subclass;
    consumers never need to know which source served them.
    """

    def __init__(
        self,
        connector: POSAPIConnector,
        stream: Optional[EventStreamClient] = None,
        context: Optional[DataContext] = None,
        config: Optional[OfflineConfig] = None,
        on_unauthorized: Optional[Callable[[POSError], Any]] = None,
    ):
        """
        Args:
            connector: Remote data client
            stream: Kitchen stream client; live updates are off without one
            context: Mode and store owned by this service
            config: Offline tuning
            on_unauthorized: Called when the backend rejects the credential
                (e.g. to clear the session)
        """
        super().__init__()
        self.context = context or DataContext()
        self.config = config or OfflineConfig()
        self._connector = connector
        self._on_unauthorized = on_unauthorized

        self._prober = AvailabilityProber(
            connector,
            self.context.state,
            timeout=self.config.probe_timeout,
        )
        self._prober.register_callback(self._on_mode_change)

        self._live: Optional[LiveUpdateSupervisor] = None
        if stream is not None:
            self._live = LiveUpdateSupervisor(
                stream,
                self._apply_event,
                self._on_stream_exhausted,
                on_unauthorized=self._handle_unauthorized,
                max_retries=self.config.stream_max_retries,
                backoff_base=self.config.backoff_base,
                backoff_cap=self.config.backoff_cap,
            )

        self._subscribers: Dict[int, ChangeHandler] = {}
        self._tokens = itertools.count(1)
        self._startup: Optional[asyncio.Future] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def store(self) -> EntityStore:
        return self.context.store

    @property
    def mode(self) -> OperationMode:
        return self.context.mode

    @property
    def is_remote(self) -> bool:
        return self.context.mode is OperationMode.REMOTE

    @property
    def prober(self) -> AvailabilityProber:
        return self._prober

    @property
    def live_updates(self) -> Optional[LiveUpdateSupervisor]:
        return self._live

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self) -> asyncio.Future:
        """
        Schedule the startup probe. Must be called from a running event loop.

        Operations issued before the probe resolves wait for it. Returns the
        probe future so callers may await the outcome.
        """
        if self._startup is None:
            self._startup = asyncio.ensure_future(self._prober.probe())
        return self._startup

    async def reprobe(self) -> OperationMode:
        """Re-run availability detection; may switch modes either way."""
        with self.log_operation("Re-probing backend"):
            return await self._prober.probe()

    def force_fallback(self) -> None:
        """Switch to fallback mode without probing."""
        self._prober.force_fallback()

    async def close(self) -> None:
        """Stop live updates and release the HTTP client."""
        if self._live is not None:
            self._live.stop()
        if self._startup is not None and not self._startup.done():
            self._startup.cancel()
        await self._connector.aclose()

    async def __aenter__(self) -> UnifiedDataService:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _ensure_mode(self) -> OperationMode:
        if self.context.mode is OperationMode.UNDETERMINED:
            if self._startup is not None and not self._startup.done():
                return await asyncio.shield(self._startup)
            return await self._prober.probe()
        return self.context.mode

    def _on_mode_change(self, old_mode: OperationMode, new_mode: OperationMode) -> None:
        if new_mode is OperationMode.REMOTE:
            if old_mode is OperationMode.FALLBACK:
                self.logger.info(
                    "Backend available again; changes made in fallback mode stay local"
                )
            if self._live is not None:
                self._live.start()
        elif new_mode is OperationMode.FALLBACK:
            if self._live is not None:
                self._live.stop()
            self._seed_tables()

    def _seed_tables(self) -> None:
        if self.store.count(EntityKind.TABLES) or self.config.seed_table_count <= 0:
            return
        for number in range(1, self.config.seed_table_count + 1):
            self.store.insert(
                EntityKind.TABLES,
                Table(id=f"table-{number}", number=number, capacity=self.config.seed_table_capacity),
            )
        self.logger.info(f"Seeded {self.config.seed_table_count} tables for fallback mode")
        self._notify(StoreChange(EntityKind.TABLES, "refresh"))

    async def _on_stream_exhausted(self) -> bool:
        return await self.reprobe() is OperationMode.REMOTE

    def _handle_unauthorized(self, error: POSError) -> None:
        if self._on_unauthorized is None:
            return
        try:
            self._on_unauthorized(error)
        except Exception as e:
            self.logger.error(f"Error in unauthorized callback: {e}", exc_info=True)

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def _dispatch(
        self,
        operation: str,
        remote: Callable[[], Awaitable[ServiceResult]],
        local: Callable[[], Any],
        cache: Optional[Callable[[Any], None]] = None,
    ) -> Any:
        """
        Route one operation by mode.

        Remote results are written into the store through ``cache`` before
        being returned. Failures are raised as POSError subclasses and never
        touch the store.
        """
        mode = await self._ensure_mode()
        try:
            if mode is OperationMode.REMOTE:
                result = await remote()
                return await self._complete_remote(operation, result, cache)
            return local()
        except POSError as e:
            handle_error(e, operation)
            raise

    async def _complete_remote(
        self,
        operation: str,
        result: ServiceResult,
        cache: Optional[Callable[[Any], None]],
    ) -> Any:
        state = self.context.state
        if result.success:
            state.consecutive_failures = 0
            if cache is not None:
                cache(result.data)
            return result.data

        error = error_from_result(result)
        if result.is_unreachable:
            state.consecutive_failures += 1
            if state.consecutive_failures >= self.config.reprobe_after_failures:
                self.logger.warning(
                    f"{operation}: {state.consecutive_failures} consecutive failures, re-probing backend"
                )
                await self.reprobe()
        elif result.kind is ErrorKind.UNAUTHORIZED:
            self._handle_unauthorized(error)
        raise error

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, handler: ChangeHandler) -> int:
        """
        Register a handler called with a StoreChange after every store
        mutation made by this service.

        Returns:
            Token for unsubscribe()
        """
        token = next(self._tokens)
        self._subscribers[token] = handler
        return token

    def unsubscribe(self, token: int) -> bool:
        """Remove a subscription; False if the token is unknown."""
        return self._subscribers.pop(token, None) is not None

    def _notify(self, change: StoreChange) -> None:
        for handler in list(self._subscribers.values()):
            try:
                handler(change)
            except Exception as e:
                self.logger.error(f"Error in change subscriber: {e}", exc_info=True)

    def _cache_one(self, kind: EntityKind) -> Callable[[Entity], None]:
        def cache(entity: Entity) -> None:
            self.store.upsert(kind, entity)
            self._notify(StoreChange(kind, "upsert", entity.id))
        return cache

    def _cache_many(self, kind: EntityKind, complete: bool) -> Callable[[List[Entity]], None]:
        def cache(entities: List[Entity]) -> None:
            if complete:
                self.store.replace_all(kind, entities)
            else:
                for entity in entities:
                    self.store.upsert(kind, entity)
            self._notify(StoreChange(kind, "refresh"))
        return cache

    def _store_insert(self, kind: EntityKind, entity: Entity) -> Entity:
        self.store.insert(kind, entity)
        self._notify(StoreChange(kind, "upsert", entity.id))
        return entity

    def _store_update(self, kind: EntityKind, entity: Entity) -> Entity:
        if not self.store.update(kind, entity):
            raise NotFoundError(f"{kind.value} record {entity.id} not found", entity=kind.value, entity_id=entity.id)
        self._notify(StoreChange(kind, "upsert", entity.id))
        return entity

    def _store_get(self, kind: EntityKind, entity_id: str) -> Entity:
        entity = self.store.get(kind, entity_id)
        if entity is None:
            raise NotFoundError(f"{kind.value} record {entity_id} not found", entity=kind.value, entity_id=entity_id)
        return entity

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def _apply_event(self, event: StreamEvent) -> None:
        """Apply a stream event to the store; last write by arrival wins."""
        if self.context.mode is not OperationMode.REMOTE:
            self.logger.debug(f"Ignoring {event.type.value} event for {event.order_id} outside remote mode")
            return

        if event.type is EventType.DELETED:
            if self.store.delete(EntityKind.ORDERS, event.order_id):
                self._notify(StoreChange(EntityKind.ORDERS, "delete", event.order_id))
            return

        self.store.upsert(EntityKind.ORDERS, event.order)
        self._notify(StoreChange(EntityKind.ORDERS, "upsert", event.order_id))

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def list_orders(
        self,
        table_number: Optional[int] = None,
        status: Optional[Union[str, OrderStatus]] = None,
    ) -> List[Order]:
        """
        List orders, optionally filtered by table number and status.

        Orders come back in store order (insertion order in fallback mode,
        backend order in remote mode).
        """
        status = parse_enum(OrderStatus, status, "status") if status is not None else None
        complete = table_number is None and status is None

        return await self._dispatch(
            "list_orders",
            lambda: self._connector.list_orders(table_number, status.value if status else None),
            lambda: self.cached_orders(table_number, status),
            self._cache_many(EntityKind.ORDERS, complete),
        )

    async def get_order(self, order_id: str) -> Order:
        return await self._dispatch(
            "get_order",
            lambda: self._connector.get_order(order_id),
            lambda: self._store_get(EntityKind.ORDERS, order_id),
            self._cache_one(EntityKind.ORDERS),
        )

    async def list_table_pending_orders(self, table_number: int) -> List[Order]:
        """Pending orders for one table."""
        return await self.list_orders(table_number=table_number, status=OrderStatus.PENDING)

    async def create_order(self, payload: Union[Mapping[str, Any], OrderDraft]) -> Order:
        """
        Create a pending order.

        Args:
            payload: OrderDraft or its wire form (camelCase dict)

        Raises:
            ValidationError: on empty items, bad values or totals that do
                not match the order lines
        """
        draft = payload if isinstance(payload, OrderDraft) else OrderDraft.from_dict(payload)

        return await self._dispatch(
            "create_order",
            lambda: self._connector.create_order(draft.to_payload()),
            lambda: self._store_insert(EntityKind.ORDERS, draft.to_order(new_id())),
            self._cache_one(EntityKind.ORDERS),
        )

    async def update_order_status(
        self,
        order_id: str,
        status: Union[str, OrderStatus],
        payment_method: Optional[Union[str, PaymentMethod]] = None,
    ) -> Order:
        """
        Move an order to ``completed`` or ``cancelled``.

        Raises:
            ValidationError: if the move leaves a terminal state or is not
                allowed from the current one
            NotFoundError: if the order does not exist
        """
        target = parse_enum(OrderStatus, status, "status")
        method = parse_enum(PaymentMethod, payment_method, "paymentMethod") if payment_method else None

        async def remote() -> ServiceResult:
            cached = self.store.get(EntityKind.ORDERS, order_id)
            if cached is not None:
                cached.transition(target, method)
            changes: Dict[str, Any] = {"status": target.value}
            if method is not None:
                changes["paymentMethod"] = method.value
            if target is OrderStatus.COMPLETED:
                changes["completedAt"] = format_datetime(utc_now())
            return await self._connector.update_order(order_id, changes)

        def local() -> Order:
            order = self._store_get(EntityKind.ORDERS, order_id)
            return self._store_update(EntityKind.ORDERS, order.transition(target, method))

        return await self._dispatch(
            "update_order_status", remote, local, self._cache_one(EntityKind.ORDERS),
        )

    async def delete_order(self, order_id: str) -> None:
        def local() -> None:
            if not self.store.delete(EntityKind.ORDERS, order_id):
                raise NotFoundError(f"Order {order_id} not found", entity="order", entity_id=order_id)
            self._notify(StoreChange(EntityKind.ORDERS, "delete", order_id))

        def cache(_: Any) -> None:
            if self.store.delete(EntityKind.ORDERS, order_id):
                self._notify(StoreChange(EntityKind.ORDERS, "delete", order_id))

        await self._dispatch(
            "delete_order",
            lambda: self._connector.delete_order(order_id),
            local,
            cache,
        )

    def cached_orders(
        self,
        table_number: Optional[int] = None,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        """Orders currently in the store, without a backend call."""
        return self.store.get_all(
            EntityKind.ORDERS,
            lambda o: (table_number is None or o.table_number == table_number)
            and (status is None or o.status is status),
        )

    def sales_summary(self) -> pd.DataFrame:
        """
        Completed orders in the store grouped by source channel.

        Returns:
            DataFrame with columns orderSource, orders, revenue
        """
        df = self.store.to_dataframe(
            EntityKind.ORDERS, lambda o: o.status is OrderStatus.COMPLETED
        )
        if df.empty:
            return pd.DataFrame(columns=["orderSource", "orders", "revenue"])

        summary = (
            df.groupby("orderSource")
            .agg(orders=("id", "count"), revenue=("totalAmount", "sum"))
            .reset_index()
        )
        summary["revenue"] = summary["revenue"].round(2)
        return summary

    # =========================================================================
    # TABLES
    # =========================================================================

    async def list_tables(self) -> List[Table]:
        return await self._dispatch(
            "list_tables",
            self._connector.list_tables,
            self.cached_tables,
            self._cache_many(EntityKind.TABLES, complete=True),
        )

    async def get_table(self, table_id: str) -> Table:
        return await self._dispatch(
            "get_table",
            lambda: self._connector.get_table(table_id),
            lambda: self._store_get(EntityKind.TABLES, table_id),
            self._cache_one(EntityKind.TABLES),
        )

    async def update_table_status(
        self,
        table_id: str,
        status: Union[str, TableStatus],
        current_order_id: Optional[str] = None,
        guests: Optional[int] = None,
    ) -> Table:
        """
        Change a table's status.

        ``occupied`` needs an order reference (given here or already on the
        table); ``free`` clears it and rejects one.
        """
        target = parse_enum(TableStatus, status, "status")
        if target is TableStatus.FREE and current_order_id:
            raise ValidationError(
                "A free table cannot reference an order",
                field="currentOrderId",
                actual=current_order_id,
            )

        async def remote() -> ServiceResult:
            cached = self.store.get(EntityKind.TABLES, table_id)
            if cached is not None:
                cached.with_status(target, current_order_id, guests)
            elif target is TableStatus.OCCUPIED and not current_order_id:
                raise ValidationError("An occupied table needs an order", field="currentOrderId")
            changes: Dict[str, Any] = {"status": target.value}
            if target is TableStatus.FREE:
                changes["currentOrderId"] = None
            elif current_order_id is not None:
                changes["currentOrderId"] = current_order_id
            if guests is not None:
                changes["guests"] = guests
            return await self._connector.update_table(table_id, changes)

        def local() -> Table:
            table = self._store_get(EntityKind.TABLES, table_id)
            return self._store_update(EntityKind.TABLES, table.with_status(target, current_order_id, guests))

        return await self._dispatch(
            "update_table_status", remote, local, self._cache_one(EntityKind.TABLES),
        )

    def cached_tables(self) -> List[Table]:
        """Tables currently in the store, by table number."""
        return sorted(self.store.get_all(EntityKind.TABLES), key=lambda t: t.number)

    async def table_stats(self) -> Dict[str, Any]:
        """Counts per table status plus seating capacity."""
        tables = await self.list_tables()
        stats: Dict[str, Any] = {"total": len(tables)}
        for status in TableStatus:
            stats[status.value] = sum(1 for t in tables if t.status is status)
        stats["capacity"] = sum(t.capacity for t in tables)
        stats["seats_in_use"] = sum(
            t.guests if t.guests is not None else t.capacity
            for t in tables
            if t.status is TableStatus.OCCUPIED
        )
        stats["occupancy_rate"] = round(stats["occupied"] / len(tables), 3) if tables else 0.0
        return stats

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    async def list_customers(self) -> List[Customer]:
        return await self._dispatch(
            "list_customers",
            self._connector.list_customers,
            lambda: self.store.get_all(EntityKind.CUSTOMERS),
            self._cache_many(EntityKind.CUSTOMERS, complete=True),
        )

    async def add_customer(self, payload: Union[Mapping[str, Any], CustomerDraft]) -> Customer:
        """Register a customer; phone numbers are unique."""
        draft = payload if isinstance(payload, CustomerDraft) else CustomerDraft.from_dict(payload)

        def local() -> Customer:
            self._check_phone_free(draft.phone)
            code = generate_referral_code(draft.name)
            while self._customer_by_code(code) is not None:
                code = generate_referral_code(draft.name)
            return self._store_insert(EntityKind.CUSTOMERS, draft.to_customer(new_id(), code))

        return await self._dispatch(
            "add_customer",
            lambda: self._connector.add_customer(draft.to_payload()),
            local,
            self._cache_one(EntityKind.CUSTOMERS),
        )

    async def update_customer(self, customer_id: str, changes: Mapping[str, Any]) -> Customer:
        """
        Update a customer's profile.

        Raises:
            ValidationError: on unknown fields or an attempt to lower the
                loyalty balance (use redeem_loyalty_points for that)
        """
        normalize_customer_changes(changes)

        async def remote() -> ServiceResult:
            cached = self.store.get(EntityKind.CUSTOMERS, customer_id)
            if cached is not None:
                cached.apply_changes(changes)
            return await self._connector.update_customer(customer_id, dict(changes))

        def local() -> Customer:
            customer = self._store_get(EntityKind.CUSTOMERS, customer_id)
            updated = customer.apply_changes(changes)
            if updated.phone != customer.phone:
                self._check_phone_free(updated.phone, exclude_id=customer_id)
            return self._store_update(EntityKind.CUSTOMERS, updated)

        return await self._dispatch(
            "update_customer", remote, local, self._cache_one(EntityKind.CUSTOMERS),
        )

    async def find_customer_by_phone(self, phone: str) -> Customer:
        """
        Raises:
            NotFoundError: if no customer has that phone number
        """
        def local() -> Customer:
            customer = self.store.find(EntityKind.CUSTOMERS, lambda c: c.phone == phone)
            if customer is None:
                raise NotFoundError(f"No customer with phone {phone}", entity="customer", entity_id=phone)
            return customer

        return await self._dispatch(
            "find_customer_by_phone",
            lambda: self._connector.find_customer_by_phone(phone),
            local,
            self._cache_one(EntityKind.CUSTOMERS),
        )

    async def award_loyalty_points(self, customer_id: str, points: int) -> Customer:
        """Add points to a customer's balance; points must be positive."""
        async def remote() -> ServiceResult:
            cached = self.store.get(EntityKind.CUSTOMERS, customer_id)
            if cached is not None:
                cached.award(points)
            return await self._connector.award_loyalty_points(customer_id, points)

        def local() -> Customer:
            customer = self._store_get(EntityKind.CUSTOMERS, customer_id)
            return self._store_update(EntityKind.CUSTOMERS, customer.award(points))

        return await self._dispatch(
            "award_loyalty_points", remote, local, self._cache_one(EntityKind.CUSTOMERS),
        )

    async def redeem_loyalty_points(self, customer_id: str, points: int) -> Customer:
        """
        Spend points from a customer's balance.

        Raises:
            ValidationError: if the balance does not cover ``points``
        """
        async def remote() -> ServiceResult:
            cached = self.store.get(EntityKind.CUSTOMERS, customer_id)
            if cached is not None:
                cached.redeem(points)
            return await self._connector.redeem_loyalty_points(customer_id, points)

        def local() -> Customer:
            customer = self._store_get(EntityKind.CUSTOMERS, customer_id)
            return self._store_update(EntityKind.CUSTOMERS, customer.redeem(points))

        return await self._dispatch(
            "redeem_loyalty_points", remote, local, self._cache_one(EntityKind.CUSTOMERS),
        )

    async def redeem_referral(self, customer_id: str, referral_code: str) -> Customer:
        """
        Redeem another customer's referral code.

        Both the redeeming customer and the code's owner are credited with
        the configured bonus. A customer redeems at most once and never
        their own code.

        Raises:
            NotFoundError: unknown customer or referral code
            ValidationError: already redeemed, or own code
        """
        code = str(referral_code or "").strip()
        if not code:
            raise ValidationError("Referral code is required", field="referralCode")

        async def remote() -> ServiceResult:
            cached = self.store.get(EntityKind.CUSTOMERS, customer_id)
            if cached is not None:
                self._check_referral(cached, code)
            return await self._connector.redeem_referral(customer_id, code)

        def local() -> Customer:
            customer = self._store_get(EntityKind.CUSTOMERS, customer_id)
            self._check_referral(customer, code)
            owner = self._customer_by_code(code)
            if owner is None:
                raise NotFoundError(f"Unknown referral code {code}", entity="referral", entity_id=code)
            if owner.id == customer.id:
                raise ValidationError("Customers cannot redeem their own referral code", field="referralCode")

            bonus = self.config.referral_bonus_points
            self._store_update(EntityKind.CUSTOMERS, owner.award(bonus))
            return self._store_update(
                EntityKind.CUSTOMERS, replace(customer.award(bonus), referred_by=owner.id),
            )

        return await self._dispatch(
            "redeem_referral", remote, local, self._cache_one(EntityKind.CUSTOMERS),
        )

    @staticmethod
    def _check_referral(customer: Customer, code: str) -> None:
        if customer.referred_by:
            raise ValidationError(
                f"Customer {customer.id} already redeemed a referral",
                field="referralCode",
            )
        if customer.referral_code and customer.referral_code.upper() == code.upper():
            raise ValidationError("Customers cannot redeem their own referral code", field="referralCode")

    def _customer_by_code(self, code: str) -> Optional[Customer]:
        wanted = code.upper()
        return self.store.find(
            EntityKind.CUSTOMERS,
            lambda c: bool(c.referral_code) and c.referral_code.upper() == wanted,
        )

    def _check_phone_free(self, phone: Optional[str], exclude_id: Optional[str] = None) -> None:
        if not phone:
            return
        clash = self.store.find(
            EntityKind.CUSTOMERS, lambda c: c.phone == phone and c.id != exclude_id,
        )
        if clash is not None:
            raise ValidationError(f"Phone {phone} is already registered", field="phone", actual=phone)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        """Get data layer status for display."""
        return {
            "mode": self.context.mode.value,
            "connection": self._prober.get_status_display(),
            "live_updates": self._live.get_status_display() if self._live else None,
            "store": self.store.get_stats(),
            "subscribers": len(self._subscribers),
        }
