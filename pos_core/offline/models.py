# =============================================================================
# pos_core/offline/models.py
# Domain Entities shared by the remote and fallback data sources
# =============================================================================
"""
Entities are identical in shape whether served by the backend or by the
in-memory fallback store. All entities are frozen dataclasses: every change
produces a new instance, so a record handed to a consumer never changes
under its feet when the store is updated.

Wire format is the backend's camelCase JSON; ``from_dict``/``to_dict``
convert between the two.
"""

from __future__ import annotations
import json
import math
import re
import secrets
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar
from uuid import uuid4

from pos_core.errors import MalformedEventError, ValidationError

E = TypeVar("E", bound=Enum)


class OperationMode(Enum):
    """Which data source the façade is currently dispatching to."""
    REMOTE = "remote"
    FALLBACK = "fallback"
    UNDETERMINED = "undetermined"


class EntityKind(Enum):
    """Logical resources, named after the backend collections."""
    ORDERS = "orders"
    TABLES = "tables"
    CUSTOMERS = "customers"


class OrderSource(Enum):
    DINE_IN = "dine-in"
    TAKEAWAY = "takeaway"


class OrderStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not OrderStatus.PENDING


# Terminal states have no way out
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


class TableStatus(Enum):
    FREE = "free"
    OCCUPIED = "occupied"
    RESERVED = "reserved"


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    SPLIT = "split"


class EventType(Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


# Loyalty tiers, lowest threshold first
LOYALTY_TIERS = [
    (0, "bronze"),
    (500, "silver"),
    (1000, "gold"),
    (2500, "platinum"),
]


# =============================================================================
# PARSING HELPERS
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def generate_referral_code(name: str) -> str:
    """Readable referral code: up to four letters of the name plus random hex."""
    prefix = re.sub(r"[^A-Za-z]", "", name).upper()[:4] or "POS"
    return f"{prefix}{secrets.token_hex(3).upper()}"


def parse_enum(enum_cls: Type[E], value: Any, field_name: str) -> E:
    """Parse an enum from its wire value, raising ValidationError otherwise."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (TypeError, ValueError):
        allowed = "|".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Invalid {field_name}: {value!r}",
            field=field_name,
            expected=allowed,
            actual=value,
        )


def parse_datetime(value: Any, field_name: str) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid timestamp for {field_name}", field=field_name, actual=value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _require(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present key among aliases."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    raise ValidationError(f"Missing required field: {keys[0]}", field=keys[0])


def _optional(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _as_list(data: Mapping[str, Any], key: str) -> List[Any]:
    """A JSON array field; absent or null means empty."""
    value = _optional(data, key, default=[])
    if not isinstance(value, list):
        raise ValidationError(f"{key} must be a list", field=key, actual=type(value).__name__)
    return value


def _as_int(value: Any, field_name: str, minimum: Optional[int] = None) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ValidationError(f"{field_name} must be an integer", field=field_name, actual=value)
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field_name} must be an integer", field=field_name, actual=value)
    if isinstance(value, float) and number != value:
        raise ValidationError(f"{field_name} must be an integer", field=field_name, actual=value)
    if minimum is not None and number < minimum:
        raise ValidationError(
            f"{field_name} must be >= {minimum}",
            field=field_name,
            expected=f">= {minimum}",
            actual=number,
        )
    return number


def _as_money(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number", field=field_name, actual=value)
    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field_name} must be a number", field=field_name, actual=value)
    if not math.isfinite(amount):
        raise ValidationError(f"{field_name} must be a finite number", field=field_name, actual=value)
    if amount < 0:
        raise ValidationError(f"{field_name} must not be negative", field=field_name, actual=amount)
    return round(amount, 2)


# =============================================================================
# ORDERS
# =============================================================================

@dataclass(frozen=True)
class OrderItem:
    """One line of an order."""
    id: str
    name: str
    quantity: int
    price: float
    category: str = ""

    @property
    def line_total(self) -> float:
        return round(self.quantity * self.price, 2)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrderItem:
        if not isinstance(data, Mapping):
            raise ValidationError("Order item must be an object", field="items", actual=data)
        return cls(
            id=str(_require(data, "id", "itemId", "_id")),
            name=str(_require(data, "name")),
            quantity=_as_int(_require(data, "quantity", "qty"), "quantity", minimum=1),
            price=_as_money(_require(data, "price", "unitPrice"), "price"),
            category=str(_optional(data, "category") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price,
            "category": self.category,
        }


@dataclass(frozen=True)
class TaxLine:
    name: str
    rate: float
    amount: float

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaxLine:
        if not isinstance(data, Mapping):
            raise ValidationError("Tax line must be an object", field="taxes", actual=data)
        return cls(
            name=str(_require(data, "name")),
            rate=_as_money(_optional(data, "rate") or 0, "rate"),
            amount=_as_money(_require(data, "amount"), "amount"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "rate": self.rate, "amount": self.amount}


def compute_totals(items: List[OrderItem], taxes: List[TaxLine]) -> tuple[float, float]:
    """Subtotal is the sum of line totals; total adds every tax amount."""
    subtotal = round(sum(item.line_total for item in items), 2)
    total = round(subtotal + sum(tax.amount for tax in taxes), 2)
    return subtotal, total


@dataclass(frozen=True)
class Order:
    """
    A customer order.

    Status only ever moves pending -> completed or pending -> cancelled;
    use ``transition`` to change it.
    """
    id: str
    source: OrderSource
    status: OrderStatus
    items: List[OrderItem]
    subtotal: float
    total: float
    table_number: Optional[int] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    taxes: List[TaxLine] = field(default_factory=list)
    special_instructions: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    def transition(
        self,
        status: OrderStatus,
        payment_method: Optional[PaymentMethod] = None,
        at: Optional[datetime] = None,
    ) -> Order:
        """Return a copy in ``status``; raises ValidationError on an illegal move."""
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise ValidationError(
                f"Order {self.id} cannot move from {self.status.value} to {status.value}",
                field="status",
                expected="|".join(s.value for s in ALLOWED_TRANSITIONS[self.status]) or "none (terminal)",
                actual=status.value,
            )
        at = at or utc_now()
        return replace(
            self,
            status=status,
            payment_method=payment_method or self.payment_method,
            updated_at=at,
            completed_at=at if status is OrderStatus.COMPLETED else self.completed_at,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Order:
        """Decode a backend order; raises ValidationError on a bad payload."""
        if not isinstance(data, Mapping):
            raise ValidationError("Order must be an object", field="order", actual=type(data).__name__)

        items = [OrderItem.from_dict(item) for item in _as_list(data, "items")]
        taxes = [TaxLine.from_dict(tax) for tax in _as_list(data, "taxes")]
        computed_subtotal, computed_total = compute_totals(items, taxes)

        table_number = _optional(data, "tableNumber", "table_number")
        source_value = _optional(data, "orderSource", "deliveryType", "source")
        if source_value is None:
            source_value = "dine-in" if table_number is not None else "takeaway"
        payment_value = _optional(data, "paymentMethod", "payment_method")
        created_at = parse_datetime(_optional(data, "createdAt", "created_at"), "createdAt") or utc_now()

        return cls(
            id=str(_require(data, "id", "_id")),
            source=parse_enum(OrderSource, source_value, "orderSource"),
            status=parse_enum(OrderStatus, _optional(data, "status") or "pending", "status"),
            items=items,
            subtotal=_as_money(_optional(data, "subtotal", default=computed_subtotal), "subtotal"),
            total=_as_money(_optional(data, "totalAmount", "total", default=computed_total), "totalAmount"),
            table_number=_as_int(table_number, "tableNumber") if table_number is not None else None,
            customer_id=_optional(data, "customerId", "customer_id"),
            customer_name=_optional(data, "customerName", "customer_name"),
            customer_phone=_optional(data, "customerPhone", "customer_phone"),
            payment_method=parse_enum(PaymentMethod, payment_value, "paymentMethod") if payment_value else None,
            taxes=taxes,
            special_instructions=_optional(data, "specialInstructions"),
            created_at=created_at,
            updated_at=parse_datetime(_optional(data, "updatedAt", "updated_at"), "updatedAt") or created_at,
            completed_at=parse_datetime(_optional(data, "completedAt", "completed_at"), "completedAt"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "orderSource": self.source.value,
            "status": self.status.value,
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "totalAmount": self.total,
            "tableNumber": self.table_number,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "paymentMethod": self.payment_method.value if self.payment_method else None,
            "taxes": [tax.to_dict() for tax in self.taxes],
            "specialInstructions": self.special_instructions,
            "createdAt": format_datetime(self.created_at),
            "updatedAt": format_datetime(self.updated_at),
            "completedAt": format_datetime(self.completed_at),
        }


@dataclass(frozen=True)
class OrderDraft:
    """Caller input for a new order; the id is assigned by the data source."""
    source: OrderSource
    items: List[OrderItem]
    subtotal: float
    total: float
    table_number: Optional[int] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    taxes: List[TaxLine] = field(default_factory=list)
    special_instructions: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> OrderDraft:
        """
        Validate a create-order payload.

        Subtotal and total are computed from the items and taxes; values the
        caller supplies must agree with them to the cent.
        """
        if not isinstance(data, Mapping):
            raise ValidationError("Order payload must be an object", field="order")

        raw_items = _optional(data, "items") or []
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationError("An order needs at least one item", field="items")
        items = [OrderItem.from_dict(item) for item in raw_items]
        taxes = [TaxLine.from_dict(tax) for tax in _as_list(data, "taxes")]
        subtotal, total = compute_totals(items, taxes)

        for keys, computed in ((("subtotal",), subtotal), (("totalAmount", "total"), total)):
            supplied = _optional(data, *keys)
            if supplied is not None and abs(_as_money(supplied, keys[0]) - computed) > 0.01:
                raise ValidationError(
                    f"{keys[0]} does not match the order lines",
                    field=keys[0],
                    expected=f"{computed:.2f}",
                    actual=supplied,
                )

        status = _optional(data, "status")
        if status is not None and parse_enum(OrderStatus, status, "status") is not OrderStatus.PENDING:
            raise ValidationError("New orders start as pending", field="status", expected="pending", actual=status)

        table_number = _optional(data, "tableNumber", "table_number")
        source_value = _optional(data, "orderSource", "deliveryType", "source")
        if source_value is None:
            source_value = "dine-in" if table_number is not None else "takeaway"
        payment_value = _optional(data, "paymentMethod", "payment_method")

        return cls(
            source=parse_enum(OrderSource, source_value, "orderSource"),
            items=items,
            subtotal=subtotal,
            total=total,
            table_number=_as_int(table_number, "tableNumber", minimum=1) if table_number is not None else None,
            customer_id=_optional(data, "customerId", "customer_id"),
            customer_name=_optional(data, "customerName", "customer_name"),
            customer_phone=_optional(data, "customerPhone", "customer_phone"),
            payment_method=parse_enum(PaymentMethod, payment_value, "paymentMethod") if payment_value else None,
            taxes=taxes,
            special_instructions=_optional(data, "specialInstructions"),
        )

    def to_order(self, order_id: str, at: Optional[datetime] = None) -> Order:
        at = at or utc_now()
        return Order(
            id=order_id,
            source=self.source,
            status=OrderStatus.PENDING,
            items=list(self.items),
            subtotal=self.subtotal,
            total=self.total,
            table_number=self.table_number,
            customer_id=self.customer_id,
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            payment_method=self.payment_method,
            taxes=list(self.taxes),
            special_instructions=self.special_instructions,
            created_at=at,
            updated_at=at,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "orderSource": self.source.value,
            "status": OrderStatus.PENDING.value,
            "items": [item.to_dict() for item in self.items],
            "subtotal": self.subtotal,
            "totalAmount": self.total,
            "taxes": [tax.to_dict() for tax in self.taxes],
        }
        optional = {
            "tableNumber": self.table_number,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "paymentMethod": self.payment_method.value if self.payment_method else None,
            "specialInstructions": self.special_instructions,
        }
        payload.update({k: v for k, v in optional.items() if v is not None})
        return payload


# =============================================================================
# TABLES
# =============================================================================

@dataclass(frozen=True)
class Table:
    """
    A dining table.

    ``occupied`` always carries the id of the order sitting at it and
    ``free`` never does.
    """
    id: str
    number: int
    capacity: int
    status: TableStatus = TableStatus.FREE
    current_order_id: Optional[str] = None
    guests: Optional[int] = None

    def __post_init__(self):
        if self.status is TableStatus.OCCUPIED and not self.current_order_id:
            raise ValidationError(
                f"Table {self.number} is occupied without an order",
                field="currentOrderId",
            )
        if self.status is TableStatus.FREE and self.current_order_id:
            raise ValidationError(
                f"Table {self.number} is free but references order {self.current_order_id}",
                field="currentOrderId",
            )

    def with_status(
        self,
        status: TableStatus,
        current_order_id: Optional[str] = None,
        guests: Optional[int] = None,
    ) -> Table:
        if status is TableStatus.FREE:
            if current_order_id:
                raise ValidationError(
                    "A free table cannot reference an order",
                    field="currentOrderId",
                    actual=current_order_id,
                )
            return replace(self, status=status, current_order_id=None, guests=None)
        if status is TableStatus.OCCUPIED:
            current_order_id = current_order_id or self.current_order_id
        return replace(
            self,
            status=status,
            current_order_id=current_order_id,
            guests=guests if guests is not None else self.guests,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Table:
        if not isinstance(data, Mapping):
            raise ValidationError("Table must be an object", field="table")
        status = parse_enum(TableStatus, _optional(data, "status") or "free", "status")
        order_ref = _optional(data, "currentOrderId", "current_order_id", "lastOrderId")
        guests = _optional(data, "guests")
        return cls(
            id=str(_require(data, "id", "_id")),
            number=_as_int(_require(data, "number", "tableNumber"), "number", minimum=1),
            capacity=_as_int(_optional(data, "capacity") or 0, "capacity", minimum=0),
            status=status,
            # the backend keeps the last order id on tables it has freed
            current_order_id=None if status is TableStatus.FREE else order_ref,
            guests=_as_int(guests, "guests", minimum=0) if guests is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "number": self.number,
            "capacity": self.capacity,
            "status": self.status.value,
            "currentOrderId": self.current_order_id,
            "guests": self.guests,
        }


# =============================================================================
# CUSTOMERS
# =============================================================================

CUSTOMER_FIELDS = {
    "name": "name",
    "email": "email",
    "phone": "phone",
    "loyaltyPoints": "loyalty_points",
    "loyalty_points": "loyalty_points",
}


@dataclass(frozen=True)
class Customer:
    """
    A loyalty customer.

    The point balance is a non-negative integer that only goes down through
    ``redeem``.
    """
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    loyalty_points: int = 0
    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if isinstance(self.loyalty_points, bool) or not isinstance(self.loyalty_points, int) or self.loyalty_points < 0:
            raise ValidationError(
                "Loyalty points must be a non-negative integer",
                field="loyaltyPoints",
                actual=self.loyalty_points,
            )

    @property
    def loyalty_tier(self) -> str:
        tier = LOYALTY_TIERS[0][1]
        for threshold, name in LOYALTY_TIERS:
            if self.loyalty_points >= threshold:
                tier = name
        return tier

    def award(self, points: int) -> Customer:
        points = _as_int(points, "points", minimum=1)
        return replace(self, loyalty_points=self.loyalty_points + points)

    def redeem(self, points: int) -> Customer:
        points = _as_int(points, "points", minimum=1)
        if points > self.loyalty_points:
            raise ValidationError(
                f"Customer {self.id} has only {self.loyalty_points} points",
                field="points",
                expected=f"<= {self.loyalty_points}",
                actual=points,
            )
        return replace(self, loyalty_points=self.loyalty_points - points)

    def apply_changes(self, changes: Mapping[str, Any]) -> Customer:
        """Apply a profile update; the balance may be raised but never lowered here."""
        updates = normalize_customer_changes(changes)
        if "loyalty_points" in updates and updates["loyalty_points"] < self.loyalty_points:
            raise ValidationError(
                "Loyalty points can only be lowered through redemption",
                field="loyaltyPoints",
                expected=f">= {self.loyalty_points}",
                actual=updates["loyalty_points"],
            )
        return replace(self, **updates)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Customer:
        if not isinstance(data, Mapping):
            raise ValidationError("Customer must be an object", field="customer")
        return cls(
            id=str(_require(data, "id", "_id")),
            name=str(_require(data, "name")),
            email=_optional(data, "email"),
            phone=_optional(data, "phone"),
            loyalty_points=_as_int(_optional(data, "loyaltyPoints", "loyalty_points") or 0, "loyaltyPoints", minimum=0),
            referral_code=_optional(data, "referralCode", "referral_code"),
            referred_by=_optional(data, "referredBy", "referred_by"),
            created_at=parse_datetime(_optional(data, "createdAt", "created_at"), "createdAt") or utc_now(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "loyaltyPoints": self.loyalty_points,
            "loyaltyTier": self.loyalty_tier,
            "referralCode": self.referral_code,
            "referredBy": self.referred_by,
            "createdAt": format_datetime(self.created_at),
        }


def normalize_customer_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    """Map wire keys of a customer update to attribute names and validate them."""
    if not isinstance(changes, Mapping):
        raise ValidationError("Customer update must be an object", field="customer")
    unknown = set(changes) - set(CUSTOMER_FIELDS)
    if unknown:
        raise ValidationError(
            f"Unknown customer fields: {', '.join(sorted(unknown))}",
            field=sorted(unknown)[0],
        )
    updates: Dict[str, Any] = {}
    for key, value in changes.items():
        attr = CUSTOMER_FIELDS[key]
        if attr == "loyalty_points":
            value = _as_int(value, "loyaltyPoints", minimum=0)
        elif attr == "name" and not str(value or "").strip():
            raise ValidationError("Customer name is required", field="name")
        updates[attr] = value
    return updates


@dataclass(frozen=True)
class CustomerDraft:
    """Caller input for a new customer."""
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    loyalty_points: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CustomerDraft:
        if not isinstance(data, Mapping):
            raise ValidationError("Customer payload must be an object", field="customer")
        name = str(_optional(data, "name") or "").strip()
        if not name:
            raise ValidationError("Customer name is required", field="name")
        return cls(
            name=name,
            email=_optional(data, "email"),
            phone=_optional(data, "phone"),
            loyalty_points=_as_int(_optional(data, "loyaltyPoints", "loyalty_points") or 0, "loyaltyPoints", minimum=0),
        )

    def to_customer(self, customer_id: str, referral_code: Optional[str] = None) -> Customer:
        return Customer(
            id=customer_id,
            name=self.name,
            email=self.email,
            phone=self.phone,
            loyalty_points=self.loyalty_points,
            referral_code=referral_code or generate_referral_code(self.name),
        )

    def to_payload(self) -> Dict[str, Any]:
        payload = {"name": self.name, "loyaltyPoints": self.loyalty_points}
        if self.email is not None:
            payload["email"] = self.email
        if self.phone is not None:
            payload["phone"] = self.phone
        return payload


# =============================================================================
# STREAM EVENTS
# =============================================================================

@dataclass(frozen=True)
class StreamEvent:
    """A push event: ``created``/``updated`` carry an order, ``deleted`` an id."""
    type: EventType
    order_id: str
    order: Optional[Order] = None

    @classmethod
    def from_dict(cls, data: Any) -> StreamEvent:
        if not isinstance(data, Mapping):
            raise MalformedEventError("Event is not an object", payload=repr(data))
        try:
            event_type = EventType(data.get("type"))
        except (TypeError, ValueError):
            raise MalformedEventError(f"Unknown event type: {data.get('type')!r}", payload=repr(data))

        if event_type is EventType.DELETED:
            order_id = data.get("orderId") or data.get("order_id")
            if not order_id:
                raise MalformedEventError("Delete event without orderId", payload=repr(data))
            return cls(type=event_type, order_id=str(order_id))

        try:
            order = Order.from_dict(data.get("order"))
        except ValidationError as e:
            raise MalformedEventError(f"Event carries an invalid order: {e.message}", payload=repr(data))
        except (TypeError, ValueError, OverflowError) as e:
            raise MalformedEventError(f"Event carries an invalid order: {e}", payload=repr(data))
        return cls(type=event_type, order_id=order.id, order=order)

    @classmethod
    def from_json(cls, raw: str) -> StreamEvent:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedEventError(f"Invalid JSON: {e.msg}", payload=raw)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        if self.type is EventType.DELETED:
            return {"type": self.type.value, "orderId": self.order_id}
        return {"type": self.type.value, "order": self.order.to_dict()}
