# =============================================================================
# tests/unit/test_models.py
# Unit Tests for the domain entities
# =============================================================================

import json

import pytest


class TestOrderDecoding:
    """Test decoding of backend order payloads"""

    def test_decode_backend_order(self):
        """Mongo-style ids and camelCase fields are accepted"""
        from pos_core.offline.models import Order, OrderSource, OrderStatus

        order = Order.from_dict({
            "_id": "o1",
            "tableNumber": 4,
            "status": "pending",
            "items": [{"id": "i1", "name": "Tea", "quantity": 2, "price": 20}],
            "totalAmount": 40,
            "createdAt": "2024-05-01T12:00:00Z",
        })

        assert order.id == "o1"
        assert order.source is OrderSource.DINE_IN
        assert order.status is OrderStatus.PENDING
        assert order.subtotal == 40
        assert order.total == 40
        assert order.created_at.tzinfo is not None

    def test_source_defaults_to_takeaway_without_table(self):
        from pos_core.offline.models import Order, OrderSource

        order = Order.from_dict({
            "id": "o2",
            "items": [{"id": "i1", "name": "Wrap", "quantity": 1, "unitPrice": 5.5}],
        })

        assert order.source is OrderSource.TAKEAWAY
        assert order.items[0].price == 5.5

    def test_invalid_status_rejected(self):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import Order

        with pytest.raises(ValidationError) as exc_info:
            Order.from_dict({"id": "o3", "status": "served", "items": []})

        assert exc_info.value.details["field"] == "status"

    @pytest.mark.parametrize("payload, field", [
        ({"_id": "o9", "taxes": 5, "items": []}, "taxes"),
        ({"_id": "o9", "taxes": [7], "items": []}, "taxes"),
        ({"_id": "o9", "items": [{"id": "i1", "name": "Tea", "quantity": float("inf"), "price": 2}]}, "quantity"),
        ({"_id": "o9", "items": [{"id": "i1", "name": "Tea", "quantity": 1, "price": float("nan")}]}, "price"),
        ({"_id": "o9", "tableNumber": float("inf"), "items": []}, "tableNumber"),
    ])
    def test_any_json_value_is_a_validation_error(self, payload, field):
        """Bad shapes never escape as TypeError or OverflowError"""
        from pos_core.errors import ValidationError
        from pos_core.offline.models import Order

        with pytest.raises(ValidationError) as exc_info:
            Order.from_dict(payload)

        assert exc_info.value.details["field"] == field

    def test_to_dict_uses_wire_names(self):
        from pos_core.offline.models import Order

        order = Order.from_dict({
            "id": "o4",
            "items": [{"id": "i1", "name": "Tea", "quantity": 1, "price": 2}],
        })
        data = order.to_dict()

        assert data["orderSource"] == "takeaway"
        assert data["totalAmount"] == 2
        assert data["completedAt"] is None


class TestOrderTransitions:
    """Test the order status state machine"""

    @pytest.fixture
    def pending_order(self):
        from pos_core.offline.models import OrderDraft

        draft = OrderDraft.from_dict({
            "items": [{"id": "i1", "name": "Tea", "quantity": 2, "price": 20}],
        })
        return draft.to_order("o1")

    def test_complete_sets_timestamp_and_payment(self, pending_order):
        from pos_core.offline.models import OrderStatus, PaymentMethod

        completed = pending_order.transition(OrderStatus.COMPLETED, PaymentMethod.CARD)

        assert completed.status is OrderStatus.COMPLETED
        assert completed.payment_method is PaymentMethod.CARD
        assert completed.completed_at is not None
        # the original record is untouched
        assert pending_order.status is OrderStatus.PENDING

    def test_cancel_leaves_completed_at_empty(self, pending_order):
        from pos_core.offline.models import OrderStatus

        cancelled = pending_order.transition(OrderStatus.CANCELLED)

        assert cancelled.status is OrderStatus.CANCELLED
        assert cancelled.completed_at is None

    @pytest.mark.parametrize("terminal", ["completed", "cancelled"])
    def test_no_way_out_of_terminal_state(self, pending_order, terminal):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import OrderStatus

        closed = pending_order.transition(OrderStatus(terminal))

        for target in OrderStatus:
            with pytest.raises(ValidationError):
                closed.transition(target)

    def test_pending_to_pending_rejected(self, pending_order):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import OrderStatus

        with pytest.raises(ValidationError):
            pending_order.transition(OrderStatus.PENDING)


class TestOrderDraft:
    """Test create-order payload validation"""

    def test_totals_computed_from_items_and_taxes(self):
        from pos_core.offline.models import OrderDraft

        draft = OrderDraft.from_dict({
            "tableNumber": 2,
            "items": [
                {"id": "i1", "name": "Tea", "quantity": 2, "price": 20},
                {"id": "i2", "name": "Cake", "quantity": 1, "price": 3.5},
            ],
            "taxes": [{"name": "GST", "rate": 5, "amount": 2.18}],
        })

        assert draft.subtotal == 43.5
        assert draft.total == 45.68

    def test_mismatched_total_rejected(self):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import OrderDraft

        with pytest.raises(ValidationError) as exc_info:
            OrderDraft.from_dict({
                "items": [{"id": "i1", "name": "Tea", "quantity": 2, "price": 20}],
                "totalAmount": 45,
            })

        assert exc_info.value.details["field"] == "totalAmount"

    def test_supplied_totals_as_strings_accepted(self):
        from pos_core.offline.models import OrderDraft

        draft = OrderDraft.from_dict({
            "items": [{"id": "i1", "name": "Tea", "quantity": 3, "price": 3.33}],
            "subtotal": "9.99",
            "totalAmount": "9.99",
        })

        assert draft.total == 9.99

    def test_empty_items_rejected(self):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import OrderDraft

        with pytest.raises(ValidationError):
            OrderDraft.from_dict({"tableNumber": 1, "items": []})

    def test_new_order_must_be_pending(self):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import OrderDraft

        with pytest.raises(ValidationError):
            OrderDraft.from_dict({
                "status": "completed",
                "items": [{"id": "i1", "name": "Tea", "quantity": 1, "price": 2}],
            })

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "two", True])
    def test_bad_quantity_rejected(self, quantity):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import OrderDraft

        with pytest.raises(ValidationError):
            OrderDraft.from_dict({
                "items": [{"id": "i1", "name": "Tea", "quantity": quantity, "price": 2}],
            })

    def test_payload_omits_unset_fields(self):
        from pos_core.offline.models import OrderDraft

        payload = OrderDraft.from_dict({
            "items": [{"id": "i1", "name": "Tea", "quantity": 1, "price": 2}],
        }).to_payload()

        assert payload["status"] == "pending"
        assert payload["orderSource"] == "takeaway"
        assert "tableNumber" not in payload
        assert "customerId" not in payload


class TestTable:
    """Test the table occupancy invariant"""

    def test_occupied_requires_order(self):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import Table, TableStatus

        with pytest.raises(ValidationError):
            Table(id="t1", number=1, capacity=4, status=TableStatus.OCCUPIED)

    def test_free_cannot_reference_order(self):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import Table, TableStatus

        with pytest.raises(ValidationError):
            Table(id="t1", number=1, capacity=4, status=TableStatus.FREE, current_order_id="o1")

    def test_with_status_free_clears_reference(self):
        from pos_core.offline.models import Table, TableStatus

        table = Table(id="t1", number=1, capacity=4, status=TableStatus.OCCUPIED, current_order_id="o1", guests=3)
        freed = table.with_status(TableStatus.FREE)

        assert freed.current_order_id is None
        assert freed.guests is None

    def test_decode_freed_table_drops_last_order(self):
        """Backends keep the last order id on freed tables"""
        from pos_core.offline.models import Table, TableStatus

        table = Table.from_dict({"_id": "t1", "number": 1, "capacity": 2, "status": "free", "lastOrderId": "o9"})

        assert table.status is TableStatus.FREE
        assert table.current_order_id is None


class TestCustomer:
    """Test loyalty balance rules"""

    @pytest.fixture
    def customer(self):
        from pos_core.offline.models import Customer
        return Customer(id="c1", name="Asha", phone="555-0101", loyalty_points=120)

    @pytest.mark.parametrize("points,tier", [(0, "bronze"), (499, "bronze"), (500, "silver"), (1000, "gold"), (2500, "platinum")])
    def test_loyalty_tiers(self, points, tier):
        from pos_core.offline.models import Customer

        assert Customer(id="c", name="x", loyalty_points=points).loyalty_tier == tier

    def test_award_adds_points(self, customer):
        assert customer.award(30).loyalty_points == 150

    def test_award_requires_positive_points(self, customer):
        from pos_core.errors import ValidationError

        with pytest.raises(ValidationError):
            customer.award(0)

    def test_redeem_cannot_overdraw(self, customer):
        from pos_core.errors import ValidationError

        with pytest.raises(ValidationError):
            customer.redeem(121)
        assert customer.redeem(120).loyalty_points == 0

    def test_profile_update_cannot_lower_balance(self, customer):
        from pos_core.errors import ValidationError

        with pytest.raises(ValidationError):
            customer.apply_changes({"loyaltyPoints": 100})
        assert customer.apply_changes({"loyaltyPoints": 200, "email": "a@x.io"}).loyalty_points == 200

    def test_unknown_update_field_rejected(self, customer):
        from pos_core.errors import ValidationError

        with pytest.raises(ValidationError):
            customer.apply_changes({"referredBy": "c2"})

    def test_negative_balance_rejected(self):
        from pos_core.errors import ValidationError
        from pos_core.offline.models import Customer

        with pytest.raises(ValidationError):
            Customer(id="c1", name="Asha", loyalty_points=-1)

    def test_draft_gets_referral_code(self):
        from pos_core.offline.models import CustomerDraft

        customer = CustomerDraft.from_dict({"name": "Asha Rao", "phone": "555"}).to_customer("c1")

        assert customer.referral_code.startswith("ASHA")
        assert customer.loyalty_points == 0


class TestStreamEvent:
    """Test stream event decoding"""

    def test_created_event(self):
        from pos_core.offline.models import EventType, StreamEvent

        event = StreamEvent.from_json(json.dumps({
            "type": "created",
            "order": {"_id": "o1", "items": [{"id": "i1", "name": "Tea", "quantity": 1, "price": 2}]},
        }))

        assert event.type is EventType.CREATED
        assert event.order_id == "o1"

    def test_deleted_event_carries_only_id(self):
        from pos_core.offline.models import EventType, StreamEvent

        event = StreamEvent.from_dict({"type": "deleted", "orderId": "o1"})

        assert event.type is EventType.DELETED
        assert event.order is None

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2]",
        '{"type": "shipped", "orderId": "o1"}',
        '{"type": "deleted"}',
        '{"type": "updated", "order": {"_id": "o1", "status": "lost"}}',
        '{"type": "created", "order": {"_id": "X", "taxes": 5}}',
        '{"type": "created", "order": {"_id": "X", "taxes": true}}',
        '{"type": "created", "order": {"_id": "X", "items": {"id": "i1"}}}',
        '{"type": "created", "order": {"_id": "X", "items": [{"id": "i1", "name": "Tea", "quantity": Infinity, "price": 2}]}}',
        '{"type": "created", "order": {"_id": "X", "items": [{"id": "i1", "name": "Tea", "quantity": 1, "price": NaN}]}}',
        '{"type": "created", "order": {"_id": "X", "totalAmount": 1e999}}',
        '{"type": "created", "order": {"_id": "X", "status": ["pending"]}}',
        '{"type": ["created"], "orderId": "o1"}',
    ])
    def test_malformed_frames(self, raw):
        from pos_core.errors import MalformedEventError
        from pos_core.offline.models import StreamEvent

        with pytest.raises(MalformedEventError):
            StreamEvent.from_json(raw)
