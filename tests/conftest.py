# =============================================================================
# tests/conftest.py
# Pytest Configuration and Fixtures
# =============================================================================

import asyncio
import json
import re
from typing import Any, Dict, List, Optional

import httpx
import pytest

from pos_core.api import APIConfig, APIConfigManager, POSAPIConnector, POSSettings
from pos_core.offline import OfflineConfig


BASE_URL = "http://pos.test/api"


# =============================================================================
# FAKE BACKEND
# =============================================================================

class FakeBackend:
    """
    In-memory POS backend served through httpx.MockTransport.

    Records every request. Set ``down`` to refuse connections, ``delay`` to
    slow every answer, or ``fail_status`` to answer REST calls with that
    HTTP status.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[str, Any]] = {
            f"t{n}": {"_id": f"t{n}", "number": n, "capacity": 4, "status": "free"}
            for n in (1, 2, 3)
        }
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.customers: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.down = False
        self.delay = 0.0
        self.fail_status: Optional[int] = None
        self.stream_status = 200
        self.stream_connections = 0
        self._stream_queue: Optional[asyncio.Queue] = None
        self._ids = 0
        self.transport = httpx.MockTransport(self.handle)

    # ------------------------------------------------------------------
    # stream control
    # ------------------------------------------------------------------

    def push(self, frame: Any) -> None:
        """Send one frame (dict or raw line) to the open stream."""
        line = frame if isinstance(frame, str) else json.dumps(frame)
        self._stream_queue.put_nowait(line)

    def end_stream(self) -> None:
        """Close the open stream from the server side."""
        self._stream_queue.put_nowait(None)

    @property
    def rest_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if not r.url.path.endswith("kitchen/stream")]

    # ------------------------------------------------------------------
    # routing
    # ------------------------------------------------------------------

    def _next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}{self._ids}"

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.down:
            raise httpx.ConnectError("Connection refused", request=request)

        path = request.url.path[len("/api/"):]
        if path == "kitchen/stream":
            return self._stream()
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"message": "backend failure"})

        body = json.loads(request.content) if request.content else None
        method = request.method
        params = request.url.params

        if path == "tables" and method == "GET":
            return httpx.Response(200, json=list(self.tables.values()))
        match = re.fullmatch(r"tables/([^/]+)", path)
        if match:
            table = self.tables.get(match.group(1))
            if table is None:
                return httpx.Response(404, json={"message": "Table not found"})
            if method == "PATCH":
                table.update(body)
            return httpx.Response(200, json=table)

        if path == "orders" and method == "GET":
            orders = [
                o for o in self.orders.values()
                if ("tableNumber" not in params or str(o.get("tableNumber")) == params["tableNumber"])
                and ("status" not in params or o["status"] == params["status"])
            ]
            return httpx.Response(200, json={"orders": orders})
        if path == "orders" and method == "POST":
            order = dict(body, _id=self._next_id("o"), createdAt="2024-05-01T12:00:00Z")
            self.orders[order["_id"]] = order
            return httpx.Response(201, json=order)
        match = re.fullmatch(r"orders/([^/]+)", path)
        if match:
            order = self.orders.get(match.group(1))
            if order is None:
                return httpx.Response(404, json={"message": "Order not found"})
            if method == "PATCH":
                if "status" in body and order["status"] != "pending":
                    return httpx.Response(409, json={"message": "Order is closed"})
                order.update(body)
            if method == "DELETE":
                del self.orders[order["_id"]]
                return httpx.Response(204)
            return httpx.Response(200, json=order)

        if path == "customers" and method == "GET":
            customers = list(self.customers.values())
            if "phone" in params:
                customers = [c for c in customers if c.get("phone") == params["phone"]]
            return httpx.Response(200, json=customers)
        if path == "customers" and method == "POST":
            customer = dict(body, _id=self._next_id("c"), referralCode=f"REF{self._ids}")
            self.customers[customer["_id"]] = customer
            return httpx.Response(201, json=customer)
        match = re.fullmatch(r"customers/([^/]+)(?:/(loyalty/award|loyalty/redeem|referral/redeem))?", path)
        if match:
            customer = self.customers.get(match.group(1))
            if customer is None:
                return httpx.Response(404, json={"message": "Customer not found"})
            action = match.group(2)
            if action == "loyalty/award":
                customer["loyaltyPoints"] = customer.get("loyaltyPoints", 0) + body["points"]
            elif action == "loyalty/redeem":
                if body["points"] > customer.get("loyaltyPoints", 0):
                    return httpx.Response(400, json={"message": "Insufficient points"})
                customer["loyaltyPoints"] -= body["points"]
            elif action == "referral/redeem":
                customer["loyaltyPoints"] = customer.get("loyaltyPoints", 0) + 100
                customer["referredBy"] = body["referralCode"]
            elif method == "PATCH":
                customer.update(body)
            return httpx.Response(200, json=customer)

        return httpx.Response(404, json={"message": f"No route {method} {path}"})

    def _stream(self) -> httpx.Response:
        self.stream_connections += 1
        if self.stream_status != 200:
            return httpx.Response(self.stream_status, json={"message": "stream refused"})

        queue: asyncio.Queue = asyncio.Queue()
        self._stream_queue = queue

        async def frames():
            while True:
                line = await queue.get()
                if line is None:
                    return
                yield (line + "\n").encode()

        return httpx.Response(200, headers={"Content-Type": "application/x-ndjson"}, content=frames())


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def backend():
    """Fake backend with three free tables"""
    return FakeBackend()


@pytest.fixture
def api_config():
    return APIConfig(
        api_name="pos",
        base_url=BASE_URL,
        api_key="secret-token",
        restaurant_id="rest-1",
        timeout=2.0,
    )


@pytest.fixture
def offline_config():
    """Fast timings so reconnection tests finish quickly"""
    return OfflineConfig(
        probe_timeout=0.5,
        reprobe_after_failures=3,
        stream_max_retries=2,
        backoff_base=0.01,
        backoff_cap=0.05,
        referral_bonus_points=100,
        seed_table_count=3,
        seed_table_capacity=4,
    )


@pytest.fixture
def connector(backend, api_config):
    return POSAPIConnector(api_config, transport=backend.transport)


@pytest.fixture
def make_service(backend, api_config, offline_config):
    """Factory building a UnifiedDataService wired to the fake backend"""
    def build(live_updates=False, on_unauthorized=None):
        manager = APIConfigManager(POSSettings(api=api_config, offline=offline_config))
        return manager.create_data_service(
            on_unauthorized=on_unauthorized,
            transport=backend.transport,
            live_updates=live_updates,
        )
    return build


@pytest.fixture
def order_payload():
    """Create-order payload for table 1: two teas"""
    return {
        "tableNumber": 1,
        "items": [{"id": "i1", "name": "Tea", "quantity": 2, "price": 20}],
        "subtotal": 40,
        "totalAmount": 40,
    }


@pytest.fixture
def wait_until():
    """Poll a condition until it holds (or fail after a timeout)"""
    async def wait(predicate, timeout=2.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met in time")
            await asyncio.sleep(0.01)
    return wait


@pytest.fixture
def order_frame():
    """Factory for stream frames carrying a one-line order"""
    def build(order_id: str, status: str = "pending", event_type: str = "created") -> Dict[str, Any]:
        return {
            "type": event_type,
            "order": {
                "_id": order_id,
                "orderSource": "dine-in",
                "tableNumber": 2,
                "status": status,
                "items": [{"id": "i9", "name": "Soup", "quantity": 1, "price": 7.5}],
                "totalAmount": 7.5,
            },
        }
    return build
