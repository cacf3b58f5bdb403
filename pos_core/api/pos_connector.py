"""
POS Backend Connector
CRUD calls against the restaurant backend: orders, tables and customers.
"""
from typing import Any, Callable, Dict, Mapping, Optional
import logging

from pos_core.errors import ErrorKind, ValidationError
from pos_core.offline.models import Customer, Order, Table
from pos_core.services import ServiceResult

from .base_connector import BaseAPIConnector

logger = logging.getLogger(__name__)


def _unwrap(body: Any, key: str) -> Any:
    """Accept both bare payloads and envelopes like {"data": ...} or {"order": ...}."""
    if isinstance(body, Mapping):
        for candidate in (key, f"{key}s", "data"):
            if candidate in body and isinstance(body[candidate], (Mapping, list)):
                return body[candidate]
    return body


class POSAPIConnector(BaseAPIConnector):
    """
    Connector for the restaurant POS REST API.

    Every method returns a ServiceResult whose ``data`` is a decoded entity
    (or list of entities). A 2xx response whose body does not decode is
    reported as unreachable: the backend is not serving its contract.

    Usage:
        connector = POSAPIConnector(APIConfig("pos", "http://localhost:5000/api"))
        result = await connector.list_tables()
        if result:
            tables = result.data
    """

    def _set_auth_header(self):
        self.client.headers["Authorization"] = f"Bearer {self.config.api_key}"

    def _decode(
        self,
        result: ServiceResult,
        decoder: Callable[[Mapping[str, Any]], Any],
        key: str,
        many: bool = False,
    ) -> ServiceResult:
        if not result.success:
            return result

        body = _unwrap(result.data, key)
        try:
            if many:
                if not isinstance(body, list):
                    raise ValidationError(f"Expected a list of {key}s", field=key)
                data = [decoder(item) for item in body]
            else:
                data = decoder(body)
        except (ValidationError, TypeError, ValueError, OverflowError) as e:
            reason = e.message if isinstance(e, ValidationError) else str(e)
            logger.warning(f"Undecodable {key} payload from {self.config.api_name}: {reason}")
            return ServiceResult.fail(
                f"{self.config.api_name} returned an invalid {key}: {reason}",
                ErrorKind.UNREACHABLE.value,
                result.metadata,
            )
        return ServiceResult.ok(data, metadata=result.metadata)

    # =========================================================================
    # ORDERS
    # =========================================================================

    async def list_orders(
        self,
        table_number: Optional[int] = None,
        status: Optional[str] = None,
    ) -> ServiceResult:
        result = await self._make_request(
            "orders",
            params={"tableNumber": table_number, "status": status},
        )
        return self._decode(result, Order.from_dict, "order", many=True)

    async def get_order(self, order_id: str) -> ServiceResult:
        result = await self._make_request(f"orders/{order_id}")
        return self._decode(result, Order.from_dict, "order")

    async def create_order(self, payload: Dict[str, Any]) -> ServiceResult:
        result = await self._make_request("orders", method="POST", data=payload)
        return self._decode(result, Order.from_dict, "order")

    async def update_order(self, order_id: str, changes: Dict[str, Any]) -> ServiceResult:
        result = await self._make_request(f"orders/{order_id}", method="PATCH", data=changes)
        return self._decode(result, Order.from_dict, "order")

    async def delete_order(self, order_id: str) -> ServiceResult:
        result = await self._make_request(f"orders/{order_id}", method="DELETE")
        if not result.success:
            return result
        return ServiceResult.ok(None, metadata=result.metadata)

    # =========================================================================
    # TABLES
    # =========================================================================

    async def list_tables(self) -> ServiceResult:
        result = await self._make_request("tables")
        return self._decode(result, Table.from_dict, "table", many=True)

    async def get_table(self, table_id: str) -> ServiceResult:
        result = await self._make_request(f"tables/{table_id}")
        return self._decode(result, Table.from_dict, "table")

    async def update_table(self, table_id: str, changes: Dict[str, Any]) -> ServiceResult:
        result = await self._make_request(f"tables/{table_id}", method="PATCH", data=changes)
        return self._decode(result, Table.from_dict, "table")

    # =========================================================================
    # CUSTOMERS
    # =========================================================================

    async def list_customers(self) -> ServiceResult:
        result = await self._make_request("customers")
        return self._decode(result, Customer.from_dict, "customer", many=True)

    async def find_customer_by_phone(self, phone: str) -> ServiceResult:
        result = await self._make_request("customers", params={"phone": phone})
        if not result.success:
            return result

        body = _unwrap(result.data, "customer")
        if isinstance(body, list):
            # Some backends answer a phone query with the filtered collection
            if not body:
                return ServiceResult.fail(
                    f"No customer with phone {phone}",
                    ErrorKind.NOT_FOUND.value,
                    result.metadata,
                )
            body = body[0]
        if not body:
            return ServiceResult.fail(
                f"No customer with phone {phone}",
                ErrorKind.NOT_FOUND.value,
                result.metadata,
            )
        return self._decode(ServiceResult.ok(body, result.metadata), Customer.from_dict, "customer")

    async def add_customer(self, payload: Dict[str, Any]) -> ServiceResult:
        result = await self._make_request("customers", method="POST", data=payload)
        return self._decode(result, Customer.from_dict, "customer")

    async def update_customer(self, customer_id: str, changes: Dict[str, Any]) -> ServiceResult:
        result = await self._make_request(f"customers/{customer_id}", method="PATCH", data=changes)
        return self._decode(result, Customer.from_dict, "customer")

    async def award_loyalty_points(self, customer_id: str, points: int) -> ServiceResult:
        result = await self._make_request(
            f"customers/{customer_id}/loyalty/award",
            method="POST",
            data={"points": points},
        )
        return self._decode(result, Customer.from_dict, "customer")

    async def redeem_loyalty_points(self, customer_id: str, points: int) -> ServiceResult:
        result = await self._make_request(
            f"customers/{customer_id}/loyalty/redeem",
            method="POST",
            data={"points": points},
        )
        return self._decode(result, Customer.from_dict, "customer")

    async def redeem_referral(self, customer_id: str, referral_code: str) -> ServiceResult:
        result = await self._make_request(
            f"customers/{customer_id}/referral/redeem",
            method="POST",
            data={"referralCode": referral_code},
        )
        return self._decode(result, Customer.from_dict, "customer")
