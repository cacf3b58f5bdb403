"""
Base API Connector Class for the POS backend
Provides the async HTTP plumbing shared by every backend connector
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
import logging

import httpx

from pos_core.errors import ErrorKind
from pos_core.services import ServiceResult

logger = logging.getLogger(__name__)

# HTTP status codes that carry a domain meaning rather than "backend is down"
STATUS_KINDS = {
    400: ErrorKind.VALIDATION,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.UNAUTHORIZED,
    404: ErrorKind.NOT_FOUND,
    409: ErrorKind.VALIDATION,
    422: ErrorKind.VALIDATION,
}


@dataclass
class APIConfig:
    """Configuration for the backend connection"""
    api_name: str
    base_url: str
    api_key: Optional[str] = None
    restaurant_id: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    timeout: float = 10.0
    stream_path: str = "kitchen/stream"


class BaseAPIConnector(ABC):
    """
    Abstract base class for backend connectors.

    Requests never raise for transport or HTTP problems: every call returns
    a ServiceResult whose ``error_code`` is an ErrorKind value.
    """

    def __init__(
        self,
        config: APIConfig,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url.rstrip("/") + "/",
            timeout=config.timeout,
            transport=transport,
        )

        self.client.headers["Accept"] = "application/json"
        if config.headers:
            self.client.headers.update(config.headers)
        # tenancy is independent of authentication
        if config.restaurant_id:
            self.client.headers["X-Restaurant-Id"] = config.restaurant_id

        if config.api_key:
            self._set_auth_header()

    @abstractmethod
    def _set_auth_header(self):
        """Set authentication header based on API requirements"""
        pass

    async def _make_request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Make an HTTP request and classify the outcome.

        Args:
            endpoint: API endpoint (relative to base_url)
            method: HTTP method (GET, POST, PATCH, DELETE)
            params: Query parameters
            data: JSON request body

        Returns:
            ServiceResult with the decoded JSON body, or a failure whose
            error_code is the ErrorKind of the problem
        """
        endpoint = endpoint.lstrip("/")
        meta = {"endpoint": endpoint, "method": method}

        try:
            response = await self.client.request(
                method,
                endpoint,
                params={k: v for k, v in (params or {}).items() if v is not None} or None,
                json=data,
            )
        except httpx.TimeoutException as e:
            logger.debug(f"{method} {endpoint} timed out: {e}")
            return ServiceResult.fail(
                f"{self.config.api_name} timed out on {endpoint}",
                ErrorKind.UNREACHABLE.value,
                meta,
            )
        except httpx.HTTPError as e:
            logger.debug(f"{method} {endpoint} failed: {e}")
            return ServiceResult.fail(
                f"{self.config.api_name} request failed: {e}",
                ErrorKind.UNREACHABLE.value,
                meta,
            )

        meta["status_code"] = response.status_code
        body = self._parse_body(response)

        if response.is_success:
            if body is _INVALID:
                return ServiceResult.fail(
                    f"{self.config.api_name} returned invalid JSON for {endpoint}",
                    ErrorKind.UNREACHABLE.value,
                    meta,
                )
            return ServiceResult.ok(body, metadata=meta)

        kind = STATUS_KINDS.get(response.status_code, ErrorKind.UNREACHABLE)
        message = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or body.get("detail")
        return ServiceResult.fail(
            str(message or f"{method} {endpoint} failed with HTTP {response.status_code}"),
            kind.value,
            meta,
        )

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return _INVALID

    async def test_connection(self) -> Dict[str, Any]:
        """
        Test API connection and return status

        Returns:
            Dict with status and message
        """
        result = await self._make_request("tables")
        if result.success:
            return {
                "status": "success",
                "message": f"Successfully connected to {self.config.api_name}",
            }
        return {
            "status": "error",
            "kind": result.error_code,
            "message": f"Connection failed: {result.error}",
        }

    async def aclose(self) -> None:
        await self.client.aclose()


class _InvalidBody:
    def __repr__(self) -> str:
        return "<invalid body>"


_INVALID = _InvalidBody()
