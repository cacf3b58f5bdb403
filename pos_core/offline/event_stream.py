# =============================================================================
# pos_core/offline/event_stream.py
# Kitchen Event Stream Client
# =============================================================================
"""
EventStreamClient - one long-lived push connection to the kitchen stream.

Features:
- Newline-delimited JSON frames decoded into StreamEvents
- SSE framing tolerated (``data:`` prefix, comments and keep-alives skipped)
- Malformed frames are logged and dropped; the connection stays up
- Transport errors close the connection and are reported once through
  ``on_error``; reconnecting is the caller's decision
- Single consumer: one open handle per client at a time
"""

from __future__ import annotations
import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union
import logging

import httpx

from pos_core.errors import (
    MalformedEventError,
    POSError,
    UnauthorizedError,
    UnreachableError,
)
from pos_core.offline.models import StreamEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[StreamEvent], Union[None, Awaitable[None]]]
ErrorHandler = Callable[[POSError], Union[None, Awaitable[None]]]

# SSE fields that carry no payload
_SSE_CONTROL_PREFIXES = ("event:", "id:", "retry:")


class StreamHandle:
    """
    Handle for one open stream connection.

    ``close()`` is idempotent: it may be called any number of times, also
    after the connection already failed. Once it returns, neither callback
    is invoked again.
    """

    def __init__(self):
        self._closed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait_closed(self) -> None:
        """Wait until the connection task has finished."""
        if self._task is None:
            return
        try:
            await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    def __call__(self) -> None:
        self.close()


class EventStreamClient:
    """
    Client for the backend's server-push order stream.

    Usage:
        stream = EventStreamClient(http_client, "kitchen/stream")
        handle = stream.open(on_event, on_error)
        ...
        handle.close()
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        path: str = "kitchen/stream",
        connect_timeout: float = 10.0,
    ):
        self._client = client
        self._path = path.lstrip("/")
        self._connect_timeout = connect_timeout
        self._handle: Optional[StreamHandle] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._handle is not None and not self._handle.closed

    def open(self, on_event: EventHandler, on_error: Optional[ErrorHandler] = None) -> StreamHandle:
        """
        Open the stream. Must be called from a running event loop.

        Args:
            on_event: Called with every decoded StreamEvent, in arrival order
            on_error: Called once with UnreachableError/UnauthorizedError when
                the connection is lost

        Returns:
            StreamHandle whose close() ends the connection

        Raises:
            RuntimeError: if this client already has an open connection
        """
        if self.is_open:
            raise RuntimeError("Event stream already open; close the current handle first")

        handle = StreamHandle()
        handle._task = asyncio.get_running_loop().create_task(
            self._run(handle, on_event, on_error),
            name="EventStream",
        )
        self._handle = handle
        return handle

    async def _run(
        self,
        handle: StreamHandle,
        on_event: EventHandler,
        on_error: Optional[ErrorHandler],
    ) -> None:
        try:
            async with self._client.stream(
                "GET",
                self._path,
                headers={"Accept": "application/x-ndjson, text/event-stream"},
                timeout=httpx.Timeout(self._connect_timeout, read=None),
            ) as response:
                if response.status_code in (401, 403):
                    raise UnauthorizedError("Event stream credential rejected", endpoint=self._path)
                if not response.is_success:
                    raise UnreachableError(
                        f"Event stream refused with HTTP {response.status_code}",
                        endpoint=self._path,
                        status_code=response.status_code,
                    )

                logger.info(f"Event stream connected: {self._path}")
                async for line in response.aiter_lines():
                    if handle.closed:
                        return
                    payload = self._frame_payload(line)
                    if payload is None:
                        continue
                    try:
                        event = StreamEvent.from_json(payload)
                    except MalformedEventError as e:
                        logger.warning(f"Dropping malformed stream frame: {e}")
                        continue
                    await self._invoke(handle, on_event, event)

            error: POSError = UnreachableError("Event stream closed by server", endpoint=self._path)
        except POSError as e:
            error = e
        except httpx.HTTPError as e:
            error = UnreachableError(f"Event stream failed: {e}", endpoint=self._path)
        except Exception as e:
            # the connection is unusable either way; report it so the owner can reconnect
            logger.error(f"Unexpected event stream failure: {e}", exc_info=True)
            error = UnreachableError(f"Event stream failed: {e}", endpoint=self._path)

        if handle.closed:
            return
        handle._closed = True
        logger.warning(f"Event stream lost: {error.message}")
        if on_error is not None:
            await self._invoke(handle, on_error, error, ignore_closed=True)

    @staticmethod
    def _frame_payload(line: str) -> Optional[str]:
        line = line.strip()
        if not line or line.startswith(":"):
            return None
        if line.startswith("data:"):
            return line[len("data:"):].strip() or None
        if line.startswith(_SSE_CONTROL_PREFIXES):
            return None
        return line

    @staticmethod
    async def _invoke(
        handle: StreamHandle,
        callback: Callable[[Any], Any],
        argument: Any,
        ignore_closed: bool = False,
    ) -> None:
        if handle.closed and not ignore_closed:
            return
        try:
            result = callback(argument)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in stream callback: {e}", exc_info=True)
