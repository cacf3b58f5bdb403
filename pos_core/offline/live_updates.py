# =============================================================================
# pos_core/offline/live_updates.py
# Live Update Supervisor - keeps the kitchen stream connected
# =============================================================================
"""
LiveUpdateSupervisor - owns the event stream subscription while the façade
is in remote mode.

Features:
- Reconnects after a lost connection with capped exponential backoff
- Bounded retries; once exhausted the façade re-probes and either the
  supervisor starts over or stops for good
- Unauthorized streams are never retried
- stop() is safe at any point, including mid-backoff
"""

from __future__ import annotations
import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional
import logging

from pos_core.errors import POSError, UnauthorizedError
from pos_core.offline.event_stream import EventStreamClient, StreamHandle
from pos_core.offline.models import StreamEvent, utc_now

logger = logging.getLogger(__name__)


@dataclass
class LiveUpdateState:
    """Current live update state."""
    running: bool = False
    attempts: int = 0
    reconnects: int = 0
    events_received: int = 0
    last_event: Optional[datetime] = None
    last_error: Optional[str] = None


class LiveUpdateSupervisor:
    """
    Supervises one EventStreamClient.

    Usage:
        supervisor = LiveUpdateSupervisor(stream, on_event, on_exhausted)
        supervisor.start()
        ...
        supervisor.stop()
    """

    MAX_RETRY_ATTEMPTS = 5      # Reconnects before asking for a re-probe
    BACKOFF_BASE = 0.5          # First delay in seconds, doubled per attempt
    BACKOFF_CAP = 30.0          # Longest delay in seconds

    def __init__(
        self,
        stream: EventStreamClient,
        on_event: Callable[[StreamEvent], Any],
        on_exhausted: Callable[[], Awaitable[bool]],
        on_unauthorized: Optional[Callable[[POSError], Any]] = None,
        max_retries: int = MAX_RETRY_ATTEMPTS,
        backoff_base: float = BACKOFF_BASE,
        backoff_cap: float = BACKOFF_CAP,
    ):
        """
        Args:
            stream: Stream client to (re)open
            on_event: Receives every decoded event
            on_exhausted: Awaited when retries run out; returns True to keep
                reconnecting (backend still reachable), False to stop
            on_unauthorized: Called when the stream credential is rejected
        """
        self._stream = stream
        self._on_event = on_event
        self._on_exhausted = on_exhausted
        self._on_unauthorized = on_unauthorized
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._backoff_cap = backoff_cap

        self._state = LiveUpdateState()
        self._handle: Optional[StreamHandle] = None
        self._retry_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> LiveUpdateState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.running

    @property
    def is_connected(self) -> bool:
        return self._handle is not None and not self._handle.closed

    def backoff_delay(self, attempt: int) -> float:
        """Delay before reconnect ``attempt`` (0-based)."""
        return min(self._backoff_cap, self._backoff_base * (2 ** attempt))

    def start(self) -> None:
        """Open the stream; no-op when already running."""
        if self._state.running:
            return
        self._state.running = True
        self._state.attempts = 0
        self._connect()
        logger.info("Live updates started")

    def stop(self) -> None:
        """Close the stream and cancel any pending reconnect."""
        if not self._state.running:
            return
        self._state.running = False

        task = self._retry_task
        self._retry_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
        if self._handle is not None:
            self._handle.close()
        logger.info("Live updates stopped")

    def _connect(self) -> None:
        self._handle = self._stream.open(self._handle_event, self._handle_error)

    async def _handle_event(self, event: StreamEvent) -> None:
        # a frame arrived, so the connection is healthy again
        self._state.attempts = 0
        self._state.events_received += 1
        self._state.last_event = utc_now()
        result = self._on_event(event)
        if inspect.isawaitable(result):
            await result

    def _handle_error(self, error: POSError) -> None:
        self._state.last_error = error.message
        if not self._state.running:
            return

        if isinstance(error, UnauthorizedError):
            logger.error(f"Live updates rejected: {error.message}")
            self.stop()
            if self._on_unauthorized is not None:
                self._on_unauthorized(error)
            return

        self._retry_task = asyncio.ensure_future(self._reconnect())

    async def _reconnect(self) -> None:
        if self._state.attempts >= self._max_retries:
            logger.warning(
                f"Live updates failed {self._state.attempts} times, re-checking backend"
            )
            keep_going = await self._on_exhausted()
            if not keep_going or not self._state.running:
                self.stop()
                return
            self._state.attempts = 0

        delay = self.backoff_delay(self._state.attempts)
        self._state.attempts += 1
        logger.info(f"Reconnecting live updates in {delay:.1f}s (attempt {self._state.attempts})")
        await asyncio.sleep(delay)

        if not self._state.running:
            return
        self._state.reconnects += 1
        self._connect()

    def get_status_display(self) -> Dict[str, Any]:
        """Get live update status for display."""
        return {
            "running": self._state.running,
            "connected": self.is_connected,
            "attempts": self._state.attempts,
            "reconnects": self._state.reconnects,
            "events": self._state.events_received,
            "last_event": self._state.last_event.isoformat() if self._state.last_event else None,
            "last_error": self._state.last_error,
        }
