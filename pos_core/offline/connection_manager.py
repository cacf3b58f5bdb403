# =============================================================================
# pos_core/offline/connection_manager.py
# Backend Availability Detection
# =============================================================================
"""
AvailabilityProber - decides whether the backend API is usable.

Features:
- One lightweight read-only call (the connector's test_connection) bounded by a timeout
- Failure is a value (OperationMode.FALLBACK), never an exception
- Single flight: concurrent probe() calls share the in-flight check
- Callbacks for mode changes
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Optional
import logging

from pos_core.offline.models import OperationMode, utc_now

logger = logging.getLogger(__name__)


@dataclass
class ConnectionState:
    """Current operation mode with probe metadata."""
    mode: OperationMode = OperationMode.UNDETERMINED
    last_check: Optional[datetime] = None
    last_remote: Optional[datetime] = None
    consecutive_failures: int = 0
    probe_count: int = 0
    error_message: Optional[str] = None


class AvailabilityProber:
    """
    Probes the backend and records the resulting mode in a ConnectionState.

    Usage:
        prober = AvailabilityProber(connector, state, timeout=3.0)
        mode = await prober.probe()
        if mode is OperationMode.REMOTE:
            # Use the backend
        else:
            # Use the local store
    """

    DEFAULT_TIMEOUT = 3.0

    def __init__(
        self,
        connector: Any,
        state: Optional[ConnectionState] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            connector: Remote data client exposing ``async test_connection()``
            state: State object to record the mode in (shared with the façade)
            timeout: Upper bound in seconds for one probe
        """
        self._connector = connector
        self._state = state or ConnectionState()
        self._timeout = timeout
        self._inflight: Optional[asyncio.Future] = None
        self._callbacks: List[Callable[[OperationMode, OperationMode], None]] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def mode(self) -> OperationMode:
        return self._state.mode

    @property
    def is_remote(self) -> bool:
        return self._state.mode is OperationMode.REMOTE

    @property
    def is_probing(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def probe(self) -> OperationMode:
        """
        Run a probe, or join the one already running.

        Returns:
            OperationMode.REMOTE if the backend answered, FALLBACK otherwise
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._check())
        # shield: a caller giving up must not cancel the probe others are awaiting
        return await asyncio.shield(self._inflight)

    async def _check(self) -> OperationMode:
        self._state.last_check = utc_now()
        self._state.probe_count += 1

        try:
            status = await asyncio.wait_for(self._connector.test_connection(), self._timeout)
            reachable = status["status"] == "success"
            error = None if reachable else status["message"]
        except asyncio.TimeoutError:
            reachable = False
            error = f"Probe timed out after {self._timeout}s"
        except Exception as e:
            reachable = False
            error = f"Probe failed: {e}"
            logger.warning(error)

        mode = OperationMode.REMOTE if reachable else OperationMode.FALLBACK
        self._state.error_message = error
        if reachable:
            self._state.last_remote = utc_now()
        else:
            logger.info(f"Backend unavailable: {error}")

        self._set_mode(mode)
        return mode

    def _set_mode(self, mode: OperationMode) -> None:
        old_mode = self._state.mode
        self._state.mode = mode
        self._state.consecutive_failures = 0

        if old_mode is not mode:
            logger.info(f"Operation mode changed: {old_mode.value} -> {mode.value}")
            self._notify_callbacks(old_mode, mode)

    def force_fallback(self) -> None:
        """Force fallback mode (user preference or tests)."""
        self._set_mode(OperationMode.FALLBACK)
        logger.info("Forced fallback mode")

    def register_callback(self, callback: Callable[[OperationMode, OperationMode], None]) -> None:
        """
        Register a callback for mode changes.

        Args:
            callback: Function called with (old_mode, new_mode)
        """
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[OperationMode, OperationMode], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self, old_mode: OperationMode, new_mode: OperationMode) -> None:
        for callback in self._callbacks:
            try:
                callback(old_mode, new_mode)
            except Exception as e:
                logger.error(f"Error in mode callback: {e}", exc_info=True)

    def get_status_display(self) -> dict:
        """Get status information for display."""
        return {
            "mode": self._state.mode.value,
            "is_remote": self.is_remote,
            "probing": self.is_probing,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_remote": self._state.last_remote.isoformat() if self._state.last_remote else None,
            "probes": self._state.probe_count,
            "failures": self._state.consecutive_failures,
            "error": self._state.error_message,
        }
