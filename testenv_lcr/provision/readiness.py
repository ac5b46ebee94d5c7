"""Readiness polling for the registry workload."""

import asyncio
import contextlib
import enum
import logging
import time

from testenv_lcr.cluster import ClusterClient, ObjectKey
from testenv_lcr.exceptions import ReadinessTimeoutError

__all__ = [
    "ReadinessPoller",
    "ReadinessState",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_INTERVAL = 1.0


class ReadinessState(str, enum.Enum):
    """State of a readiness poll."""

    POLLING = "Polling"
    READY = "Ready"
    CANCELLED = "Cancelled"
    ERROR = "Error"


class ReadinessPoller:
    """Polls the status of a workload until it has a ready replica."""

    def __init__(
        self,
        client: ClusterClient,
        key: ObjectKey,
        interval: float = DEFAULT_INTERVAL,
    ) -> None:
        """Initialize ReadinessPoller."""
        self._client = client
        self._key = key
        self._interval = interval
        self.state = ReadinessState.POLLING
        self.error: Exception | None = None
        self.ticks = 0

    async def _wait_tick(self, cancel: asyncio.Event, deadline: float | None) -> bool:
        """Wait one interval, returning False if the poll should stop."""
        delay = self._interval
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            delay = min(delay, remaining)
        with contextlib.suppress(TimeoutError):
            async with asyncio.timeout(delay):
                await cancel.wait()
        if cancel.is_set():
            return False
        return deadline is None or time.monotonic() < deadline

    async def _ready_replicas(self) -> int:
        obj = await self._client.get(self._key)
        return int((obj.get("status") or {}).get("readyReplicas") or 0)

    async def poll(
        self, cancel: asyncio.Event | None = None, timeout: float | None = None
    ) -> ReadinessState:
        """Poll until the workload is ready, the poll is cancelled or a read fails.

        Passing the deadline counts as a cancellation.
        """
        cancel = cancel or asyncio.Event()
        deadline = time.monotonic() + timeout if timeout is not None else None
        self.state = ReadinessState.POLLING
        self.error = None
        self.ticks = 0
        while self.state == ReadinessState.POLLING:
            if not await self._wait_tick(cancel, deadline):
                self.state = ReadinessState.CANCELLED
                break
            self.ticks += 1
            try:
                ready = await self._ready_replicas()
            except Exception as err:
                _LOGGER.debug("Failed to read status of %s: %s", self._key, err)
                self.error = err
                self.state = ReadinessState.ERROR
                break
            _LOGGER.debug("%s has %d ready replicas", self._key, ready)
            if ready > 0:
                self.state = ReadinessState.READY
        _LOGGER.debug("Poll of %s finished: %s", self._key, self.state.value)
        return self.state

    async def wait_ready(self, timeout: float) -> None:
        """Wait for the workload to become ready.

        Raises:
            ReadinessTimeoutError: If the workload is not ready in time.
        """
        state = await self.poll(timeout=timeout)
        if state == ReadinessState.ERROR and self.error is not None:
            raise self.error
        if state != ReadinessState.READY:
            raise ReadinessTimeoutError(
                f"{self._key} did not become ready within {timeout}s"
            )
        _LOGGER.info("%s is ready", self._key)
