"""Tests for the readiness poller."""

import asyncio
from typing import Any

import pytest

from testenv_lcr import manifest
from testenv_lcr.cluster import InMemoryClusterClient, ObjectKey
from testenv_lcr.exceptions import ObjectNotFoundError, ReadinessTimeoutError
from testenv_lcr.provision import ReadinessPoller, ReadinessState

NAMESPACE = "testenv-lcr"
KEY = manifest.deployment_key("testenv-lcr", NAMESPACE)


class ReadyAfterClient(InMemoryClusterClient):
    """Reports the deployment ready once it was read a number of times."""

    def __init__(self, not_ready_reads: int) -> None:
        super().__init__()
        self.not_ready_reads = not_ready_reads
        self.reads = 0

    async def get(self, key: ObjectKey) -> dict[str, Any]:
        obj = await super().get(key)
        self.reads += 1
        if self.reads > self.not_ready_reads:
            obj["status"] = {"readyReplicas": 1}
        return obj


async def _create_deployment(client: InMemoryClusterClient) -> None:
    await client.create(manifest.namespace(NAMESPACE))
    await client.create(
        manifest.deployment(
            "testenv-lcr", NAMESPACE, "image", 5000, {"app": "testenv-lcr"}, []
        )
    )


async def test_ready_after_ticks() -> None:
    """Test the poll finishes on the first tick with a ready replica."""
    client = ReadyAfterClient(not_ready_reads=3)
    await _create_deployment(client)

    poller = ReadinessPoller(client, KEY, interval=0.01)
    assert poller.state == ReadinessState.POLLING
    assert await asyncio.wait_for(poller.poll(), 1) == ReadinessState.READY
    assert poller.state == ReadinessState.READY
    assert poller.ticks == 4
    assert poller.error is None


async def test_cancel() -> None:
    """Test a cancel is observed within one interval."""
    client = InMemoryClusterClient()
    await _create_deployment(client)

    cancel = asyncio.Event()
    poller = ReadinessPoller(client, KEY, interval=10)
    task = asyncio.create_task(poller.poll(cancel))
    await asyncio.sleep(0.01)
    cancel.set()

    assert await asyncio.wait_for(task, 1) == ReadinessState.CANCELLED
    assert poller.ticks == 0


async def test_error() -> None:
    """Test a failed read stops the poll."""
    client = InMemoryClusterClient()
    poller = ReadinessPoller(client, KEY, interval=0.01)
    assert await asyncio.wait_for(poller.poll(), 1) == ReadinessState.ERROR
    assert isinstance(poller.error, ObjectNotFoundError)
    assert poller.ticks == 1


async def test_deadline_cancels() -> None:
    """Test passing the deadline is reported as a cancellation."""
    client = InMemoryClusterClient()
    await _create_deployment(client)
    poller = ReadinessPoller(client, KEY, interval=0.01)
    assert await poller.poll(timeout=0.05) == ReadinessState.CANCELLED
    assert poller.ticks > 0


async def test_wait_ready() -> None:
    """Test waiting for a workload that becomes ready."""
    client = ReadyAfterClient(not_ready_reads=1)
    await _create_deployment(client)
    await ReadinessPoller(client, KEY, interval=0.01).wait_ready(timeout=5)


async def test_wait_ready_timeout() -> None:
    """Test waiting for a workload that never becomes ready."""
    client = InMemoryClusterClient()
    await _create_deployment(client)
    poller = ReadinessPoller(client, KEY, interval=0.01)
    with pytest.raises(ReadinessTimeoutError, match="did not become ready within"):
        await poller.wait_ready(timeout=0.05)


async def test_wait_ready_error() -> None:
    """Test the read error is raised to the caller."""
    poller = ReadinessPoller(InMemoryClusterClient(), KEY, interval=0.01)
    with pytest.raises(ObjectNotFoundError):
        await poller.wait_ready(timeout=5)
