"""Port-forward from the local host to the in-cluster registry service.

The forward is a `kubectl port-forward` child process supervised for the
lifetime of one session. There is no port negotiation: the local port is the
registry port, which the hosts file entry relies on.
"""

import asyncio
from collections import deque
import contextlib
import logging
import os
from pathlib import Path
import subprocess
import time

from . import manifest
from .exceptions import CommandException, PortForwardTimeoutError

__all__ = [
    "PortForwarder",
]

_LOGGER = logging.getLogger(__name__)

KUBECTL_BIN = "kubectl"
LOCAL_HOST = "127.0.0.1"
POLL_INTERVAL = 0.1
DEFAULT_TIMEOUT = 30.0
STDERR_TAIL_LINES = 20


class PortForwarder:
    """Manages a port-forward to the registry service."""

    def __init__(
        self,
        namespace: str,
        kubeconfig_path: Path | str | None = None,
        local_port: int = manifest.REGISTRY_PORT,
        timeout: float = DEFAULT_TIMEOUT,
        kubectl: str = KUBECTL_BIN,
    ) -> None:
        """Initialize PortForwarder."""
        self._namespace = namespace
        self._kubeconfig_path = kubeconfig_path
        self._local_port = local_port
        self._timeout = timeout
        self._kubectl = kubectl
        self._proc: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self.started = False

    @property
    def local_port(self) -> int:
        return self._local_port

    @property
    def local_endpoint(self) -> str:
        return f"{LOCAL_HOST}:{self._local_port}"

    @property
    def cmd(self) -> list[str]:
        return [
            self._kubectl,
            "port-forward",
            "-n",
            self._namespace,
            f"svc/{manifest.NAME}",
            f"{self._local_port}:{manifest.REGISTRY_PORT}",
        ]

    def _environ(self) -> dict[str, str]:
        env = dict(os.environ)
        if self._kubeconfig_path:
            env["KUBECONFIG"] = str(self._kubeconfig_path)
        return env

    async def start(self) -> None:
        """Start the port-forward and wait until the local port accepts connections.

        Raises:
            CommandException: If kubectl cannot be started or exits early.
            PortForwardTimeoutError: If the port is not reachable in time.
        """
        if self.started:
            return
        _LOGGER.debug("Running command: %s", " ".join(self.cmd))
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                env=self._environ(),
            )
        except OSError as err:
            raise CommandException(f"Unable to start port-forward: {err}") from err
        self.started = True
        self._stderr_tail.clear()
        if self._proc.stderr is not None:
            self._stderr_task = asyncio.create_task(
                self._drain_stderr(self._proc.stderr), name="port-forward-stderr"
            )
        try:
            await self._wait_for_ready()
        except Exception:
            await self.stop()
            raise
        _LOGGER.info(
            "Port-forward established: %s -> svc/%s:%d",
            self.local_endpoint,
            manifest.NAME,
            manifest.REGISTRY_PORT,
        )

    async def _wait_for_ready(self) -> None:
        deadline = time.monotonic() + self._timeout
        while True:
            if self._proc is not None and self._proc.returncode is not None:
                if self._stderr_task is not None:
                    await asyncio.wait([self._stderr_task], timeout=1.0)
                raise CommandException(
                    f"Port-forward exited with return code {self._proc.returncode}: "
                    + "\n".join(self._stderr_tail)
                )
            if await self._can_connect():
                return
            if time.monotonic() >= deadline:
                raise PortForwardTimeoutError(
                    f"Timeout waiting for port-forward on {self.local_endpoint} "
                    f"after {self._timeout}s"
                )
            await asyncio.sleep(POLL_INTERVAL)

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        """Read kubectl output for the whole session, keeping the last lines."""
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                # Over-long line, already discarded by the reader
                continue
            if not line:
                return
            text = line.decode("utf-8", errors="replace").rstrip()
            _LOGGER.debug("kubectl: %s", text)
            self._stderr_tail.append(text)

    async def _can_connect(self) -> bool:
        try:
            async with asyncio.timeout(POLL_INTERVAL):
                _, writer = await asyncio.open_connection(LOCAL_HOST, self._local_port)
        except (OSError, TimeoutError):
            return False
        writer.close()
        with contextlib.suppress(OSError):
            await writer.wait_closed()
        return True

    async def stop(self) -> None:
        """Stop the port-forward. Safe to call at any time."""
        proc, self._proc = self._proc, None
        was_started, self.started = self.started, False
        if (task := self._stderr_task) is not None:
            self._stderr_task = None
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if not was_started or proc is None or proc.returncode is not None:
            return
        try:
            proc.kill()
            await proc.wait()
        except ProcessLookupError:
            pass
        _LOGGER.info("Port-forward closed")

    async def __aenter__(self) -> "PortForwarder":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
