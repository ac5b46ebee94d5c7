"""Library for issuing commands using asyncio and returning the result."""

import asyncio
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .context import current_stage
from .exceptions import CommandException

_LOGGER = logging.getLogger(__name__)

_CONCURRENCY = 8
_SEM = asyncio.Semaphore(_CONCURRENCY)
_TIMEOUT = 60.0


# No public API
__all__: list[str] = []


def format_path(path: Path) -> str:
    """Format path for debugging."""
    if path.is_absolute():
        cwd = Path.cwd()
        if path.is_relative_to(cwd):
            rel_path = str(path.relative_to(cwd))
            return f"{rel_path} (abs)"
    return str(path)


@dataclass
class Command:
    """An instance of a command to run."""

    cmd: list[str]
    """Array of command line arguments."""

    cwd: Path | None = None
    """Current working directory."""

    exc: type[CommandException] = CommandException
    """Exception to throw in case of an error."""

    retcodes: list[int] | None = None
    """Non-zero error codes that are allowed to indicate success."""

    env: dict[str, str] | None = None
    """Extra environment variables for the subprocess only."""

    timeout: float = _TIMEOUT
    """Seconds to wait for the command before giving up."""

    secrets: list[str] | None = None
    """Values that are masked when the command is rendered for logs."""

    @property
    def string(self) -> str:
        """Render the command as a single string."""
        masked = set(self.secrets or [])
        return " ".join(
            ["***" if arg in masked else shlex.quote(arg) for arg in self.cmd]
        )

    def __str__(self) -> str:
        """Render as a debug string."""
        cwd: str = ""
        if self.cwd:
            cwd = f"({format_path(self.cwd)}) "
        return f"{cwd}{self.string}"

    @property
    def environ(self) -> dict[str, str]:
        """Environment for the child process."""
        return {
            **os.environ,
            **(self.env if self.env else {}),
        }

    async def run(self, stdin: bytes | None = None) -> bytes:
        """Run the command, returning stdout."""
        _LOGGER.debug("[%s] Running command: %s", current_stage(), self)
        try:
            proc = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=self.cwd,
                env=self.environ,
            )
        except OSError as err:
            raise self.exc(f"Command '{self}' could not be started: {err}") from err
        try:
            out, err = await asyncio.wait_for(proc.communicate(stdin), self.timeout)
        except asyncio.TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise self.exc(f"Command '{self}' timed out") from exc
        if proc.returncode:
            if self.retcodes and proc.returncode in self.retcodes:
                return out
            errors = [f"Command '{self}' failed with return code {proc.returncode}"]
            if out:
                errors.append(out.decode("utf-8"))
            if err:
                errors.append(err.decode("utf-8"))
            _LOGGER.debug("\n".join(errors))
            raise self.exc("\n".join(errors))
        return out


async def run(cmd: Command, stdin: bytes | None = None) -> str:
    """Run the specified command and return stdout with whitespace trimmed."""
    async with _SEM:
        out = await cmd.run(stdin)
    return out.decode("utf-8").strip()
