"""Manage the hosts file entry that resolves the registry FQDN locally.

The entry points the registry FQDN at the local end of the port-forward so
that clients verify the registry certificate against the name it was issued
for. Writes usually need root, so they run through `sh` with the elevated
prepend command (e.g. `sudo`).
"""

import logging
from pathlib import Path
import shlex

import aiofiles

from . import command
from .config import DEFAULT_HOSTS_FILE, Envs
from .exceptions import CommandException, InputException

__all__ = [
    "HostsFile",
]

_LOGGER = logging.getLogger(__name__)

HOSTS_IP = "127.0.0.1"


class HostsFile:
    """Adds and removes the registry entry of a hosts file."""

    def __init__(self, envs: Envs, path: Path | str = DEFAULT_HOSTS_FILE) -> None:
        """Initialize HostsFile."""
        self._envs = envs
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def has_entry(self, fqdn: str) -> bool:
        """Return True if a non-comment line mentions the FQDN."""
        try:
            async with aiofiles.open(self._path) as hosts:
                content = await hosts.read()
        except FileNotFoundError:
            return False
        except OSError as err:
            raise InputException(f"Unable to read {self._path}: {err}") from err
        for line in content.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if fqdn in stripped.split():
                return True
        return False

    async def _sh(self, script: str) -> None:
        await command.run(
            command.Command(self._envs.elevated("sh", "-c", script), exc=CommandException)
        )

    async def add(self, fqdn: str) -> bool:
        """Add the entry for the FQDN, returning False if it was already present."""
        if await self.has_entry(fqdn):
            _LOGGER.info("%s entry already exists for %s", self._path, fqdn)
            return False
        entry = f"{HOSTS_IP} {fqdn}"
        await self._sh(f"echo {shlex.quote(entry)} >> {shlex.quote(str(self._path))}")
        _LOGGER.info("Added %s entry: %s", self._path, entry)
        return True

    async def remove(self, fqdn: str) -> bool:
        """Remove the entry for the FQDN, returning False if it was absent."""
        if not await self.has_entry(fqdn):
            _LOGGER.info("%s entry does not exist for %s", self._path, fqdn)
            return False
        escaped = fqdn.replace(".", r"\.")
        pattern = rf"/^[^#]*[[:space:]]{escaped}\([[:space:]].*\)\{{0,1\}}$/d"
        await self._sh(f"sed -i {shlex.quote(pattern)} {shlex.quote(str(self._path))}")
        _LOGGER.info("Removed %s entry for %s", self._path, fqdn)
        return True
