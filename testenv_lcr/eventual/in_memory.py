"""Module for in memory eventual config."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, TypeVar

from testenv_lcr.exceptions import (
    ClosedSourceError,
    TypeMismatchError,
    UndeclaredKeyError,
)

from .config import EventualConfig

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _Slot:
    """Holds a single published value and the signal readers wait on."""

    ready: asyncio.Event = field(default_factory=asyncio.Event)
    has_value: bool = False
    value: Any = None


class InMemoryEventualConfig(EventualConfig):
    """In-memory implementation of the EventualConfig interface.

    The map of slots is frozen at construction, after which only the state
    of individual slots changes. Each slot stores its value once and sets
    an event that wakes every waiting reader; later readers see the event
    already set and return the stored value immediately.
    """

    def __init__(self, keys: Iterable[str]) -> None:
        """Initialize the InMemoryEventualConfig with the declared keys."""
        self._slots: MappingProxyType[str, _Slot] = MappingProxyType(
            {key: _Slot() for key in keys}
        )
        self._closed = False

    @property
    def keys(self) -> Iterable[str]:
        """Return the keys declared when the config was created."""
        return self._slots.keys()

    @property
    def closed(self) -> bool:
        """Return True if the config was closed."""
        return self._closed

    def _slot(self, key: str) -> _Slot:
        if (slot := self._slots.get(key)) is None:
            raise UndeclaredKeyError(key)
        return slot

    def set_value(self, key: str, value: Any) -> None:
        """Publish the value for a declared key."""
        slot = self._slot(key)
        if self._closed:
            raise ClosedSourceError(key)
        if slot.has_value:
            if slot.value != value:
                _LOGGER.warning(
                    "Ignoring new value for '%s'; a value was already published",
                    key,
                )
            return
        _LOGGER.debug("Publishing value for '%s'", key)
        slot.value = value
        slot.has_value = True
        slot.ready.set()

    def get_value(self, key: str, cls: type[T]) -> T | None:
        """Return the value for a key if it has been published, without waiting."""
        slot = self._slot(key)
        if not slot.has_value:
            return None
        return self._check_type(key, slot.value, cls)

    async def await_value(
        self, key: str, cls: type[T], timeout: float | None = None
    ) -> T:
        """Wait for the value of the specified key to be published."""
        slot = self._slot(key)
        if not slot.has_value:
            if self._closed:
                raise ClosedSourceError(key)
            _LOGGER.debug("await_value: '%s' not published, waiting", key)
            try:
                async with asyncio.timeout(timeout):
                    await slot.ready.wait()
            except asyncio.CancelledError:
                _LOGGER.debug("await_value for '%s' cancelled.", key)
                raise
            except TimeoutError:
                _LOGGER.debug("await_value for '%s' timed out after %ss", key, timeout)
                raise
            if not slot.has_value:
                raise ClosedSourceError(key)
        return self._check_type(key, slot.value, cls)

    def close(self) -> None:
        """Close the source, failing any reader still waiting for a value."""
        if self._closed:
            return
        self._closed = True
        pending = [key for key, slot in self._slots.items() if not slot.has_value]
        if pending:
            _LOGGER.debug("Closing eventual config with unset keys: %s", pending)
        for key in pending:
            self._slots[key].ready.set()

    @staticmethod
    def _check_type(key: str, value: Any, cls: type[T]) -> T:
        if not isinstance(value, cls):
            raise TypeMismatchError(key, cls, value)
        return value
