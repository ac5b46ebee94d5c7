"""Interface for a configuration that is populated asynchronously."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any, TypeVar

T = TypeVar("T")


class EventualConfig(ABC):
    """Abstract base class for a set of write-once, read-many values."""

    @property
    @abstractmethod
    def keys(self) -> Iterable[str]:
        """Return the keys declared when the config was created."""

    @abstractmethod
    def set_value(self, key: str, value: Any) -> None:
        """Publish the value for a declared key.

        Every current and future call to `await_value` for the key will
        observe the value.

        Raises:
            UndeclaredKeyError: If the key was not declared.
            ClosedSourceError: If the config has already been closed.
        """

    @abstractmethod
    def get_value(self, key: str, cls: type[T]) -> T | None:
        """Return the value for a key if it has been published, without waiting."""

    @abstractmethod
    async def await_value(
        self, key: str, cls: type[T], timeout: float | None = None
    ) -> T:
        """
        Wait for the value of the specified key to be published.

        If the value was already published, returns it immediately. The
        caller may bound the wait with a timeout; asyncio cancellation of the
        calling task also interrupts the wait.

        Args:
            key: The declared key to wait for.
            cls: The type the caller expects the value to have.
            timeout: Optional number of seconds to wait before giving up.

        Returns:
            The published value.

        Raises:
            UndeclaredKeyError: If the key was not declared. Never blocks.
            ClosedSourceError: If the config is closed before a value arrives.
            TypeMismatchError: If the published value is not an instance of cls.
            TimeoutError: If the timeout elapses first.
            asyncio.CancelledError: If the wait is cancelled.
        """

    @abstractmethod
    def close(self) -> None:
        """Close the source, failing any reader still waiting for a value."""
