"""Task tracking service for testenv-lcr.

Stages are started as asyncio tasks and awaited together; failures are kept
rather than raised one by one so the caller sees every stage that failed.
"""

import asyncio
from collections.abc import Callable
from functools import partial
import logging
from typing import Any, Coroutine, Set
from abc import ABC, abstractmethod

_LOGGER = logging.getLogger(__name__)

__all__: list[str] = []


class TaskService(ABC):
    """Service for tracking and waiting for asynchronous tasks."""

    @abstractmethod
    def create_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new task.

        Args:
            coro: The coroutine to run as a task
            name: Optional name used when reporting failures

        Returns:
            The created task
        """

    @abstractmethod
    def add_failure_listener(
        self, callback: Callable[[asyncio.Task[Any], BaseException], None]
    ) -> Callable[[], None]:
        """Register a callback invoked as soon as any tracked task fails.

        Returns a callable that can be called to remove the listener.
        """

    @abstractmethod
    async def block_till_done(self, message: str = "Tasks failed") -> None:
        """Wait for all active tasks to complete.

        Raises:
            ExceptionGroup: Holding the error of every task that failed.
        """

    @abstractmethod
    async def cancel_all(self) -> None:
        """Cancel all active tasks and wait for them to finish."""

    @abstractmethod
    def get_num_active_tasks(self) -> int:
        """Get the number of active tasks."""


class TaskServiceImpl(TaskService):
    """Service for tracking and waiting for asynchronous tasks."""

    def __init__(self) -> None:
        """Initialize the task service."""
        self._active_tasks: Set[asyncio.Task[Any]] = set()
        self._listeners: list[Callable[[asyncio.Task[Any], BaseException], None]] = []

    def create_task(
        self, coro: Coroutine[None, None, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Create and track a new task."""
        task = asyncio.create_task(coro, name=name)
        self._active_tasks.add(task)
        task.add_done_callback(partial(self._task_done, self._active_tasks))
        return task

    def add_failure_listener(
        self, callback: Callable[[asyncio.Task[Any], BaseException], None]
    ) -> Callable[[], None]:
        """Register a callback invoked as soon as any tracked task fails."""

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        self._listeners.append(callback)
        return remove

    def _task_done(
        self, task_set: Set[asyncio.Task[Any]], task: asyncio.Task[Any]
    ) -> None:
        """Callback when a task is done.

        The task stays in the set until `block_till_done` collects its
        result, so a failure is never lost.
        """
        if task.cancelled():
            task_set.discard(task)
            return
        if (err := task.exception()) is None:
            return
        _LOGGER.error("Task %s failed: %s", task.get_name(), err)
        for cb in list(self._listeners):
            try:
                cb(task, err)
            except Exception:
                _LOGGER.exception("Task failure listener failed for %s", task.get_name())

    async def block_till_done(self, message: str = "Tasks failed") -> None:
        """Wait for all active tasks to complete."""
        active_tasks = list(self._active_tasks)
        if not active_tasks:
            _LOGGER.debug("No active tasks to wait for")
            await asyncio.sleep(0)
            return
        _LOGGER.debug("Waiting for %d tasks to complete", len(active_tasks))
        results = await asyncio.gather(*active_tasks, return_exceptions=True)
        self._active_tasks.difference_update(active_tasks)
        errors = [
            result
            for result in results
            if isinstance(result, Exception)
            and not isinstance(result, asyncio.CancelledError)
        ]
        if errors:
            raise ExceptionGroup(message, errors)

    async def cancel_all(self) -> None:
        """Cancel all active tasks and wait for them to finish."""
        active_tasks = list(self._active_tasks)
        for task in active_tasks:
            task.cancel()
        await asyncio.gather(*active_tasks, return_exceptions=True)
        self._active_tasks.difference_update(active_tasks)

    def get_num_active_tasks(self) -> int:
        """Get the number of tasks not yet collected."""
        return len(self._active_tasks)
