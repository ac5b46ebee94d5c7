"""Scoping of the TaskService to a provisioning run."""

import contextlib
import contextvars
import logging
from collections.abc import AsyncGenerator

from .service import TaskService, TaskServiceImpl

__all__: list[str] = []

_LOGGER = logging.getLogger(__name__)

_current_service: contextvars.ContextVar[TaskService | None] = contextvars.ContextVar(
    "_current_service", default=None
)


def get_task_service() -> TaskService:
    """Return the task service of the enclosing `task_service_context`.

    Raises:
        LookupError: When called outside of a task service context.
    """
    if (service := _current_service.get()) is None:
        raise LookupError("No task service outside of task_service_context")
    return service


@contextlib.asynccontextmanager
async def task_service_context(
    service: TaskService | None = None,
) -> AsyncGenerator[TaskService, None]:
    """Scope a task service to the enclosed block.

    Tasks that are still active when the block exits, for example because the
    caller was cancelled while waiting on them, are cancelled.
    """
    service = service or TaskServiceImpl()
    token = _current_service.set(service)
    try:
        yield service
    finally:
        _current_service.reset(token)
        if active := service.get_num_active_tasks():
            _LOGGER.debug("Cancelling %d tasks left in the context", active)
            await service.cancel_all()
