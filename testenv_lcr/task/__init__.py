"""Task tracking module for testenv-lcr.

This module provides a task tracking service that runs the provisioning
stages concurrently, notifies listeners when a stage fails, and combines the
failures of all stages into a single error.
"""

from .context import task_service_context, get_task_service
from .service import TaskService

__all__ = ["get_task_service", "task_service_context", "TaskService"]
