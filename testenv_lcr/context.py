"""Utilities for tracing provisioning stages."""

import contextvars
from contextlib import contextmanager
import logging
from time import perf_counter
from typing import Generator


_LOGGER = logging.getLogger(__name__)

# No public API
__all__: list[str] = []


trace: contextvars.ContextVar[list[str]] = contextvars.ContextVar("trace")


def current_stage() -> str:
    """Return the label of the stage running in the current task."""
    return " > ".join(trace.get([])) or "<root>"


@contextmanager
def trace_context(name: str) -> Generator[None, None, None]:
    """Record entry, exit and duration of a named stage.

    The stack is a context variable so each asyncio task created inside the
    context inherits the label of its parent stage.
    """
    stack = trace.get([])
    token = trace.set(stack + [name])
    label = " > ".join(stack + [name])
    t1 = perf_counter()
    _LOGGER.debug("[Trace] > %s", label)
    try:
        yield
    except Exception as err:
        _LOGGER.debug("[Trace] ! %s failed: %s", label, err)
        raise
    finally:
        t2 = perf_counter()
        trace.reset(token)
        _LOGGER.debug("[Trace] < %s (%0.2fs)", label, (t2 - t1))
