"""
The eventual module provides a store of values that become available at some
later point during a provisioning run.

- Keys are declared up front and the set of valid keys never changes.
- A value is published once and broadcast to every current and future reader.
- Readers request the type they expect so values are checked at the boundary.

Provisioning stages use it to hand values to each other without knowing which
stage produces them or in what order the stages run.
"""

from .config import EventualConfig
from .in_memory import InMemoryEventualConfig

__all__ = [
    "EventualConfig",
    "InMemoryEventualConfig",
]
