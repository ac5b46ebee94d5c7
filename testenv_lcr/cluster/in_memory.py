"""Module for an in memory cluster."""

import copy
import datetime
import logging
from typing import Any

from testenv_lcr.exceptions import AlreadyExistsError, ObjectNotFoundError

from .client import ClusterClient, Object, ObjectKey

_LOGGER = logging.getLogger(__name__)

NAMESPACE_KIND = "Namespace"


def _matches(obj: Object, label_selector: str | None) -> bool:
    if not label_selector:
        return True
    labels = (obj.get("metadata") or {}).get("labels") or {}
    for term in label_selector.split(","):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class InMemoryClusterClient(ClusterClient):
    """In-memory implementation of the ClusterClient interface.

    Objects are stored by ObjectKey. Deleting a namespace removes every
    object in it, as the API server eventually does. Tests may inject
    failures for an operation on a kind and patch object status.
    """

    def __init__(self) -> None:
        """Initialize the InMemoryClusterClient."""
        self._objects: dict[ObjectKey, Object] = {}
        self._failures: dict[tuple[str, str], Exception] = {}
        self.requests: list[tuple[str, ObjectKey]] = []

    def fail(self, operation: str, kind: str, err: Exception) -> None:
        """Raise the error on every later `operation` for objects of `kind`."""
        self._failures[(operation, kind)] = err

    def _check_failure(self, operation: str, key: ObjectKey) -> None:
        self.requests.append((operation, key))
        if (err := self._failures.get((operation, key.kind))) is not None:
            raise err

    def set_status(self, key: ObjectKey, status: dict[str, Any]) -> None:
        """Replace the status of a stored object."""
        if key not in self._objects:
            raise ObjectNotFoundError(f"{key} not found")
        self._objects[key]["status"] = copy.deepcopy(status)

    def keys(self) -> list[ObjectKey]:
        """Return the identity of every stored object."""
        return sorted(self._objects)

    async def create(self, obj: Object) -> None:
        """Create the object in the cluster."""
        key = ObjectKey.from_obj(obj)
        self._check_failure("create", key)
        if key in self._objects:
            raise AlreadyExistsError(f"{key} already exists")
        if key.namespace and key.kind != NAMESPACE_KIND:
            ns_key = ObjectKey("v1", NAMESPACE_KIND, None, key.namespace)
            if ns_key not in self._objects:
                raise ObjectNotFoundError(f"namespace {key.namespace} not found")
        stored = copy.deepcopy(obj)
        now = datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)
        stored.setdefault("metadata", {})["creationTimestamp"] = now.isoformat()
        _LOGGER.debug("Creating object %s", key)
        self._objects[key] = stored

    async def get(self, key: ObjectKey) -> Object:
        """Return the object with the specified identity."""
        self._check_failure("get", key)
        if (obj := self._objects.get(key)) is None:
            raise ObjectNotFoundError(f"{key} not found")
        return copy.deepcopy(obj)

    async def delete(self, key: ObjectKey) -> None:
        """Delete the object with the specified identity."""
        self._check_failure("delete", key)
        if key not in self._objects:
            raise ObjectNotFoundError(f"{key} not found")
        _LOGGER.debug("Deleting object %s", key)
        del self._objects[key]
        if key.kind == NAMESPACE_KIND:
            for child in [k for k in self._objects if k.namespace == key.name]:
                del self._objects[child]

    async def list_objects(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[Object]:
        """List objects of a kind, optionally in a namespace and matching labels."""
        self._check_failure("list", ObjectKey(api_version, kind, namespace, "*"))
        return [
            copy.deepcopy(obj)
            for key, obj in sorted(self._objects.items())
            if key.api_version == api_version
            and key.kind == kind
            and (namespace is None or key.namespace == namespace)
            and _matches(obj, label_selector)
        ]
