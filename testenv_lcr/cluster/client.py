"""Interface for the cluster API used by the provisioning stages."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from testenv_lcr.exceptions import InputException

Object = dict[str, Any]


@dataclass(frozen=True, order=True)
class ObjectKey:
    """Identifier for a kubernetes object."""

    api_version: str
    kind: str
    namespace: str | None
    name: str

    @property
    def namespaced_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @classmethod
    def from_obj(cls, obj: Object) -> "ObjectKey":
        """Return the identity of a raw kubernetes object."""
        if not (api_version := obj.get("apiVersion")):
            raise InputException(f"Invalid object missing apiVersion: {obj}")
        if not (kind := obj.get("kind")):
            raise InputException(f"Invalid object missing kind: {obj}")
        metadata = obj.get("metadata") or {}
        if not (name := metadata.get("name")):
            raise InputException(f"Invalid object missing metadata.name: {obj}")
        return cls(api_version, kind, metadata.get("namespace"), name)

    def __str__(self) -> str:
        """Return the kind and namespaced name concatenated as an id."""
        return f"{self.kind}/{self.namespaced_name}"


class ClusterClient(ABC):
    """Abstract base class for the create/get/delete capability of a cluster."""

    @abstractmethod
    async def create(self, obj: Object) -> None:
        """Create the object in the cluster.

        Raises:
            AlreadyExistsError: If an object with the same identity exists.
            ClusterException: For any other API failure.
        """

    @abstractmethod
    async def get(self, key: ObjectKey) -> Object:
        """Return the object with the specified identity.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ClusterException: For any other API failure.
        """

    @abstractmethod
    async def delete(self, key: ObjectKey) -> None:
        """Delete the object with the specified identity.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            ClusterException: For any other API failure.
        """

    @abstractmethod
    async def list_objects(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[Object]:
        """List objects of a kind, optionally in a namespace and matching labels.

        The label selector has the form `key=value[,key=value]`.
        """
