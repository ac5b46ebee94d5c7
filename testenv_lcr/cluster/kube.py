"""Cluster client backed by the kubernetes dynamic client.

The kubernetes client library is synchronous, so every request runs in a
worker thread to keep the event loop responsive while stages run concurrently.
"""

import asyncio
from collections.abc import Callable
import logging
from pathlib import Path
import threading
from typing import Any, TypeVar

from kubernetes import config as kube_config
from kubernetes.client import ApiClient
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import (
    ConflictError,
    DynamicApiError,
    NotFoundError,
    ResourceNotFoundError,
)
from urllib3.exceptions import HTTPError

from testenv_lcr.exceptions import (
    AlreadyExistsError,
    ClusterException,
    ObjectNotFoundError,
)

from .client import ClusterClient, Object, ObjectKey

_LOGGER = logging.getLogger(__name__)

R = TypeVar("R")


class KubernetesClusterClient(ClusterClient):
    """ClusterClient that sends requests to a real API server."""

    def __init__(self, api_client: ApiClient) -> None:
        """Initialize KubernetesClusterClient."""
        self._api_client = api_client
        self._dynamic: DynamicClient | None = None
        self._dynamic_lock = threading.Lock()

    @classmethod
    def from_kubeconfig(cls, kubeconfig_path: Path | str) -> "KubernetesClusterClient":
        """Create a client from a kubeconfig file."""
        try:
            api_client = kube_config.new_client_from_config(
                config_file=str(kubeconfig_path)
            )
        except (ConfigException, OSError) as err:
            raise ClusterException(
                f"Unable to create kubernetes client from {kubeconfig_path}: {err}"
            ) from err
        return cls(api_client)

    def _resource(self, api_version: str, kind: str) -> Any:
        with self._dynamic_lock:
            if self._dynamic is None:
                # Discovery happens here, once, on first use
                self._dynamic = DynamicClient(self._api_client)
        try:
            return self._dynamic.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as err:
            raise ClusterException(
                f"Resource {api_version}/{kind} is not served by the cluster"
            ) from err

    async def _call(self, what: str, fn: Callable[[], R]) -> R:
        try:
            return await asyncio.to_thread(fn)
        except ConflictError as err:
            raise AlreadyExistsError(f"{what} already exists") from err
        except NotFoundError as err:
            raise ObjectNotFoundError(f"{what} not found") from err
        except DynamicApiError as err:
            raise ClusterException(f"{what}: {err.summary()}") from err
        except (ApiException, HTTPError, OSError) as err:
            raise ClusterException(f"{what}: {err}") from err

    async def create(self, obj: Object) -> None:
        """Create the object in the cluster."""
        key = ObjectKey.from_obj(obj)

        def _create() -> None:
            resource = self._resource(key.api_version, key.kind)
            namespace = key.namespace if resource.namespaced else None
            resource.create(body=obj, namespace=namespace)

        _LOGGER.debug("Creating %s", key)
        await self._call(str(key), _create)

    async def get(self, key: ObjectKey) -> Object:
        """Return the object with the specified identity."""

        def _get() -> Object:
            resource = self._resource(key.api_version, key.kind)
            namespace = key.namespace if resource.namespaced else None
            result: Object = resource.get(name=key.name, namespace=namespace).to_dict()
            return result

        return await self._call(str(key), _get)

    async def delete(self, key: ObjectKey) -> None:
        """Delete the object with the specified identity."""

        def _delete() -> None:
            resource = self._resource(key.api_version, key.kind)
            namespace = key.namespace if resource.namespaced else None
            resource.delete(name=key.name, namespace=namespace)

        _LOGGER.debug("Deleting %s", key)
        await self._call(str(key), _delete)

    async def list_objects(
        self,
        api_version: str,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[Object]:
        """List objects of a kind, optionally in a namespace and matching labels."""

        def _list() -> list[Object]:
            resource = self._resource(api_version, kind)
            result = resource.get(namespace=namespace, label_selector=label_selector)
            items: list[Object] = result.to_dict().get("items") or []
            return items

        return await self._call(f"{api_version}/{kind}", _list)
