"""Image pull secrets that let workloads pull from the local registry.

Secrets are labelled as managed by testenv-lcr so teardown can find them in
any namespace without state from the run that created them.
"""

import base64
from dataclasses import dataclass
import json
import logging

from testenv_lcr import manifest
from testenv_lcr.cluster import ClusterClient
from testenv_lcr.config import DEFAULT_IMAGE_PULL_SECRET_NAME
from testenv_lcr.exceptions import (
    ClusterException,
    ObjectNotFoundError,
    ResourceCreateError,
)

from .credential import Credentials

__all__ = [
    "ImagePullSecret",
    "ImagePullSecretInfo",
    "list_image_pull_secrets",
]

_LOGGER = logging.getLogger(__name__)

MANAGED_BY_LABELS = {manifest.MANAGED_BY_LABEL: manifest.NAME}
MANAGED_BY_SELECTOR = f"{manifest.MANAGED_BY_LABEL}={manifest.NAME}"


@dataclass(frozen=True)
class ImagePullSecretInfo:
    """An image pull secret found in the cluster."""

    namespace: str
    secret_name: str
    created_at: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.namespace}/{self.secret_name}"


def docker_config_json(
    registry_fqdn: str, credentials: Credentials, port: int = manifest.REGISTRY_PORT
) -> bytes:
    """Return the docker config authenticating against the registry.

    The kubelet matches auth entries on host and port, so the entry is keyed
    by the same address images are pushed to.
    """
    auth = base64.b64encode(
        f"{credentials.username}:{credentials.password}".encode()
    ).decode()
    return json.dumps(
        {
            "auths": {
                f"{registry_fqdn}:{port}": {
                    "username": credentials.username,
                    "password": credentials.password,
                    "auth": auth,
                }
            }
        }
    ).encode()


class ImagePullSecret:
    """Creates image pull secrets for the registry."""

    def __init__(
        self,
        client: ClusterClient,
        secret_name: str,
        registry_fqdn: str,
        credentials: Credentials,
    ) -> None:
        """Initialize ImagePullSecret."""
        self._client = client
        self._secret_name = secret_name or DEFAULT_IMAGE_PULL_SECRET_NAME
        self._fqdn = registry_fqdn
        self._credentials = credentials

    async def _ensure_namespace(self, namespace: str) -> None:
        try:
            await self._client.get(manifest.namespace_key(namespace))
        except ObjectNotFoundError:
            _LOGGER.info("Creating namespace %s", namespace)
            await self._client.create(
                manifest.namespace(namespace, labels=MANAGED_BY_LABELS)
            )

    async def create_in_namespace(self, namespace: str) -> str:
        """Create the secret in a namespace, creating the namespace if needed.

        Returns the namespaced name of the secret.
        """
        full_name = f"{namespace}/{self._secret_name}"
        try:
            await self._ensure_namespace(namespace)
            await self._client.create(
                manifest.secret(
                    self._secret_name,
                    namespace,
                    {
                        manifest.DOCKER_CONFIG_JSON_KEY: docker_config_json(
                            self._fqdn, self._credentials
                        )
                    },
                    secret_type=manifest.SECRET_TYPE_DOCKER_CONFIG_JSON,
                    labels=MANAGED_BY_LABELS,
                )
            )
        except ClusterException as err:
            raise ResourceCreateError(f"image pull secret {full_name}", str(err)) from err
        return full_name

    async def create_in_namespaces(
        self, namespaces: list[str]
    ) -> tuple[dict[str, str], ExceptionGroup | None]:
        """Create the secret in each namespace, continuing past failures.

        Returns the created secret name per namespace and the failures, if any.
        """
        created: dict[str, str] = {}
        errors: list[Exception] = []
        for namespace in namespaces:
            try:
                created[namespace] = await self.create_in_namespace(namespace)
            except ResourceCreateError as err:
                _LOGGER.warning("%s", err)
                errors.append(err)
        if errors:
            return created, ExceptionGroup("Failed to create image pull secrets", errors)
        return created, None


async def list_image_pull_secrets(
    client: ClusterClient, namespace: str | None = None
) -> list[ImagePullSecretInfo]:
    """List the image pull secrets created by testenv-lcr.

    Lists every namespace when no namespace is given.
    """
    objs = await client.list_objects(
        manifest.CORE_API_VERSION,
        manifest.SECRET_KIND,
        namespace=namespace or None,
        label_selector=MANAGED_BY_SELECTOR,
    )
    return [
        ImagePullSecretInfo(
            namespace=obj["metadata"]["namespace"],
            secret_name=obj["metadata"]["name"],
            created_at=obj["metadata"].get("creationTimestamp"),
        )
        for obj in objs
        if obj.get("type") == manifest.SECRET_TYPE_DOCKER_CONFIG_JSON
    ]
