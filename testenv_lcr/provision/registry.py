"""Registry config and deployment stages.

Both stages wait for the values published by the credential and TLS stages,
so they can be started at the same time as those stages.
"""

import logging

from testenv_lcr import manifest
from testenv_lcr.cluster import ClusterClient
from testenv_lcr.context import trace_context
from testenv_lcr.eventual import EventualConfig
from testenv_lcr.exceptions import (
    AlreadyExistsError,
    ClusterException,
    InputException,
    ResourceCreateError,
)
from testenv_lcr.manifest import Mount

from .keys import CREDENTIAL, TLS, CredentialReference, TlsMaterial

__all__ = [
    "RegistryConfigStage",
    "RegistryDeploymentStage",
    "registry_fqdn",
]

_LOGGER = logging.getLogger(__name__)

CONFIG_MAP_NAME = f"{manifest.NAME}-config"
CONFIG_MOUNT = Mount(directory="/etc/docker/registry", filename="config.yml")
STORAGE_ROOT = "/var/lib/registry"

DEFAULT_AWAIT_TIMEOUT = 300.0

REGISTRY_CONFIG_TEMPLATE = """\
version: 0.1
auth:
  htpasswd:
    realm: basic-realm
    path: {credential_path}

http:
  addr: 0.0.0.0:{port}
  host: https://{fqdn}:{port}
  tls:
    certificate: {cert_path}
    key: {key_path}

storage:
  filesystem:
    rootdirectory: {storage_root}
"""


def registry_fqdn(namespace: str) -> str:
    """Return the in-cluster service name of the registry."""
    return f"{manifest.NAME}.{namespace}.svc.cluster.local"


def render_registry_config(
    template: str,
    credential: CredentialReference,
    tls: TlsMaterial,
    fqdn: str,
    port: int = manifest.REGISTRY_PORT,
) -> str:
    """Render the registry configuration file."""
    try:
        return template.format(
            credential_path=credential.mount.path,
            port=port,
            fqdn=fqdn,
            cert_path=tls.cert.path,
            key_path=tls.key.path,
            storage_root=STORAGE_ROOT,
        )
    except (KeyError, IndexError, ValueError) as err:
        raise InputException(f"Unable to render registry config: {err}") from err


async def _await_inputs(
    ec: EventualConfig, timeout: float | None
) -> tuple[CredentialReference, TlsMaterial]:
    credential = await ec.await_value(CREDENTIAL, CredentialReference, timeout)
    tls = await ec.await_value(TLS, TlsMaterial, timeout)
    return credential, tls


async def _create(client: ClusterClient, obj: dict) -> None:
    """Create the object, treating an existing object as success."""
    name = f"{obj['kind']} {obj['metadata'].get('namespace')}/{obj['metadata']['name']}"
    try:
        await client.create(obj)
    except AlreadyExistsError:
        _LOGGER.info("%s already exists (skipping creation)", name)
    except ClusterException as err:
        raise ResourceCreateError(name, str(err)) from err


class RegistryConfigStage:
    """Renders the registry configuration into a ConfigMap."""

    def __init__(
        self,
        client: ClusterClient,
        namespace: str,
        eventual_config: EventualConfig,
        await_timeout: float | None = DEFAULT_AWAIT_TIMEOUT,
        template: str = REGISTRY_CONFIG_TEMPLATE,
    ) -> None:
        """Initialize RegistryConfigStage."""
        self._client = client
        self._namespace = namespace
        self._ec = eventual_config
        self._await_timeout = await_timeout
        self._template = template

    async def render(self) -> str:
        """Render the configuration once its inputs are published.

        Returns the rendered configuration.
        """
        credential, tls = await _await_inputs(self._ec, self._await_timeout)
        with trace_context("Registry config"):
            content = render_registry_config(
                self._template, credential, tls, registry_fqdn(self._namespace)
            )
            await _create(
                self._client,
                manifest.config_map(
                    CONFIG_MAP_NAME,
                    self._namespace,
                    {CONFIG_MOUNT.filename: content},
                    labels=manifest.APP_LABELS,
                ),
            )
        return content


class RegistryDeploymentStage:
    """Creates the registry Service and Deployment."""

    def __init__(
        self,
        client: ClusterClient,
        namespace: str,
        eventual_config: EventualConfig,
        await_timeout: float | None = DEFAULT_AWAIT_TIMEOUT,
        image: str = manifest.REGISTRY_IMAGE,
    ) -> None:
        """Initialize RegistryDeploymentStage."""
        self._client = client
        self._namespace = namespace
        self._ec = eventual_config
        self._await_timeout = await_timeout
        self._image = image

    async def deploy(self) -> None:
        """Create the registry workload once its inputs are published."""
        credential, tls = await _await_inputs(self._ec, self._await_timeout)
        with trace_context("Registry deployment"):
            await _create(
                self._client,
                manifest.namespace(self._namespace, labels=manifest.APP_LABELS),
            )
            await _create(
                self._client,
                manifest.service(
                    manifest.NAME,
                    self._namespace,
                    manifest.REGISTRY_PORT,
                    labels=manifest.APP_LABELS,
                ),
            )
            volumes = [
                manifest.Volume(
                    "credentials",
                    credential.mount.directory,
                    secret_name=credential.secret_name,
                ),
                manifest.Volume(
                    "config",
                    CONFIG_MOUNT.directory,
                    config_map_name=CONFIG_MAP_NAME,
                ),
                manifest.Volume(
                    "tls", tls.key.directory, secret_name=tls.secret_name
                ),
            ]
            await _create(
                self._client,
                manifest.deployment(
                    manifest.NAME,
                    self._namespace,
                    self._image,
                    manifest.REGISTRY_PORT,
                    labels=manifest.APP_LABELS,
                    volumes=volumes,
                ),
            )
            _LOGGER.info("Created registry deployment in %s", self._namespace)
