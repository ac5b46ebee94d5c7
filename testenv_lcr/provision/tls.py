"""TLS stage for the registry.

Installs cert-manager, requests a certificate for the registry FQDN from a
self-signed issuer, and publishes where the registry will find the issued
certificate and key.
"""

import asyncio
import logging
from pathlib import Path

from testenv_lcr import command, manifest
from testenv_lcr.cluster import ClusterClient
from testenv_lcr.context import trace_context
from testenv_lcr.eventual import EventualConfig
from testenv_lcr.exceptions import (
    AlreadyExistsError,
    ClusterException,
    HelmException,
    ObjectNotFoundError,
    ReadinessTimeoutError,
    ResourceCreateError,
)
from testenv_lcr.manifest import Mount

from .credential import write_private_file
from .keys import TLS, TlsMaterial

__all__ = [
    "TlsStage",
    "uninstall_cert_manager",
]

_LOGGER = logging.getLogger(__name__)

HELM_BIN = "helm"
CERT_MANAGER_RELEASE = "cert-manager"
CERT_MANAGER_NAMESPACE = "cert-manager"
CERT_MANAGER_CHART = "jetstack/cert-manager"
CERT_MANAGER_VERSION = "v1.15.1"
JETSTACK_REPO_URL = "https://charts.jetstack.io"
HELM_TIMEOUT = "5m"

TLS_RESOURCE_NAME = f"{manifest.NAME}-tls"
TLS_MOUNT_DIR = "/etc/tls"
CA_KEY = "ca.crt"
CERT_KEY = "tls.crt"
KEY_KEY = "tls.key"

CA_EXPORT_ATTEMPTS = 60
CA_EXPORT_INTERVAL = 1.0


def _helm(args: tuple[str, ...], kubeconfig_path: Path | None) -> command.Command:
    env = {"KUBECONFIG": str(kubeconfig_path)} if kubeconfig_path else None
    return command.Command([HELM_BIN, *args], exc=HelmException, env=env, timeout=360.0)


async def uninstall_cert_manager(kubeconfig_path: Path | None = None) -> None:
    """Uninstall cert-manager, treating a missing release as success."""
    try:
        await command.run(
            _helm(
                (
                    "uninstall",
                    CERT_MANAGER_RELEASE,
                    "--namespace",
                    CERT_MANAGER_NAMESPACE,
                    "--wait",
                    "--timeout",
                    HELM_TIMEOUT,
                ),
                kubeconfig_path,
            )
        )
    except HelmException as err:
        if "not found" in str(err):
            _LOGGER.info("Release %s already uninstalled", CERT_MANAGER_RELEASE)
            return
        raise


class TlsStage:
    """Sets up TLS for the registry."""

    def __init__(
        self,
        client: ClusterClient,
        ca_crt_path: Path,
        namespace: str,
        registry_fqdn: str,
        eventual_config: EventualConfig,
        kubeconfig_path: Path | None = None,
    ) -> None:
        """Initialize TlsStage."""
        self._client = client
        self._ca_crt_path = ca_crt_path
        self._namespace = namespace
        self._fqdn = registry_fqdn
        self._ec = eventual_config
        self._kubeconfig_path = kubeconfig_path

    @property
    def resource_name(self) -> str:
        """Return the name of the issuer, certificate and secret."""
        return TLS_RESOURCE_NAME

    def _helm(self, *args: str) -> command.Command:
        return _helm(args, self._kubeconfig_path)

    async def setup(self) -> None:
        """Install cert-manager, request the certificate and publish TLS material.

        The issued secret is not awaited here: the registry pod cannot start
        until the kubelet can mount it, which the readiness poll observes.
        """
        with trace_context("TLS"):
            await self._install_cert_manager()
            await self._create(manifest.issuer(self.resource_name, self._namespace))
            await self._create(
                manifest.certificate(
                    self.resource_name,
                    self._namespace,
                    dns_names=[self._fqdn],
                    secret_name=self.resource_name,
                    issuer_name=self.resource_name,
                )
            )
            self._ec.set_value(
                TLS,
                TlsMaterial(
                    secret_name=self.resource_name,
                    ca_cert=Mount(TLS_MOUNT_DIR, CA_KEY),
                    cert=Mount(TLS_MOUNT_DIR, CERT_KEY),
                    key=Mount(TLS_MOUNT_DIR, KEY_KEY),
                ),
            )

    async def _install_cert_manager(self) -> None:
        _LOGGER.info("Installing %s %s", CERT_MANAGER_CHART, CERT_MANAGER_VERSION)
        await command.run(
            self._helm("repo", "add", "jetstack", JETSTACK_REPO_URL, "--force-update")
        )
        await command.run(
            self._helm(
                "upgrade",
                "--install",
                CERT_MANAGER_RELEASE,
                CERT_MANAGER_CHART,
                "--namespace",
                CERT_MANAGER_NAMESPACE,
                "--create-namespace",
                "--version",
                CERT_MANAGER_VERSION,
                "--set",
                "crds.enabled=true",
                "--wait",
                "--timeout",
                HELM_TIMEOUT,
            )
        )

    async def _create(self, obj: dict) -> None:
        try:
            await self._client.create(obj)
        except AlreadyExistsError:
            _LOGGER.info("%s already exists (skipping creation)", obj["kind"])
        except ClusterException as err:
            raise ResourceCreateError(
                f"{obj['kind']} {self._namespace}/{self.resource_name}", str(err)
            ) from err

    async def export_ca_cert(
        self,
        attempts: int = CA_EXPORT_ATTEMPTS,
        interval: float = CA_EXPORT_INTERVAL,
    ) -> Path:
        """Wait for the issued secret and write its CA certificate locally."""
        key = manifest.secret_key(self.resource_name, self._namespace)
        last_error = "secret not found"
        for attempt in range(attempts):
            if attempt:
                await asyncio.sleep(interval)
            try:
                secret = await self._client.get(key)
            except ObjectNotFoundError as err:
                last_error = str(err)
                continue
            if ca_cert := manifest.decode_secret_data(secret).get(CA_KEY):
                await write_private_file(self._ca_crt_path, ca_cert)
                _LOGGER.info("Exported CA certificate to %s", self._ca_crt_path)
                return self._ca_crt_path
            last_error = "CA certificate not found in secret"
        raise ReadinessTimeoutError(
            f"Failed to export CA certificate from {key}: {last_error}"
        )
