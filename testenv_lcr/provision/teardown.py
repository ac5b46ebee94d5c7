"""Best-effort teardown of everything a provisioning run created.

Every name is derived from the configuration, so teardown works after a
crashed setup or from a different process. A failed step is logged and the
remaining steps still run.
"""

from collections.abc import Awaitable, Callable
import logging
from pathlib import Path

from testenv_lcr import manifest
from testenv_lcr.cluster import ClusterClient
from testenv_lcr.config import Config, Envs
from testenv_lcr.context import trace_context
from testenv_lcr.exceptions import ObjectNotFoundError
from testenv_lcr.hosts import HostsFile

from .image_pull_secret import list_image_pull_secrets
from .registry import registry_fqdn
from .tls import uninstall_cert_manager

__all__ = [
    "Teardown",
]

_LOGGER = logging.getLogger(__name__)


class Teardown:
    """Removes the registry and its local artifacts."""

    def __init__(
        self,
        config: Config,
        envs: Envs,
        client: ClusterClient,
        hosts: HostsFile | None = None,
    ) -> None:
        """Initialize Teardown."""
        self._config = config
        self._client = client
        self._hosts = hosts or HostsFile(envs, config.registry.hosts_file)
        self._namespace = config.registry.namespace
        self.deleted: list[str] = []

    @property
    def steps(self) -> list[tuple[str, Callable[[], Awaitable[None]]]]:
        return [
            ("image pull secrets", self.delete_image_pull_secrets),
            ("namespace", self.delete_namespace),
            ("cert-manager", self.remove_cert_manager),
            ("hosts entry", self.remove_hosts_entry),
            ("local files", self.remove_local_files),
        ]

    async def run(self) -> ExceptionGroup | None:
        """Run every teardown step.

        Returns None if every step succeeded or had nothing to delete,
        otherwise a group holding the failure of each step that failed.
        """
        errors: list[Exception] = []
        with trace_context("Teardown"):
            for name, step in self.steps:
                try:
                    await step()
                except ObjectNotFoundError as err:
                    _LOGGER.debug("Nothing to delete for %s: %s", name, err)
                except Exception as err:
                    _LOGGER.warning("Failed to tear down %s: %s", name, err)
                    errors.append(err)
        if errors:
            return ExceptionGroup(f"Failed to tear down {manifest.NAME}", errors)
        return None

    async def delete_image_pull_secrets(self) -> None:
        """Delete the labelled image pull secrets in every namespace."""
        errors: list[Exception] = []
        for info in await list_image_pull_secrets(self._client):
            try:
                await self._client.delete(
                    manifest.secret_key(info.secret_name, info.namespace)
                )
            except ObjectNotFoundError:
                continue
            except Exception as err:
                _LOGGER.warning("Failed to delete image pull secret %s: %s", info.full_name, err)
                errors.append(err)
            else:
                _LOGGER.info("Deleted image pull secret %s", info.full_name)
                self.deleted.append(f"Secret/{info.full_name}")
        if errors:
            raise ExceptionGroup("Failed to delete image pull secrets", errors)

    async def delete_namespace(self) -> None:
        """Delete the registry namespace and every object in it."""
        await self._client.delete(manifest.namespace_key(self._namespace))
        _LOGGER.info("Deleted namespace %s", self._namespace)
        self.deleted.append(f"Namespace/{self._namespace}")

    async def remove_cert_manager(self) -> None:
        await uninstall_cert_manager(Path(self._config.kindenv.kubeconfig_path))

    async def remove_hosts_entry(self) -> None:
        await self._hosts.remove(registry_fqdn(self._namespace))

    async def remove_local_files(self) -> None:
        """Remove the credential file and the exported CA certificate."""
        for path in (
            Path(self._config.registry.credential_path),
            Path(self._config.registry.ca_crt_path),
        ):
            path.unlink(missing_ok=True)
