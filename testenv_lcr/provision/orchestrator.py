"""Orchestrator for a provisioning run.

The credential, TLS, registry config and registry deployment stages are all
started at once. Stages that need a value published by another stage wait on
the eventual config, so the order the stages run in is never spelled out
here. If any stage fails the eventual config is closed, which releases the
stages still waiting on it, and every failure is reported together.
"""

from dataclasses import dataclass, field
import logging
from pathlib import Path

from testenv_lcr import manifest
from testenv_lcr.cluster import ClusterClient
from testenv_lcr.config import Config, Envs
from testenv_lcr.context import trace_context
from testenv_lcr.eventual import EventualConfig
from testenv_lcr.exceptions import AlreadyExistsError, ClusterException, ResourceCreateError
from testenv_lcr.hosts import HostsFile
from testenv_lcr.task import task_service_context

from .credential import Credentials, CredentialStage
from .image_pull_secret import ImagePullSecret
from .keys import new_eventual_config
from .readiness import DEFAULT_INTERVAL, ReadinessPoller
from .registry import RegistryConfigStage, RegistryDeploymentStage, registry_fqdn
from .tls import CA_EXPORT_INTERVAL, TlsStage

__all__ = [
    "Provisioner",
    "ProvisionResult",
]

_LOGGER = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Outcome of a successful provisioning run."""

    registry_fqdn: str
    credentials: Credentials
    credential_path: Path
    ca_crt_path: Path
    image_pull_secrets: dict[str, str] = field(default_factory=dict)
    """Created image pull secret per namespace."""

    image_pull_secret_errors: ExceptionGroup | None = None
    """Image pull secrets that could not be created, which do not fail the run."""


class Provisioner:
    """Sets up the registry in the cluster."""

    def __init__(
        self,
        config: Config,
        envs: Envs,
        client: ClusterClient,
        hosts: HostsFile | None = None,
        eventual_config: EventualConfig | None = None,
        poll_interval: float = DEFAULT_INTERVAL,
        ca_export_interval: float = CA_EXPORT_INTERVAL,
    ) -> None:
        """Initialize Provisioner."""
        self._config = config
        self._envs = envs
        self._client = client
        self._hosts = hosts or HostsFile(envs, config.registry.hosts_file)
        self._ec = eventual_config or new_eventual_config()
        self._poll_interval = poll_interval
        self._ca_export_interval = ca_export_interval

    @property
    def namespace(self) -> str:
        return self._config.registry.namespace

    @property
    def fqdn(self) -> str:
        return registry_fqdn(self.namespace)

    async def _ensure_namespace(self) -> None:
        try:
            await self._client.create(
                manifest.namespace(self.namespace, labels=manifest.APP_LABELS)
            )
        except AlreadyExistsError:
            _LOGGER.debug("Namespace %s already exists", self.namespace)
        except ClusterException as err:
            raise ResourceCreateError(f"Namespace {self.namespace}", str(err)) from err

    async def _run_stages(
        self, credential: CredentialStage, tls: TlsStage
    ) -> None:
        timeout = self._config.timeouts.value_await
        ec = self._ec
        async with task_service_context() as service:

            def close_on_failure(task: object, err: BaseException) -> None:
                _LOGGER.debug("Closing eventual config after failure: %s", err)
                ec.close()

            remove = service.add_failure_listener(close_on_failure)
            try:
                service.create_task(credential.setup(), name="credentials")
                service.create_task(tls.setup(), name="tls")
                service.create_task(
                    RegistryConfigStage(
                        self._client, self.namespace, ec, await_timeout=timeout
                    ).render(),
                    name="registry-config",
                )
                service.create_task(
                    RegistryDeploymentStage(
                        self._client, self.namespace, ec, await_timeout=timeout
                    ).deploy(),
                    name="registry-deployment",
                )
                await service.block_till_done(f"Failed to set up {manifest.NAME}")
            finally:
                remove()

    async def setup(self) -> ProvisionResult:
        """Provision the registry and wait for it to serve.

        Raises:
            ExceptionGroup: If any of the concurrent stages failed.
            ReadinessTimeoutError: If the registry did not become ready.
        """
        registry = self._config.registry
        credential_path = Path(registry.credential_path)
        ca_crt_path = Path(registry.ca_crt_path)
        credential = CredentialStage(
            self._client, self._envs, credential_path, self.namespace, self._ec
        )
        tls = TlsStage(
            self._client,
            ca_crt_path,
            self.namespace,
            self.fqdn,
            self._ec,
            kubeconfig_path=Path(self._config.kindenv.kubeconfig_path),
        )
        with trace_context("Setup"):
            await self._ensure_namespace()
            await self._run_stages(credential, tls)

            poller = ReadinessPoller(
                self._client,
                manifest.deployment_key(manifest.NAME, self.namespace),
                interval=self._poll_interval,
            )
            await poller.wait_ready(self._config.timeouts.registry_ready)
            await tls.export_ca_cert(
                attempts=max(1, int(60 / self._ca_export_interval)),
                interval=self._ca_export_interval,
            )
            await self._hosts.add(self.fqdn)

            result = ProvisionResult(
                registry_fqdn=self.fqdn,
                credentials=credential.credentials,
                credential_path=credential_path,
                ca_crt_path=ca_crt_path,
            )
            if registry.image_pull_secret_namespaces:
                pull_secret = ImagePullSecret(
                    self._client,
                    registry.image_pull_secret_name,
                    self.fqdn,
                    credential.credentials,
                )
                (
                    result.image_pull_secrets,
                    result.image_pull_secret_errors,
                ) = await pull_secret.create_in_namespaces(
                    registry.image_pull_secret_namespaces
                )
        return result
