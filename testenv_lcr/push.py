"""Push local images to the registry through a port-forward."""

from collections.abc import AsyncGenerator
import contextlib
import logging
from pathlib import Path

from . import command
from .config import Config, Envs
from .exceptions import CommandException
from .portforward import PortForwarder
from .provision.credential import read_credentials
from .provision.registry import registry_fqdn

__all__ = [
    "RegistryPusher",
]

_LOGGER = logging.getLogger(__name__)

DOCKER_CERTS_DIR = Path("/etc/docker/certs.d")


class RegistryPusher:
    """Tags and pushes images to the local registry."""

    def __init__(
        self,
        config: Config,
        envs: Envs,
        forwarder: PortForwarder | None = None,
    ) -> None:
        """Initialize RegistryPusher."""
        self._config = config
        self._envs = envs
        self._forwarder = forwarder or PortForwarder(
            config.registry.namespace,
            kubeconfig_path=config.kindenv.kubeconfig_path,
            timeout=config.timeouts.port_forward,
        )

    @property
    def endpoint(self) -> str:
        """Return the registry host and port that image names are prefixed with."""
        return f"{registry_fqdn(self._config.registry.namespace)}:{self._forwarder.local_port}"

    @property
    def uses_docker_certs(self) -> bool:
        return Path(self._envs.container_engine).name == "docker"

    async def _run(self, cmd: list[str], stdin: bytes | None = None) -> None:
        await command.run(command.Command(cmd, exc=CommandException, timeout=600.0), stdin)

    async def _setup_docker_certs(self) -> Path:
        certs_dir = DOCKER_CERTS_DIR / self.endpoint
        await self._run(self._envs.prepended("mkdir", "-p", str(certs_dir)))
        await self._run(
            self._envs.prepended(
                "cp", self._config.registry.ca_crt_path, str(certs_dir / "ca.crt")
            )
        )
        _LOGGER.info("Set up docker certificates for %s", self.endpoint)
        return certs_dir

    async def _teardown_docker_certs(self, certs_dir: Path) -> None:
        try:
            await self._run(self._envs.prepended("rm", "-rf", str(certs_dir)))
        except CommandException as err:
            _LOGGER.warning("Failed to clean up docker certificates: %s", err)

    async def login(self) -> None:
        """Log the container engine in to the registry."""
        credentials = await read_credentials(Path(self._config.registry.credential_path))
        await self._run(
            self._envs.engine(
                "login", self.endpoint, "-u", credentials.username, "--password-stdin"
            ),
            stdin=credentials.password.encode(),
        )
        _LOGGER.info("Logged in to registry %s", self.endpoint)

    @contextlib.asynccontextmanager
    async def registry_access(self) -> AsyncGenerator[str, None]:
        """Forward the registry port and log in for the duration of the context.

        Yields the registry endpoint.
        """
        async with self._forwarder:
            certs_dir = None
            if self.uses_docker_certs:
                certs_dir = await self._setup_docker_certs()
            try:
                await self.login()
                yield self.endpoint
            finally:
                if certs_dir is not None:
                    await self._teardown_docker_certs(certs_dir)

    async def push_image(self, image: str) -> str:
        """Tag and push one image, returning the name it was pushed as."""
        dest = f"{self.endpoint}/{image}"
        _LOGGER.info("Pushing image %s -> %s", image, dest)
        await self._run(self._envs.engine("tag", image, dest))
        push_args = ["push", dest]
        if Path(self._envs.container_engine).name == "podman":
            push_args = ["push", "--tls-verify=false", dest]
        await self._run(self._envs.engine(*push_args))
        return dest

    async def push(self, images: list[str]) -> list[str]:
        """Push each image with a single port-forward and login."""
        if not images:
            return []
        async with self.registry_access():
            return [await self.push_image(image) for image in images]
