"""Create and delete the kind cluster that hosts the registry."""

import logging
from pathlib import Path

from . import command
from .config import Config, Envs
from .exceptions import CommandException

__all__ = [
    "KindCluster",
]

_LOGGER = logging.getLogger(__name__)

WAIT_TIMEOUT = "5m"


class KindCluster:
    """A kind cluster named after the project."""

    def __init__(self, config: Config, envs: Envs) -> None:
        """Initialize KindCluster."""
        self._name = config.cluster_name
        self._kubeconfig_path = Path(config.kindenv.kubeconfig_path)
        self._kind = envs.kind_binary

    @property
    def name(self) -> str:
        return self._name

    @property
    def kubeconfig_path(self) -> Path:
        return self._kubeconfig_path

    async def create(self) -> None:
        """Create the cluster and wait for its control plane.

        If creation fails the cluster is deleted again, and both errors are
        reported together.
        """
        self._kubeconfig_path.parent.mkdir(parents=True, exist_ok=True)
        _LOGGER.info("Creating kind cluster %s", self._name)
        try:
            await command.run(
                command.Command(
                    [
                        self._kind,
                        "create",
                        "cluster",
                        "--name",
                        self._name,
                        "--kubeconfig",
                        str(self._kubeconfig_path),
                        "--wait",
                        WAIT_TIMEOUT,
                    ],
                    timeout=600.0,
                )
            )
        except CommandException as err:
            errors: list[Exception] = [err]
            try:
                await self.delete()
            except CommandException as teardown_err:
                errors.append(teardown_err)
            raise ExceptionGroup(f"Failed to create kind cluster {self._name}", errors)

    async def delete(self) -> None:
        """Delete the cluster and its kubeconfig file."""
        _LOGGER.info("Deleting kind cluster %s", self._name)
        await command.run(
            command.Command(
                [self._kind, "delete", "cluster", "--name", self._name],
                timeout=300.0,
            )
        )
        self._kubeconfig_path.unlink(missing_ok=True)
