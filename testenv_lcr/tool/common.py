"""Helpers shared by the command line actions."""

import logging
import pathlib
from typing import Any

from testenv_lcr.cluster import ClusterClient, KubernetesClusterClient
from testenv_lcr.config import Config, Envs, read_config

_LOGGER = logging.getLogger(__name__)


def load_config(config: pathlib.Path | None = None, **kwargs: Any) -> Config:
    """Read the project configuration named by the --config flag."""
    return read_config(config)


def load_envs() -> Envs:
    """Read the settings that come from the environment."""
    return Envs.from_env()


def create_client(config: Config) -> ClusterClient:
    """Create a client for the cluster named by the configured kubeconfig."""
    return KubernetesClusterClient.from_kubeconfig(config.kindenv.kubeconfig_path)


def print_errors(prefix: str, err: BaseException) -> None:
    """Print an error, one line per member of an exception group."""
    if isinstance(err, BaseExceptionGroup):
        print(f"{prefix}: {err.message}")
        for sub in err.exceptions:
            print_errors(f"  {prefix}", sub)
        return
    print(f"{prefix}: {err}")
