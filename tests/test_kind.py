"""Tests for the kind cluster library."""

from pathlib import Path

import pytest

from testenv_lcr.config import Config, Envs, parse_config
from testenv_lcr.exceptions import CommandException
from testenv_lcr.kind import KindCluster


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return parse_config(
        {
            "name": "My Project",
            "kindenv": {"kubeconfigPath": str(tmp_path / ".tmp" / "kubeconfig")},
        }
    )


def _kind(tmp_path: Path, body: str) -> str:
    path = tmp_path / "kind"
    path.write_text(f"#!/bin/sh\n{body}\n")
    path.chmod(0o755)
    return str(path)


async def test_create_and_delete(config: Config, tmp_path: Path) -> None:
    """Test creating and deleting the cluster."""
    log = tmp_path / "kind.log"
    kind = _kind(tmp_path, f'echo "$@" >> {log}')
    cluster = KindCluster(config, Envs(kind_binary=kind))
    assert cluster.name == "my-project"

    await cluster.create()
    assert cluster.kubeconfig_path.parent.is_dir()
    cluster.kubeconfig_path.write_text("kubeconfig")

    await cluster.delete()
    assert not cluster.kubeconfig_path.exists()
    assert log.read_text().splitlines() == [
        f"create cluster --name my-project --kubeconfig {cluster.kubeconfig_path} "
        "--wait 5m",
        "delete cluster --name my-project",
    ]


async def test_create_failure_deletes_cluster(config: Config, tmp_path: Path) -> None:
    """Test a failed create deletes the partial cluster."""
    log = tmp_path / "kind.log"
    kind = _kind(
        tmp_path,
        f'echo "$@" >> {log}\n[ "$1" = delete ] || exit 1',
    )
    cluster = KindCluster(config, Envs(kind_binary=kind))
    with pytest.raises(ExceptionGroup, match="Failed to create kind cluster") as exc_info:
        await cluster.create()
    assert len(exc_info.value.exceptions) == 1
    assert isinstance(exc_info.value.exceptions[0], CommandException)
    assert log.read_text().splitlines()[-1] == "delete cluster --name my-project"


async def test_create_and_cleanup_failure(config: Config) -> None:
    """Test both the create and the cleanup failing."""
    cluster = KindCluster(config, Envs(kind_binary="false"))
    with pytest.raises(ExceptionGroup) as exc_info:
        await cluster.create()
    assert len(exc_info.value.exceptions) == 2


async def test_delete_failure(config: Config) -> None:
    """Test a failed delete keeps the kubeconfig."""
    cluster = KindCluster(config, Envs(kind_binary="false"))
    cluster.kubeconfig_path.parent.mkdir(parents=True)
    cluster.kubeconfig_path.write_text("kubeconfig")
    with pytest.raises(CommandException):
        await cluster.delete()
    assert cluster.kubeconfig_path.exists()
