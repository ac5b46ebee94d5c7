"""Fixtures for provisioning tests."""

from pathlib import Path

import pytest

from testenv_lcr.config import Config, parse_config
from testenv_lcr.provision import tls


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Configuration writing every local file below the test directory."""
    hosts_file = tmp_path / "hosts"
    hosts_file.write_text("127.0.0.1 localhost\n")
    return parse_config(
        {
            "name": "Test Project",
            "kindenv": {"kubeconfigPath": str(tmp_path / "kubeconfig")},
            "localContainerRegistry": {
                "credentialPath": str(tmp_path / "credentials.yaml"),
                "caCrtPath": str(tmp_path / "ca.crt"),
                "hostsFile": str(hosts_file),
                "imagePullSecretNamespaces": ["default", "apps"],
            },
        }
    )


@pytest.fixture
def helm_bin(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace helm with a command that always succeeds."""
    monkeypatch.setattr(tls, "HELM_BIN", "true")
