"""Tests for image pull secrets."""

import base64
import json

import pytest

from testenv_lcr import manifest
from testenv_lcr.cluster import InMemoryClusterClient
from testenv_lcr.config import Config, Envs
from testenv_lcr.exceptions import ClusterException, ResourceCreateError
from testenv_lcr.provision.credential import Credentials
from testenv_lcr.provision.image_pull_secret import (
    ImagePullSecret,
    ImagePullSecretInfo,
    docker_config_json,
    list_image_pull_secrets,
)
from testenv_lcr.push import RegistryPusher

FQDN = "testenv-lcr.testenv-lcr.svc.cluster.local"
CREDENTIALS = Credentials(username="user", password="secret")
SECRET_NAME = "local-container-registry-credentials"


@pytest.fixture
def client() -> InMemoryClusterClient:
    return InMemoryClusterClient()


@pytest.fixture
def pull_secret(client: InMemoryClusterClient) -> ImagePullSecret:
    return ImagePullSecret(client, SECRET_NAME, FQDN, CREDENTIALS)


def test_docker_config_json() -> None:
    """Test the docker config authenticating against the registry."""
    config = json.loads(docker_config_json(FQDN, CREDENTIALS))
    assert config == {
        "auths": {
            f"{FQDN}:5000": {
                "username": "user",
                "password": "secret",
                "auth": base64.b64encode(b"user:secret").decode(),
            }
        }
    }


def test_docker_config_json_matches_push_endpoint(config: Config) -> None:
    """Test the auth entry is keyed by the address images are pushed to."""
    endpoint = RegistryPusher(config, Envs()).endpoint
    assert endpoint == f"{FQDN}:5000"
    config_json = json.loads(docker_config_json(FQDN, CREDENTIALS))
    assert list(config_json["auths"]) == [endpoint]


async def test_create_in_namespace(
    client: InMemoryClusterClient, pull_secret: ImagePullSecret
) -> None:
    """Test the secret and its namespace are created."""
    assert await pull_secret.create_in_namespace("app") == f"app/{SECRET_NAME}"

    namespace = await client.get(manifest.namespace_key("app"))
    assert namespace["metadata"]["labels"] == {
        "app.kubernetes.io/managed-by": "testenv-lcr"
    }
    secret = await client.get(manifest.secret_key(SECRET_NAME, "app"))
    assert secret["type"] == "kubernetes.io/dockerconfigjson"
    assert manifest.decode_secret_data(secret) == {
        ".dockerconfigjson": docker_config_json(FQDN, CREDENTIALS)
    }


async def test_create_in_existing_namespace(
    client: InMemoryClusterClient, pull_secret: ImagePullSecret
) -> None:
    """Test an existing namespace is left untouched."""
    await client.create(manifest.namespace("app"))
    await pull_secret.create_in_namespace("app")
    namespace = await client.get(manifest.namespace_key("app"))
    assert "labels" not in namespace["metadata"]


async def test_default_secret_name(client: InMemoryClusterClient) -> None:
    """Test an empty secret name falls back to the default."""
    pull_secret = ImagePullSecret(client, "", FQDN, CREDENTIALS)
    assert await pull_secret.create_in_namespace("app") == f"app/{SECRET_NAME}"


async def test_create_existing_secret(pull_secret: ImagePullSecret) -> None:
    """Test creating a secret that already exists."""
    await pull_secret.create_in_namespace("app")
    with pytest.raises(
        ResourceCreateError, match=f"Failed to create image pull secret app/{SECRET_NAME}"
    ):
        await pull_secret.create_in_namespace("app")


async def test_create_in_namespaces(
    client: InMemoryClusterClient, pull_secret: ImagePullSecret
) -> None:
    """Test a failure in one namespace does not stop the others."""
    await pull_secret.create_in_namespace("b")

    created, errors = await pull_secret.create_in_namespaces(["a", "b", "c"])
    assert created == {"a": f"a/{SECRET_NAME}", "c": f"c/{SECRET_NAME}"}
    assert errors is not None
    assert len(errors.exceptions) == 1
    assert f"b/{SECRET_NAME}" in str(errors.exceptions[0])

    created, errors = await pull_secret.create_in_namespaces(["d"])
    assert created == {"d": f"d/{SECRET_NAME}"}
    assert errors is None


async def test_create_failure(
    client: InMemoryClusterClient, pull_secret: ImagePullSecret
) -> None:
    """Test a failure creating the namespace."""
    client.fail("create", "Namespace", ClusterException("forbidden"))
    with pytest.raises(ResourceCreateError, match="forbidden"):
        await pull_secret.create_in_namespace("app")


async def test_list_image_pull_secrets(
    client: InMemoryClusterClient, pull_secret: ImagePullSecret
) -> None:
    """Test listing the managed image pull secrets."""
    assert await list_image_pull_secrets(client) == []

    await pull_secret.create_in_namespaces(["b", "a"])
    # Not managed by testenv-lcr
    await client.create(manifest.secret("other", "a", {"key": b"value"}))

    secrets = await list_image_pull_secrets(client)
    assert [secret.full_name for secret in secrets] == [
        f"a/{SECRET_NAME}",
        f"b/{SECRET_NAME}",
    ]
    assert all(secret.created_at for secret in secrets)

    secrets = await list_image_pull_secrets(client, "b")
    assert [secret.full_name for secret in secrets] == [f"b/{SECRET_NAME}"]
    assert isinstance(secrets[0], ImagePullSecretInfo)
