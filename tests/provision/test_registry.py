"""Tests for the registry config and deployment stages."""

import asyncio

import pytest
import yaml

from testenv_lcr import manifest
from testenv_lcr.cluster import InMemoryClusterClient, ObjectKey
from testenv_lcr.eventual import EventualConfig
from testenv_lcr.exceptions import (
    ClosedSourceError,
    ClusterException,
    InputException,
    ResourceCreateError,
)
from testenv_lcr.manifest import Mount
from testenv_lcr.provision.keys import (
    CREDENTIAL,
    TLS,
    CredentialReference,
    TlsMaterial,
    new_eventual_config,
)
from testenv_lcr.provision.registry import (
    CONFIG_MAP_NAME,
    RegistryConfigStage,
    RegistryDeploymentStage,
    registry_fqdn,
)

NAMESPACE = "testenv-lcr"
CONFIG_MAP_KEY = ObjectKey("v1", "ConfigMap", NAMESPACE, CONFIG_MAP_NAME)
DEPLOYMENT_KEY = manifest.deployment_key("testenv-lcr", NAMESPACE)

CREDENTIAL_REF = CredentialReference(
    secret_name="testenv-lcr-credentials",
    mount=Mount("/etc/credentials", "credential.htpasswd"),
)
TLS_MATERIAL = TlsMaterial(
    secret_name="testenv-lcr-tls",
    ca_cert=Mount("/etc/tls", "ca.crt"),
    cert=Mount("/etc/tls", "tls.crt"),
    key=Mount("/etc/tls", "tls.key"),
)


@pytest.fixture
async def client() -> InMemoryClusterClient:
    client = InMemoryClusterClient()
    await client.create(manifest.namespace(NAMESPACE))
    return client


@pytest.fixture
def ec() -> EventualConfig:
    return new_eventual_config()


def _publish(ec: EventualConfig) -> None:
    ec.set_value(CREDENTIAL, CREDENTIAL_REF)
    ec.set_value(TLS, TLS_MATERIAL)


def test_registry_fqdn() -> None:
    """Test the in-cluster name of the registry."""
    assert registry_fqdn("registry") == "testenv-lcr.registry.svc.cluster.local"


async def test_render_waits_for_inputs(
    client: InMemoryClusterClient, ec: EventualConfig
) -> None:
    """Test the config is rendered only once both inputs are published."""
    task = asyncio.create_task(RegistryConfigStage(client, NAMESPACE, ec).render())
    await asyncio.sleep(0.01)
    assert not task.done()

    ec.set_value(CREDENTIAL, CREDENTIAL_REF)
    await asyncio.sleep(0.01)
    assert not task.done()

    ec.set_value(TLS, TLS_MATERIAL)
    content = await asyncio.wait_for(task, 1)

    config = yaml.safe_load(content)
    assert config["auth"]["htpasswd"]["path"] == "/etc/credentials/credential.htpasswd"
    assert config["http"]["addr"] == "0.0.0.0:5000"
    assert config["http"]["host"] == (
        "https://testenv-lcr.testenv-lcr.svc.cluster.local:5000"
    )
    assert config["http"]["tls"] == {
        "certificate": "/etc/tls/tls.crt",
        "key": "/etc/tls/tls.key",
    }
    assert config["storage"]["filesystem"]["rootdirectory"] == "/var/lib/registry"

    config_map = await client.get(CONFIG_MAP_KEY)
    assert config_map["data"] == {"config.yml": content}
    assert config_map["metadata"]["labels"] == {"app": "testenv-lcr"}


async def test_render_invalid_template(
    client: InMemoryClusterClient, ec: EventualConfig
) -> None:
    """Test a template that refers to an unknown field."""
    _publish(ec)
    stage = RegistryConfigStage(client, NAMESPACE, ec, template="path: {unknown}\n")
    with pytest.raises(InputException, match="Unable to render registry config"):
        await stage.render()
    assert CONFIG_MAP_KEY not in client.keys()


async def test_render_closed_source(
    client: InMemoryClusterClient, ec: EventualConfig
) -> None:
    """Test a render waiting on a stage that failed."""
    task = asyncio.create_task(RegistryConfigStage(client, NAMESPACE, ec).render())
    await asyncio.sleep(0.01)
    ec.close()
    with pytest.raises(ClosedSourceError, match="'credential'"):
        await asyncio.wait_for(task, 1)


async def test_render_timeout(client: InMemoryClusterClient, ec: EventualConfig) -> None:
    """Test a render bounded by the await timeout."""
    ec.set_value(CREDENTIAL, CREDENTIAL_REF)
    with pytest.raises(TimeoutError):
        await RegistryConfigStage(client, NAMESPACE, ec, await_timeout=0.01).render()


async def test_deploy(client: InMemoryClusterClient, ec: EventualConfig) -> None:
    """Test the registry service and deployment."""
    _publish(ec)
    await RegistryDeploymentStage(client, NAMESPACE, ec).deploy()

    service = await client.get(ObjectKey("v1", "Service", NAMESPACE, "testenv-lcr"))
    assert service["spec"]["selector"] == {"app": "testenv-lcr"}
    assert service["spec"]["ports"] == [
        {"name": "https", "port": 5000, "protocol": "TCP"}
    ]

    deployment = await client.get(DEPLOYMENT_KEY)
    pod_spec = deployment["spec"]["template"]["spec"]
    assert pod_spec["volumes"] == [
        {"name": "credentials", "secret": {"secretName": "testenv-lcr-credentials"}},
        {"name": "config", "configMap": {"name": CONFIG_MAP_NAME}},
        {"name": "tls", "secret": {"secretName": "testenv-lcr-tls"}},
    ]
    container = pod_spec["containers"][0]
    assert container["image"] == "docker.io/registry:2"
    assert container["volumeMounts"] == [
        {"name": "credentials", "mountPath": "/etc/credentials", "readOnly": True},
        {"name": "config", "mountPath": "/etc/docker/registry", "readOnly": True},
        {"name": "tls", "mountPath": "/etc/tls", "readOnly": True},
    ]


async def test_deploy_is_idempotent(
    client: InMemoryClusterClient, ec: EventualConfig
) -> None:
    """Test objects left over from an earlier run are kept."""
    _publish(ec)
    await RegistryDeploymentStage(client, NAMESPACE, ec).deploy()
    keys = client.keys()
    await RegistryDeploymentStage(client, NAMESPACE, ec).deploy()
    assert client.keys() == keys


async def test_deploy_create_failure(
    client: InMemoryClusterClient, ec: EventualConfig
) -> None:
    """Test a failure creating the deployment."""
    _publish(ec)
    client.fail("create", "Deployment", ClusterException("quota exceeded"))
    with pytest.raises(
        ResourceCreateError,
        match="Failed to create Deployment testenv-lcr/testenv-lcr: quota exceeded",
    ):
        await RegistryDeploymentStage(client, NAMESPACE, ec).deploy()
