"""Tests for the manifest builders."""

from testenv_lcr import manifest
from testenv_lcr.manifest import Mount, Volume


def test_mount_path() -> None:
    """Test the path of a mounted file."""
    assert Mount("/etc/tls", "tls.crt").path == "/etc/tls/tls.crt"
    assert Mount("/etc/tls/", "ca.crt").path == "/etc/tls/ca.crt"


def test_secret_data() -> None:
    """Test secret values are encoded and decoded."""
    obj = manifest.secret(
        "name",
        "ns",
        {"username": b"user"},
        secret_type=manifest.SECRET_TYPE_DOCKER_CONFIG_JSON,
        labels={"app": "x"},
    )
    assert obj["data"] == {"username": "dXNlcg=="}
    assert obj["type"] == "kubernetes.io/dockerconfigjson"
    assert obj["metadata"] == {"name": "name", "namespace": "ns", "labels": {"app": "x"}}
    assert manifest.decode_secret_data(obj) == {"username": b"user"}
    assert manifest.decode_secret_data({}) == {}


def test_deployment_volumes() -> None:
    """Test every volume is mounted read-only."""
    obj = manifest.deployment(
        "registry",
        "ns",
        "docker.io/registry:2",
        5000,
        labels={"app": "registry"},
        volumes=[
            Volume("creds", "/etc/credentials", secret_name="creds-secret"),
            Volume("config", "/etc/docker/registry", config_map_name="config"),
        ],
    )
    spec = obj["spec"]
    assert spec["replicas"] == 1
    assert spec["selector"] == {"matchLabels": {"app": "registry"}}
    pod = spec["template"]["spec"]
    assert pod["volumes"] == [
        {"name": "creds", "secret": {"secretName": "creds-secret"}},
        {"name": "config", "configMap": {"name": "config"}},
    ]
    container = pod["containers"][0]
    assert container["image"] == "docker.io/registry:2"
    assert container["ports"][0]["containerPort"] == 5000
    assert container["volumeMounts"] == [
        {"name": "creds", "mountPath": "/etc/credentials", "readOnly": True},
        {"name": "config", "mountPath": "/etc/docker/registry", "readOnly": True},
    ]


def test_certificate() -> None:
    """Test the certificate references its issuer and secret."""
    obj = manifest.certificate(
        "tls", "ns", ["registry.ns.svc.cluster.local"], "tls-secret", "issuer"
    )
    assert obj["apiVersion"] == "cert-manager.io/v1"
    assert obj["spec"] == {
        "dnsNames": ["registry.ns.svc.cluster.local"],
        "secretName": "tls-secret",
        "issuerRef": {"name": "issuer", "kind": "Issuer"},
    }
    assert manifest.issuer("issuer", "ns")["spec"] == {"selfSigned": {}}
