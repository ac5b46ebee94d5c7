"""Representation of the objects created in the cluster for the registry.

Objects are plain dictionaries in the shape the API server accepts, built by
the helpers in this module so that every stage names and labels them the same
way. The names are fixed so that teardown can find every object without any
state from the setup run.
"""

import base64
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any

from .cluster import ObjectKey

__all__ = [
    "Mount",
    "NAME",
    "namespace",
    "secret",
    "config_map",
    "service",
    "deployment",
    "issuer",
    "certificate",
]

NAME = "testenv-lcr"
APP_LABELS = {"app": NAME}
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"

CORE_API_VERSION = "v1"
APPS_API_VERSION = "apps/v1"
CERT_MANAGER_API_VERSION = "cert-manager.io/v1"

NAMESPACE_KIND = "Namespace"
SECRET_KIND = "Secret"
CONFIG_MAP_KIND = "ConfigMap"
SERVICE_KIND = "Service"
DEPLOYMENT_KIND = "Deployment"
ISSUER_KIND = "Issuer"
CERTIFICATE_KIND = "Certificate"

SECRET_TYPE_OPAQUE = "Opaque"
SECRET_TYPE_DOCKER_CONFIG_JSON = "kubernetes.io/dockerconfigjson"
DOCKER_CONFIG_JSON_KEY = ".dockerconfigjson"

REGISTRY_IMAGE = "docker.io/registry:2"
REGISTRY_PORT = 5000


@dataclass(frozen=True)
class Mount:
    """A file mounted into the registry container."""

    directory: str
    filename: str

    @property
    def path(self) -> str:
        """Return the full path of the file inside the container."""
        return str(PurePosixPath(self.directory) / self.filename)


def _metadata(
    name: str, namespace: str | None, labels: dict[str, str] | None
) -> dict[str, Any]:
    metadata: dict[str, Any] = {"name": name}
    if namespace:
        metadata["namespace"] = namespace
    if labels:
        metadata["labels"] = dict(labels)
    return metadata


def namespace_key(name: str) -> ObjectKey:
    return ObjectKey(CORE_API_VERSION, NAMESPACE_KIND, None, name)


def secret_key(name: str, ns: str) -> ObjectKey:
    return ObjectKey(CORE_API_VERSION, SECRET_KIND, ns, name)


def deployment_key(name: str, ns: str) -> ObjectKey:
    return ObjectKey(APPS_API_VERSION, DEPLOYMENT_KIND, ns, name)


def namespace(name: str, labels: dict[str, str] | None = None) -> dict[str, Any]:
    """Return a Namespace object."""
    return {
        "apiVersion": CORE_API_VERSION,
        "kind": NAMESPACE_KIND,
        "metadata": _metadata(name, None, labels),
    }


def secret(
    name: str,
    ns: str,
    data: dict[str, bytes],
    secret_type: str = SECRET_TYPE_OPAQUE,
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Return a Secret object, base64 encoding the data values."""
    return {
        "apiVersion": CORE_API_VERSION,
        "kind": SECRET_KIND,
        "metadata": _metadata(name, ns, labels),
        "type": secret_type,
        "data": {
            key: base64.b64encode(value).decode("utf-8") for key, value in data.items()
        },
    }


def decode_secret_data(obj: dict[str, Any]) -> dict[str, bytes]:
    """Return the decoded data values of a Secret object."""
    return {
        key: base64.b64decode(value) for key, value in (obj.get("data") or {}).items()
    }


def config_map(
    name: str, ns: str, data: dict[str, str], labels: dict[str, str] | None = None
) -> dict[str, Any]:
    """Return a ConfigMap object."""
    return {
        "apiVersion": CORE_API_VERSION,
        "kind": CONFIG_MAP_KIND,
        "metadata": _metadata(name, ns, labels),
        "data": dict(data),
    }


def service(
    name: str, ns: str, port: int, labels: dict[str, str]
) -> dict[str, Any]:
    """Return a Service exposing the https port of the selected pods."""
    return {
        "apiVersion": CORE_API_VERSION,
        "kind": SERVICE_KIND,
        "metadata": _metadata(name, ns, labels),
        "spec": {
            "selector": dict(labels),
            "ports": [{"name": "https", "port": port, "protocol": "TCP"}],
        },
    }


@dataclass(frozen=True)
class Volume:
    """A read-only volume of the registry pod."""

    name: str
    mount_dir: str
    secret_name: str | None = None
    config_map_name: str | None = None

    @property
    def source(self) -> dict[str, Any]:
        if self.secret_name:
            return {"secret": {"secretName": self.secret_name}}
        return {"configMap": {"name": self.config_map_name}}


def deployment(
    name: str,
    ns: str,
    image: str,
    port: int,
    labels: dict[str, str],
    volumes: list[Volume],
) -> dict[str, Any]:
    """Return a single replica Deployment mounting each volume read-only."""
    return {
        "apiVersion": APPS_API_VERSION,
        "kind": DEPLOYMENT_KIND,
        "metadata": _metadata(name, ns, labels),
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(labels)},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "containers": [
                        {
                            "name": name,
                            "image": image,
                            "ports": [
                                {
                                    "name": "https",
                                    "containerPort": port,
                                    "protocol": "TCP",
                                }
                            ],
                            "volumeMounts": [
                                {
                                    "name": volume.name,
                                    "mountPath": volume.mount_dir,
                                    "readOnly": True,
                                }
                                for volume in volumes
                            ],
                        }
                    ],
                    "volumes": [
                        {"name": volume.name, **volume.source} for volume in volumes
                    ],
                    "restartPolicy": "Always",
                },
            },
        },
    }


def issuer(name: str, ns: str) -> dict[str, Any]:
    """Return a self-signed cert-manager Issuer."""
    return {
        "apiVersion": CERT_MANAGER_API_VERSION,
        "kind": ISSUER_KIND,
        "metadata": _metadata(name, ns, None),
        "spec": {"selfSigned": {}},
    }


def certificate(
    name: str, ns: str, dns_names: list[str], secret_name: str, issuer_name: str
) -> dict[str, Any]:
    """Return a cert-manager Certificate written to the named secret."""
    return {
        "apiVersion": CERT_MANAGER_API_VERSION,
        "kind": CERTIFICATE_KIND,
        "metadata": _metadata(name, ns, None),
        "spec": {
            "dnsNames": list(dns_names),
            "secretName": secret_name,
            "issuerRef": {"name": issuer_name, "kind": ISSUER_KIND},
        },
    }
