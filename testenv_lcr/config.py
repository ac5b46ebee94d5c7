"""Configuration objects for testenv-lcr.

The project configuration is read from a YAML file, for example:

```yaml
name: my-project
kindenv:
  kubeconfigPath: .tmp/kubeconfig
localContainerRegistry:
  enabled: true
  credentialPath: .tmp/registry-credentials.yaml
  caCrtPath: .tmp/ca.crt
  namespace: testenv-lcr
  imagePullSecretNamespaces:
    - default
```

Values that come from the environment are read once into `Envs` and passed
explicitly to the components that need them.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
import logging
import os
import shlex
from pathlib import Path
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import InvalidFieldValue, MissingField
from slugify import slugify
import yaml

from .exceptions import InputException

__all__ = [
    "Config",
    "Envs",
    "read_config",
]

_LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "testenv.yaml"
DEFAULT_NAMESPACE = "testenv-lcr"
DEFAULT_IMAGE_PULL_SECRET_NAME = "local-container-registry-credentials"
DEFAULT_HOSTS_FILE = "/etc/hosts"


@dataclass
class Kindenv(DataClassDictMixin):
    """Configuration for the kind cluster holding the registry."""

    kubeconfig_path: str = field(
        metadata=field_options(alias="kubeconfigPath"), default=".tmp/kubeconfig"
    )
    """Path to the kubeconfig file of the kind cluster."""

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class Timeouts(DataClassDictMixin):
    """Deadlines, in seconds, for the waits of a provisioning run."""

    value_await: float = field(
        metadata=field_options(alias="valueAwait"), default=300.0
    )
    """How long a stage waits for a value published by another stage."""

    registry_ready: float = field(
        metadata=field_options(alias="registryReady"), default=60.0
    )
    """How long to wait for the registry deployment to become ready."""

    port_forward: float = field(
        metadata=field_options(alias="portForward"), default=30.0
    )
    """How long to wait for the local port-forward to accept connections."""

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class LocalContainerRegistry(DataClassDictMixin):
    """Configuration for the local container registry."""

    enabled: bool = True
    """Whether the local container registry is set up."""

    credential_path: str = field(
        metadata=field_options(alias="credentialPath"),
        default=".tmp/registry-credentials.yaml",
    )
    """Local file where the generated credentials are written."""

    ca_crt_path: str = field(
        metadata=field_options(alias="caCrtPath"), default=".tmp/ca.crt"
    )
    """Local file where the registry CA certificate is exported."""

    namespace: str = DEFAULT_NAMESPACE
    """Namespace where the registry is deployed."""

    image_pull_secret_name: str = field(
        metadata=field_options(alias="imagePullSecretName"),
        default=DEFAULT_IMAGE_PULL_SECRET_NAME,
    )
    """Name of the image pull secrets created for the registry."""

    image_pull_secret_namespaces: list[str] = field(
        metadata=field_options(alias="imagePullSecretNamespaces"),
        default_factory=list,
    )
    """Namespaces that receive an image pull secret during setup."""

    hosts_file: str = field(
        metadata=field_options(alias="hostsFile"), default=DEFAULT_HOSTS_FILE
    )
    """Hosts file that resolves the registry FQDN to the local port-forward."""

    images: list[str] = field(default_factory=list)
    """Local images pushed to the registry by `push-all`."""

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass
class Config(DataClassDictMixin):
    """Project configuration for testenv-lcr."""

    name: str
    """Name of the project, used to derive the kind cluster name."""

    kindenv: Kindenv = field(default_factory=Kindenv)

    local_container_registry: LocalContainerRegistry = field(
        metadata=field_options(alias="localContainerRegistry"),
        default_factory=LocalContainerRegistry,
    )

    timeouts: Timeouts = field(default_factory=Timeouts)

    @property
    def cluster_name(self) -> str:
        """Return the kind cluster name derived from the project name."""
        return slugify(self.name, max_length=50, lowercase=True, separator="-")

    @property
    def registry(self) -> LocalContainerRegistry:
        """Shorthand for the local container registry configuration."""
        return self.local_container_registry

    class Config(BaseConfig):
        serialize_by_alias = True


@dataclass(frozen=True)
class Envs:
    """Settings read from environment variables."""

    container_engine: str = "docker"
    """Container engine executable e.g. docker or podman (CONTAINER_ENGINE)."""

    prepend_cmd: str = ""
    """Optional command prepended to privileged operations (PREPEND_CMD)."""

    elevated_prepend_cmd: str = ""
    """Optional command prepended to root operations e.g. `sudo` (ELEVATED_PREPEND_CMD)."""

    kind_binary: str = "kind"
    """Kind executable used to create and delete clusters (KIND_BINARY)."""

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Envs":
        """Read the settings from the environment."""
        if environ is None:
            environ = os.environ
        return cls(
            container_engine=environ.get("CONTAINER_ENGINE") or "docker",
            prepend_cmd=environ.get("PREPEND_CMD", ""),
            elevated_prepend_cmd=environ.get("ELEVATED_PREPEND_CMD", ""),
            kind_binary=environ.get("KIND_BINARY") or "kind",
        )

    def engine(self, *args: str) -> list[str]:
        """Return a container engine command line."""
        return _prepend(self.prepend_cmd, [self.container_engine, *args])

    def prepended(self, *args: str) -> list[str]:
        """Return a command line with the prepend command, if any."""
        return _prepend(self.prepend_cmd, list(args))

    def elevated(self, *args: str) -> list[str]:
        """Return a command line for an operation that needs root."""
        return _prepend(self.elevated_prepend_cmd, list(args))


def _prepend(prefix: str, args: list[str]) -> list[str]:
    return [*shlex.split(prefix), *args] if prefix else args


def parse_config(doc: Any) -> Config:
    """Parse a configuration object from a decoded YAML document."""
    if not isinstance(doc, dict):
        raise InputException(f"Configuration must be a mapping, was: {type(doc)}")
    try:
        return Config.from_dict(doc)
    except (MissingField, InvalidFieldValue) as err:
        raise InputException(f"Invalid configuration: {err}") from err


def read_config(path: Path | None = None) -> Config:
    """Read the project configuration file."""
    path = path or Path(DEFAULT_CONFIG_FILE)
    _LOGGER.debug("Reading configuration from %s", path)
    try:
        content = path.read_text()
    except OSError as err:
        raise InputException(f"Unable to read configuration {path}: {err}") from err
    try:
        doc = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise InputException(f"`{path}` failed to parse as yaml: {err}") from err
    return parse_config(doc)
