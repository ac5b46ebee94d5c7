"""Values exchanged between provisioning stages through the eventual config."""

from dataclasses import dataclass

from testenv_lcr.eventual import EventualConfig, InMemoryEventualConfig
from testenv_lcr.manifest import Mount

__all__ = [
    "CREDENTIAL",
    "TLS",
    "CredentialReference",
    "TlsMaterial",
    "new_eventual_config",
]

CREDENTIAL = "credential"
"""Key of the CredentialReference published by the credential stage."""

TLS = "tls"
"""Key of the TlsMaterial published by the TLS stage."""


@dataclass(frozen=True)
class CredentialReference:
    """Where the registry finds its htpasswd credentials."""

    secret_name: str
    """Secret holding the htpasswd file."""

    mount: Mount
    """Location of the htpasswd file inside the registry container."""


@dataclass(frozen=True)
class TlsMaterial:
    """Where the registry finds its TLS certificate and key."""

    secret_name: str
    """Secret written by cert-manager for the issued certificate."""

    ca_cert: Mount
    cert: Mount
    key: Mount


def new_eventual_config() -> EventualConfig:
    """Return an eventual config declaring every key of a provisioning run."""
    return InMemoryEventualConfig([CREDENTIAL, TLS])
