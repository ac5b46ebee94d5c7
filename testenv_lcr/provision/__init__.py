"""
The provision module sets up and tears down the registry.

Each stage creates one category of cluster resource. Stages hand values to
each other through the eventual config using the keys and records declared
in `keys`, and the `Provisioner` runs them concurrently.
"""

from .keys import CREDENTIAL, TLS, CredentialReference, TlsMaterial
from .orchestrator import Provisioner, ProvisionResult
from .readiness import ReadinessPoller, ReadinessState
from .teardown import Teardown

__all__ = [
    "CREDENTIAL",
    "TLS",
    "CredentialReference",
    "TlsMaterial",
    "Provisioner",
    "ProvisionResult",
    "ReadinessPoller",
    "ReadinessState",
    "Teardown",
]
