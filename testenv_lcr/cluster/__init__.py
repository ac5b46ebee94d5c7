"""
The cluster module is the boundary between provisioning stages and the
Kubernetes API.

Stages only need to create, read, delete and list objects, so they depend on
the `ClusterClient` interface. `KubernetesClusterClient` talks to a real
cluster through a kubeconfig file and `InMemoryClusterClient` keeps objects in
memory for tests.
"""

from .client import ClusterClient, ObjectKey
from .in_memory import InMemoryClusterClient
from .kube import KubernetesClusterClient

__all__ = [
    "ClusterClient",
    "ObjectKey",
    "InMemoryClusterClient",
    "KubernetesClusterClient",
]
