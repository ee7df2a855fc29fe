"""Cluster resource API adapters for the rook-ceph lifecycle tooling.

The lifecycle core only depends on :class:`ClusterClient`.  Two
implementations live here: :class:`KubernetesCluster`, which talks to a real
API server through the official client, and :class:`InMemoryCluster`, a
dictionary-backed substrate that implements owner references and cascading
deletion so the core can be exercised without a cluster.
"""

from .base import BACKGROUND, FOREGROUND, ORPHAN, ClusterClient  # noqa: F401
from .exec import run_in_operator_pod  # noqa: F401
from .memory import InMemoryCluster  # noqa: F401

__all__ = [
    "BACKGROUND",
    "FOREGROUND",
    "ORPHAN",
    "ClusterClient",
    "InMemoryCluster",
    "run_in_operator_pod",
]
