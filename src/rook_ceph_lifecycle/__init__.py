"""Lifecycle core for rook-ceph operational tooling.

Two workflows live here:

* debug mode for mon/osd Deployments (:class:`DebugOverrideManager`), which
  swaps a running Deployment for a sleeping ``-debug`` copy and back; and
* transient validation runs (:class:`MultusValidationTest`), whose resources
  all hang off one owner marker object so a single foreground delete removes
  them.

Cluster access goes through :class:`rook_ceph_cluster.ClusterClient`.
"""

from .errors import LifecycleError  # noqa: F401
from .config import OwnerReference, ValidationConfig, Workload  # noqa: F401
from .debug import DebugOverrideManager, DebugState  # noqa: F401
from .ownership import OwnedResourceGroup  # noqa: F401
from .scale import DeploymentScaleController  # noqa: F401
from .validation import MultusValidationTest, ValidationResult  # noqa: F401

__all__ = [
    "DebugOverrideManager",
    "DebugState",
    "DeploymentScaleController",
    "LifecycleError",
    "MultusValidationTest",
    "OwnedResourceGroup",
    "OwnerReference",
    "ValidationConfig",
    "ValidationResult",
    "Workload",
]
