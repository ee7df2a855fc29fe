"""Abstract interface for the cluster resource API."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

FOREGROUND = "Foreground"
BACKGROUND = "Background"
ORPHAN = "Orphan"

PROPAGATION_POLICIES = (FOREGROUND, BACKGROUND, ORPHAN)


class ClusterClient(ABC):
    """Namespaced object operations consumed by the lifecycle core.

    Implementations raise the exceptions from :mod:`rook_ceph_lifecycle.errors`
    so callers can tell a missing object apart from any other failure.
    """

    @abstractmethod
    def create(self, namespace: str, manifest: Mapping[str, Any]) -> Dict[str, Any]:
        """Create ``manifest`` in ``namespace`` and return the stored object."""

    @abstractmethod
    def get(self, kind: str, namespace: str, name: str) -> Dict[str, Any]:
        """Return the object identified by ``kind``/``namespace``/``name``."""

    @abstractmethod
    def delete(
        self,
        kind: str,
        namespace: str,
        name: str,
        *,
        propagation: Optional[str] = None,
    ) -> None:
        """Delete an object, optionally selecting a propagation policy."""

    @abstractmethod
    def scale(self, namespace: str, name: str, replicas: int) -> None:
        """Set the replica count of a Deployment through its scale subresource."""

    @abstractmethod
    def list_pods(self, namespace: str, label_selector: str) -> List[Dict[str, Any]]:
        """Return pods in ``namespace`` matching ``label_selector``."""

    @abstractmethod
    def exec_in_pod(
        self,
        namespace: str,
        pod: str,
        command: Sequence[str],
        container: Optional[str] = None,
    ) -> str:
        """Run ``command`` inside ``pod`` and return its combined output."""
