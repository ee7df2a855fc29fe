"""Data structures shared by the lifecycle core.

Manifests travel through the code as plain mappings in Kubernetes wire shape
(camelCase keys) so the same values can be rendered from templates, handed to
the official client, or stored by the in-memory substrate used in tests.  The
dataclasses below only capture the handful of fields the core actually reasons
about.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from .errors import SerializationError

DEFAULT_NGINX_IMAGE = "nginxinc/nginx-unprivileged:stable-alpine"
DEFAULT_OBSERVATION_SECONDS = 30.0


@dataclass(frozen=True)
class Workload:
    """A Deployment referenced (not owned) by the core.

    Attributes
    ----------
    namespace, name:
        Identity of the Deployment.
    replicas:
        Desired replica count as stored in ``spec.replicas``.  Kubernetes
        defaults a missing value to one.
    manifest:
        The full object as returned by the cluster, kept for callers that
        need to derive another workload from it.
    """

    namespace: str
    name: str
    replicas: int
    manifest: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Any]) -> "Workload":
        metadata = manifest.get("metadata") or {}
        spec = manifest.get("spec") or {}
        replicas = spec.get("replicas")
        return cls(
            namespace=str(metadata.get("namespace", "")),
            name=str(metadata["name"]),
            replicas=1 if replicas is None else int(replicas),
            manifest=manifest,
        )

    @property
    def ready_replicas(self) -> int:
        status = self.manifest.get("status") or {}
        return int(status.get("readyReplicas") or 0)


@dataclass(frozen=True)
class OwnerReference:
    """Reference stamped on every dependent of an owner marker object."""

    api_version: str
    kind: str
    name: str
    uid: str
    block_owner_deletion: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "blockOwnerDeletion": self.block_owner_deletion,
        }


@dataclass(frozen=True)
class ValidationConfig:
    """Configuration snapshot of one multus validation run."""

    namespace: str
    public_network: str = ""
    cluster_network: str = ""
    nginx_image: str = DEFAULT_NGINX_IMAGE
    observation_seconds: float = DEFAULT_OBSERVATION_SECONDS

    def networks(self) -> list[str]:
        """Return the configured multus networks, public network first."""

        return [n for n in (self.public_network, self.cluster_network) if n]

    def to_json(self) -> str:
        snapshot = {
            "namespace": self.namespace,
            "publicNetwork": self.public_network,
            "clusterNetwork": self.cluster_network,
            "nginxImage": self.nginx_image,
        }
        try:
            return json.dumps(snapshot, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise SerializationError(
                f"failed to render validation test config {self!r} to a string: {exc}"
            ) from exc

    def template_context(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "public_network": self.public_network,
            "cluster_network": self.cluster_network,
            "networks": self.networks(),
            "nginx_image": self.nginx_image,
        }
