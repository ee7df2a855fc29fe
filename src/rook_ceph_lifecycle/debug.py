"""Enter and leave debug mode for mon/osd Deployments.

Debug mode replaces a running Deployment with a ``<name>-debug`` copy whose
containers sleep instead of starting the daemon, so operators can attach to
the pod and work on the daemon's data directly.  The original Deployment is
scaled to zero while the debug copy exists and back to one replica afterwards.

State is tracked per base Deployment as :class:`DebugState`.  The ``-debug``
suffix is confined to :func:`debug_name` / :func:`base_name`; everything else
speaks in terms of the base identity.
"""

from __future__ import annotations

import copy
import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from rook_ceph_cluster.base import ClusterClient

from .config import Workload
from .errors import (
    ClusterApiError,
    ConflictError,
    CreationError,
    DeletionError,
    MissingDebugWorkloadError,
    MissingWorkloadError,
    NotFoundError,
)
from .scale import DeploymentScaleController

LOG = logging.getLogger(__name__)

DEBUG_SUFFIX = "-debug"
DO_NOT_RECONCILE_LABEL = "ceph.rook.io/do-not-reconcile"
RESTORED_REPLICAS = 1

_SERVER_METADATA = (
    "uid",
    "resourceVersion",
    "generation",
    "creationTimestamp",
    "managedFields",
    "ownerReferences",
    "selfLink",
)


class DebugState(Enum):
    NORMAL = "normal"
    DEBUG_ACTIVE = "debug-active"


def debug_name(name: str) -> str:
    """Return the debug Deployment name for ``name``, adding the suffix once."""

    return name if name.endswith(DEBUG_SUFFIX) else name + DEBUG_SUFFIX


def base_name(name: str) -> str:
    """Return the original Deployment name, stripping the suffix once."""

    return name[: -len(DEBUG_SUFFIX)] if name.endswith(DEBUG_SUFFIX) else name


def build_debug_manifest(
    original: Mapping[str, Any], alternate_image: Optional[str] = None
) -> Dict[str, Any]:
    """Derive a debug Deployment from the ``original`` Deployment manifest.

    The pod template keeps the volumes and environment of the original but its
    containers run ``sleep infinity`` without probes, so the daemon never starts
    and the pod is never restarted for failing health checks.
    """

    metadata = original.get("metadata") or {}
    labels = dict(metadata.get("labels") or {})
    labels[DO_NOT_RECONCILE_LABEL] = "true"

    template = copy.deepcopy((original.get("spec") or {}).get("template") or {})
    pod_spec = template.setdefault("spec", {})

    for container in pod_spec.get("initContainers") or []:
        if alternate_image:
            container["image"] = alternate_image

    for container in pod_spec.get("containers") or []:
        container.pop("livenessProbe", None)
        container.pop("startupProbe", None)
        container["command"] = ["sleep", "infinity"]
        container["args"] = []
        if alternate_image:
            container["image"] = alternate_image

    template_metadata = template.setdefault("metadata", {})
    template_metadata["labels"] = dict(labels)
    for key in _SERVER_METADATA:
        template_metadata.pop(key, None)

    debug_metadata = {"name": debug_name(str(metadata["name"])), "labels": labels}
    if metadata.get("namespace"):
        debug_metadata["namespace"] = metadata["namespace"]

    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": debug_metadata,
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": dict(labels)},
            "template": template,
        },
    }


class DebugOverrideManager:
    """Two-state machine (``NORMAL`` / ``DEBUG_ACTIVE``) per base Deployment."""

    def __init__(
        self,
        cluster: ClusterClient,
        scaler: Optional[DeploymentScaleController] = None,
    ) -> None:
        self._cluster = cluster
        self._scaler = scaler or DeploymentScaleController(cluster)
        # transitions performed through this manager, keyed by (namespace, base name)
        self._states: Dict[Tuple[str, str], DebugState] = {}

    def _lookup_debug(self, namespace: str, name: str) -> Optional[Workload]:
        try:
            return self._scaler.get_workload(namespace, debug_name(name))
        except NotFoundError:
            return None

    def state(self, namespace: str, name: str) -> DebugState:
        """Observe the current state of the Deployment behind ``name``."""

        if self._lookup_debug(namespace, base_name(name)) is not None:
            return DebugState.DEBUG_ACTIVE
        return DebugState.NORMAL

    def start(
        self,
        namespace: str,
        name: str,
        debug_manifest: Optional[Mapping[str, Any]] = None,
        *,
        alternate_image: Optional[str] = None,
    ) -> Workload:
        """Move ``name`` from ``NORMAL`` to ``DEBUG_ACTIVE``.

        Creates the debug Deployment, then scales the original to zero.  The
        two steps are separate API calls; a failure in the second leaves the
        debug Deployment in place and is raised to the caller without rollback.
        """

        original_name = base_name(name)
        try:
            original = self._scaler.get_workload(namespace, original_name)
        except NotFoundError as exc:
            raise MissingWorkloadError(
                f"deployment {namespace}/{original_name} not found: {exc}"
            ) from exc

        if self.state(namespace, original_name) is DebugState.DEBUG_ACTIVE:
            raise ConflictError(
                f"debug deployment {debug_name(original_name)} already exists in {namespace}"
            )

        if debug_manifest is None:
            manifest = build_debug_manifest(original.manifest, alternate_image)
        else:
            manifest = copy.deepcopy(dict(debug_manifest))
            manifest.setdefault("metadata", {})["name"] = debug_name(original_name)

        LOG.info("setting debug mode for deployment %s", original_name)
        try:
            created = self._cluster.create(namespace, manifest)
        except ConflictError:
            raise
        except ClusterApiError as exc:
            raise CreationError(
                f"failed to create debug deployment {debug_name(original_name)}: {exc}"
            ) from exc
        self._states[(namespace, original_name)] = DebugState.DEBUG_ACTIVE

        self._scaler.set_scale(namespace, original_name, 0)
        LOG.info(
            "deployment %s scaled down from %d replicas; debug deployment %s created",
            original_name,
            original.replicas,
            debug_name(original_name),
        )
        return Workload.from_manifest(created)

    def stop(self, namespace: str, name: str) -> Workload:
        """Move ``name`` from ``DEBUG_ACTIVE`` back to ``NORMAL``.

        Accepts either the base or the ``-debug`` name.  A missing debug
        Deployment is fatal unless this manager already moved the workload
        into or out of debug mode, in which case the delete is repeated and
        its not-found response tolerated.  The original is restored to one
        replica, not to its pre-debug count.
        """

        original_name = base_name(name)
        target = debug_name(original_name)
        key = (namespace, original_name)

        debug = self._lookup_debug(namespace, original_name)
        if debug is None and key not in self._states:
            raise MissingDebugWorkloadError(target)

        LOG.info("removing debug mode from deployment %s", target)
        try:
            self._cluster.delete("Deployment", namespace, target)
        except NotFoundError:
            LOG.debug("debug deployment %s already removed", target)
        except ClusterApiError as exc:
            raise DeletionError(f"Error deleting deployment {target}: {exc}") from exc

        restored = self._scaler.set_scale(namespace, original_name, RESTORED_REPLICAS)
        self._states[key] = DebugState.NORMAL
        LOG.info(
            "Successfully deleted debug deployment and restored deployment %r",
            original_name,
        )
        return restored
