"""Read and set the replica count of Deployments."""

from __future__ import annotations

import logging

from rook_ceph_cluster.base import ClusterClient

from .config import Workload
from .errors import ClusterApiError, NotFoundError, UpdateError

LOG = logging.getLogger(__name__)


class DeploymentScaleController:
    """Thin wrapper over the cluster API for Deployment replica counts.

    No retries are attempted; a failed update surfaces to the caller.
    """

    def __init__(self, cluster: ClusterClient) -> None:
        self._cluster = cluster

    def get_workload(self, namespace: str, name: str) -> Workload:
        return Workload.from_manifest(self._cluster.get("Deployment", namespace, name))

    def set_scale(self, namespace: str, name: str, replicas: int) -> Workload:
        """Set ``replicas`` on an existing Deployment.

        Setting the current value is a no-op.  ``NotFoundError`` is raised when
        the Deployment is absent, ``UpdateError`` for any other failure.
        """

        if replicas < 0:
            raise ValueError("replicas must not be negative")

        workload = self.get_workload(namespace, name)
        if workload.replicas == replicas:
            LOG.debug("deployment %s/%s already at %d replicas", namespace, name, replicas)
            return workload

        try:
            self._cluster.scale(namespace, name, replicas)
        except NotFoundError:
            raise
        except ClusterApiError as exc:
            raise UpdateError(
                f"failed to scale deployment {namespace}/{name} to {replicas}: {exc}"
            ) from exc

        LOG.info(
            "deployment %s/%s scaled from %d to %d replicas",
            namespace,
            name,
            workload.replicas,
            replicas,
        )
        return Workload(namespace, name, replicas, workload.manifest)
