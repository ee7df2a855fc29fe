"""Multus validation run: owner marker, web server dependents, guaranteed cleanup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Event
from typing import Optional

from rook_ceph_cluster.base import ClusterClient

from .config import OwnerReference, ValidationConfig, Workload
from .errors import ClusterApiError, LifecycleError, ValidationError
from .ownership import OwnedResourceGroup
from .templates import NGINX_CONFIG_TEMPLATE, NGINX_DEPLOYMENT_TEMPLATE, ManifestRenderer

LOG = logging.getLogger(__name__)

WEB_SERVER_NAME = "multus-validation-test-web-server"


@dataclass
class ValidationResult:
    """Outcome of one run."""

    canceled: bool
    web_server_ready_replicas: int = 0


class MultusValidationTest:
    """Sequence one validation run against ``cluster``.

    ``stop_event`` is the run's cancellation signal.  Setting it ends the
    observation window early; the owner marker is torn down regardless of
    whether the run completes, fails or is canceled.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        config: ValidationConfig,
        *,
        renderer: Optional[ManifestRenderer] = None,
        stop_event: Optional[Event] = None,
    ) -> None:
        self._cluster = cluster
        self._config = config
        self._renderer = renderer or ManifestRenderer()
        self._stop_event = stop_event or Event()
        self._group = OwnedResourceGroup(cluster, config.namespace)

    @property
    def group(self) -> OwnedResourceGroup:
        return self._group

    def run(self) -> ValidationResult:
        LOG.info("starting multus validation test with the following config:")
        LOG.info("namespace: %s", self._config.namespace)
        LOG.info("multus public network: %s", self._config.public_network or "<none>")
        LOG.info("multus cluster network: %s", self._config.cluster_network or "<none>")

        with self._group.owned(self._config) as owner:
            try:
                self._start_test_resources(owner)
            except LifecycleError as exc:
                raise ValidationError(f"failed to start multus validation test: {exc}") from exc

            if self._stop_event.wait(self._config.observation_seconds):
                LOG.warning("multus validation test canceled")
                return ValidationResult(canceled=True)

            ready = self._web_server_ready_replicas()
            return ValidationResult(canceled=False, web_server_ready_replicas=ready)

    def _start_test_resources(self, owner: OwnerReference) -> None:
        context = self._config.template_context()
        config_map = self._renderer.render(NGINX_CONFIG_TEMPLATE, context)
        deployment = self._renderer.render(NGINX_DEPLOYMENT_TEMPLATE, context)

        self._group.attach_dependent(config_map, owner)
        self._group.attach_dependent(deployment, owner)
        LOG.info("web server %s started", WEB_SERVER_NAME)

    def _web_server_ready_replicas(self) -> int:
        try:
            manifest = self._cluster.get("Deployment", self._config.namespace, WEB_SERVER_NAME)
        except ClusterApiError as exc:
            LOG.warning("could not read web server status: %s", exc)
            return 0
        ready = Workload.from_manifest(manifest).ready_replicas
        if ready:
            LOG.info("web server has %d ready replica(s)", ready)
        else:
            LOG.warning("web server has no ready replicas")
        return ready
