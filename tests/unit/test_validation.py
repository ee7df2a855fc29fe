import threading
import time
from pathlib import Path

import pytest

from rook_ceph_cluster import FOREGROUND, InMemoryCluster
from rook_ceph_lifecycle.config import ValidationConfig
from rook_ceph_lifecycle.errors import ConflictError, CreationError, ValidationError
from rook_ceph_lifecycle.ownership import OWNER_CONFIGMAP_NAME, OwnedResourceGroup
from rook_ceph_lifecycle.templates import NGINX_CONFIG_TEMPLATE, ManifestRenderer
from rook_ceph_lifecycle.validation import WEB_SERVER_NAME, MultusValidationTest

NAMESPACE = "rook-ceph"


class RejectDeploymentsCluster(InMemoryCluster):
    def create(self, namespace, manifest):
        if manifest.get("kind") == "Deployment":
            self._record("create", "Deployment", namespace, manifest["metadata"]["name"])
            raise CreationError("pods are forbidden by policy")
        return super().create(namespace, manifest)


class TimeoutAfterStoreCluster(InMemoryCluster):
    """Store the owner marker, then report the create as failed."""

    def create(self, namespace, manifest):
        created = super().create(namespace, manifest)
        if manifest["metadata"]["name"] == OWNER_CONFIGMAP_NAME:
            raise CreationError("context deadline exceeded")
        return created


class RacingOwnerCluster(InMemoryCluster):
    """Another run creates the marker between the existence check and create."""

    def create(self, namespace, manifest):
        if manifest["metadata"]["name"] == OWNER_CONFIGMAP_NAME:
            self._record("create", "ConfigMap", namespace, OWNER_CONFIGMAP_NAME)
            raise ConflictError("configmaps \"multus-validation-test-config\" already exists")
        return super().create(namespace, manifest)


class SnapshotCluster(InMemoryCluster):
    """Remember which objects existed right before the owner marker was deleted."""

    def __init__(self):
        super().__init__()
        self.before_teardown = []

    def delete(self, kind, namespace, name, *, propagation=None):
        self.before_teardown = sorted(self.objects)
        super().delete(kind, namespace, name, propagation=propagation)


def build_config(seconds: float = 0.0) -> ValidationConfig:
    return ValidationConfig(
        namespace=NAMESPACE,
        public_network="public-net",
        cluster_network="cluster-net",
        observation_seconds=seconds,
    )


def marker_deletions(cluster: InMemoryCluster):
    return [
        c
        for c in cluster.calls_for("delete")
        if c.kind == "ConfigMap"
        and c.name == OWNER_CONFIGMAP_NAME
        and dict(c.extra)["propagation"] == FOREGROUND
    ]


def test_run_creates_resources_and_cleans_up():
    cluster = SnapshotCluster()
    test = MultusValidationTest(cluster, build_config())

    result = test.run()

    assert result.canceled is False
    assert result.web_server_ready_replicas == 1
    assert cluster.before_teardown == [
        ("ConfigMap", NAMESPACE, OWNER_CONFIGMAP_NAME),
        ("ConfigMap", NAMESPACE, WEB_SERVER_NAME),
        ("Deployment", NAMESPACE, WEB_SERVER_NAME),
    ]
    assert len(marker_deletions(cluster)) == 1
    assert cluster.objects == {}


def test_run_attaches_multus_networks():
    captured = {}

    class CapturingCluster(InMemoryCluster):
        def create(self, namespace, manifest):
            captured[manifest["kind"], manifest["metadata"]["name"]] = manifest
            return super().create(namespace, manifest)

    cluster = CapturingCluster()
    MultusValidationTest(cluster, build_config()).run()

    deployment = captured["Deployment", WEB_SERVER_NAME]
    annotations = deployment["spec"]["template"]["metadata"]["annotations"]
    assert annotations["k8s.v1.cni.cncf.io/networks"] == "public-net,cluster-net"
    owner_refs = deployment["metadata"]["ownerReferences"]
    assert [r["name"] for r in owner_refs] == [OWNER_CONFIGMAP_NAME]


def test_canceled_run_still_deletes_owner_marker():
    cluster = InMemoryCluster()
    stop_event = threading.Event()
    stop_event.set()
    test = MultusValidationTest(cluster, build_config(seconds=3600), stop_event=stop_event)

    result = test.run()

    assert result.canceled is True
    assert len(marker_deletions(cluster)) == 1
    assert cluster.objects == {}


def test_cancel_during_observation_window():
    cluster = InMemoryCluster()
    stop_event = threading.Event()
    test = MultusValidationTest(cluster, build_config(seconds=30), stop_event=stop_event)
    timer = threading.Timer(0.05, stop_event.set)

    started = time.monotonic()
    timer.start()
    try:
        result = test.run()
    finally:
        timer.cancel()

    assert result.canceled is True
    assert time.monotonic() - started < 10
    assert len(marker_deletions(cluster)) == 1


def test_partial_dependent_creation_is_reclaimed_by_teardown():
    cluster = RejectDeploymentsCluster()
    test = MultusValidationTest(cluster, build_config())

    with pytest.raises(ValidationError, match="failed to start multus validation test"):
        test.run()

    assert len(marker_deletions(cluster)) == 1
    assert cluster.objects == {}


def test_template_failure_still_tears_down(tmp_path: Path):
    (tmp_path / NGINX_CONFIG_TEMPLATE).write_text("kind: [unterminated\n")
    cluster = InMemoryCluster()
    test = MultusValidationTest(
        cluster, build_config(), renderer=ManifestRenderer(tmp_path)
    )

    with pytest.raises(ValidationError):
        test.run()

    assert len(marker_deletions(cluster)) == 1
    assert cluster.objects == {}


def test_run_rejected_when_marker_exists():
    cluster = InMemoryCluster()
    OwnedResourceGroup(cluster, NAMESPACE).create_owner(build_config())
    test = MultusValidationTest(cluster, build_config())

    with pytest.raises(ConflictError):
        test.run()

    assert marker_deletions(cluster) == []
    assert OwnedResourceGroup(cluster, NAMESPACE).exists()


def test_failed_owner_creation_still_tears_down():
    cluster = TimeoutAfterStoreCluster()
    test = MultusValidationTest(cluster, build_config())

    with pytest.raises(CreationError, match="context deadline exceeded"):
        test.run()

    assert len(marker_deletions(cluster)) == 1
    assert cluster.objects == {}
    assert not OwnedResourceGroup(cluster, NAMESPACE).exists()


def test_owner_create_conflict_skips_teardown():
    cluster = RacingOwnerCluster()
    test = MultusValidationTest(cluster, build_config())

    with pytest.raises(ConflictError):
        test.run()

    assert marker_deletions(cluster) == []
