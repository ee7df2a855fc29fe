import json
import logging

import pytest

from rook_ceph_cluster import FOREGROUND, InMemoryCluster
from rook_ceph_lifecycle.config import ValidationConfig
from rook_ceph_lifecycle.errors import ConflictError, CreationError, DeletionError
from rook_ceph_lifecycle.ownership import OWNER_CONFIGMAP_NAME, OwnedResourceGroup

NAMESPACE = "rook-ceph"


class FailingDeleteCluster(InMemoryCluster):
    def delete(self, kind, namespace, name, *, propagation=None):
        self._record("delete", kind, namespace, name, propagation=propagation)
        raise DeletionError("the server is currently unable to handle the request")


def run_config() -> ValidationConfig:
    return ValidationConfig(
        namespace=NAMESPACE, public_network="public-net", cluster_network="cluster-net"
    )


def dependent(kind: str, name: str) -> dict:
    return {"apiVersion": "v1" if kind == "ConfigMap" else "apps/v1", "kind": kind, "metadata": {"name": name}}


def test_create_owner_writes_immutable_marker():
    cluster = InMemoryCluster()
    group = OwnedResourceGroup(cluster, NAMESPACE)

    owner = group.create_owner(run_config())

    marker = cluster.get("ConfigMap", NAMESPACE, OWNER_CONFIGMAP_NAME)
    assert marker["immutable"] is True
    assert json.loads(marker["data"]["config"]) == {
        "namespace": NAMESPACE,
        "publicNetwork": "public-net",
        "clusterNetwork": "cluster-net",
        "nginxImage": run_config().nginx_image,
    }
    assert owner.uid == marker["metadata"]["uid"]
    assert owner.to_dict() == {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "name": OWNER_CONFIGMAP_NAME,
        "uid": marker["metadata"]["uid"],
        "blockOwnerDeletion": True,
    }


def test_create_owner_conflicts_with_existing_marker():
    cluster = InMemoryCluster()
    group = OwnedResourceGroup(cluster, NAMESPACE)
    group.create_owner(run_config())

    with pytest.raises(ConflictError):
        group.create_owner(run_config())


def test_attach_dependent_stamps_owner_reference():
    cluster = InMemoryCluster()
    group = OwnedResourceGroup(cluster, NAMESPACE)
    owner = group.create_owner(run_config())
    manifest = dependent("ConfigMap", "web-config")

    created = group.attach_dependent(manifest, owner)

    assert created["metadata"]["ownerReferences"] == [owner.to_dict()]
    assert "ownerReferences" not in manifest["metadata"]


def test_attach_dependent_wraps_creation_failure():
    cluster = InMemoryCluster()
    group = OwnedResourceGroup(cluster, NAMESPACE)
    owner = group.create_owner(run_config())
    group.attach_dependent(dependent("ConfigMap", "web-config"), owner)

    with pytest.raises(CreationError, match="web-config"):
        group.attach_dependent(dependent("ConfigMap", "web-config"), owner)


def test_teardown_removes_every_dependent():
    cluster = InMemoryCluster()
    group = OwnedResourceGroup(cluster, NAMESPACE)
    owner = group.create_owner(run_config())
    group.attach_dependent(dependent("ConfigMap", "web-config"), owner)
    group.attach_dependent(dependent("Deployment", "web-server"), owner)

    assert group.teardown() is True

    assert cluster.dependents_of(owner.uid) == []
    remaining = [
        obj
        for obj in cluster.objects.values()
        if any(r["uid"] == owner.uid for r in obj["metadata"].get("ownerReferences", []))
    ]
    assert remaining == []
    assert cluster.objects == {}
    (call,) = cluster.calls_for("delete")
    assert call.name == OWNER_CONFIGMAP_NAME
    assert dict(call.extra)["propagation"] == FOREGROUND


def test_teardown_without_marker_is_clean():
    group = OwnedResourceGroup(InMemoryCluster(), NAMESPACE)

    assert group.teardown() is True


def test_teardown_failure_is_reported_not_raised(caplog):
    cluster = FailingDeleteCluster()
    group = OwnedResourceGroup(cluster, NAMESPACE)

    with caplog.at_level(logging.ERROR):
        assert group.teardown() is False

    assert "manually delete owner configmap 'multus-validation-test-config'" in caplog.text


def test_owned_tears_down_when_body_fails():
    cluster = InMemoryCluster()
    group = OwnedResourceGroup(cluster, NAMESPACE)

    with pytest.raises(RuntimeError, match="boom"):
        with group.owned(run_config()) as owner:
            group.attach_dependent(dependent("ConfigMap", "web-config"), owner)
            raise RuntimeError("boom")

    assert cluster.objects == {}


def test_owned_rejects_concurrent_run_without_touching_its_marker():
    cluster = InMemoryCluster()
    other_run = OwnedResourceGroup(cluster, NAMESPACE)
    other_run.create_owner(run_config())
    group = OwnedResourceGroup(cluster, NAMESPACE)

    with pytest.raises(ConflictError, match="already exists"):
        with group.owned(run_config()):
            pass

    assert cluster.calls_for("delete") == []
    assert group.exists()
