"""Run ceph tooling inside the Rook operator pod."""

from __future__ import annotations

import logging
from typing import List, Sequence

from rook_ceph_lifecycle.errors import NotFoundError

from .base import ClusterClient

LOG = logging.getLogger(__name__)

OPERATOR_LABEL_SELECTOR = "app=rook-ceph-operator"
OPERATOR_CONTAINER = "rook-ceph-operator"

# commands that need to be pointed at the cluster's generated config
CLUSTER_COMMANDS = frozenset({"ceph", "rbd"})


def cluster_flags(cluster_namespace: str) -> List[str]:
    return [
        "--connect-timeout=10",
        f"--conf=/var/lib/rook/{cluster_namespace}/{cluster_namespace}.config",
    ]


def build_command(command: str, args: Sequence[str], cluster_namespace: str) -> List[str]:
    argv = [command, *args]
    if command in CLUSTER_COMMANDS:
        argv.extend(cluster_flags(cluster_namespace))
    return argv


def find_operator_pod(cluster: ClusterClient, operator_namespace: str) -> str:
    pods = cluster.list_pods(operator_namespace, OPERATOR_LABEL_SELECTOR)
    for pod in pods:
        if (pod.get("status") or {}).get("phase") == "Running":
            return pod["metadata"]["name"]
    raise NotFoundError(
        f"no running rook operator pod found in namespace {operator_namespace} "
        f"(selector {OPERATOR_LABEL_SELECTOR})"
    )


def run_in_operator_pod(
    cluster: ClusterClient,
    command: str,
    args: Sequence[str],
    operator_namespace: str,
    cluster_namespace: str,
) -> str:
    """Execute ``command args...`` in the operator pod and return its output."""

    pod = find_operator_pod(cluster, operator_namespace)
    argv = build_command(command, args, cluster_namespace)
    LOG.debug("running %s in pod %s/%s", argv, operator_namespace, pod)
    return cluster.exec_in_pod(operator_namespace, pod, argv, container=OPERATOR_CONTAINER)
