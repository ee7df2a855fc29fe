"""Cluster client backed by the official ``kubernetes`` Python client."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Type

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream

from rook_ceph_lifecycle.errors import (
    ClusterApiError,
    ConflictError,
    CreationError,
    DeletionError,
    NotFoundError,
    UpdateError,
)

from .base import PROPAGATION_POLICIES, ClusterClient

LOG = logging.getLogger(__name__)

# kind -> (api group attribute, method suffix)
_KINDS: Dict[str, tuple[str, str]] = {
    "ConfigMap": ("core", "config_map"),
    "Deployment": ("apps", "deployment"),
}

_API_VERSIONS = {
    "ConfigMap": "v1",
    "Deployment": "apps/v1",
}


def load_api_client(
    kubeconfig: Optional[str] = None, context: Optional[str] = None
) -> client.ApiClient:
    """Build an API client from a kubeconfig, falling back to in-cluster config."""

    try:
        _load_config(kubeconfig, context)
    except config.ConfigException as exc:
        raise ClusterApiError(f"failed to load kubernetes configuration: {exc}") from exc
    return client.ApiClient()


def _load_config(kubeconfig: Optional[str], context: Optional[str]) -> None:
    try:
        if kubeconfig or context:
            config.load_kube_config(config_file=kubeconfig, context=context)
            LOG.debug("loaded kubeconfig %s (context=%s)", kubeconfig or "<default>", context)
        else:
            config.load_incluster_config()
            LOG.debug("using in-cluster kubernetes configuration")
    except config.ConfigException:
        if kubeconfig or context:
            raise
        config.load_kube_config()
        LOG.debug("using default kubeconfig")


@contextmanager
def _translate(operation: str, error_cls: Type[ClusterApiError]) -> Iterator[None]:
    try:
        yield
    except ApiException as exc:
        if exc.status == 404:
            raise NotFoundError(f"{operation}: not found") from exc
        if exc.status == 409:
            raise ConflictError(f"{operation}: {exc.reason}") from exc
        raise error_cls(f"{operation}: {exc.status} {exc.reason}") from exc
    except urllib3.exceptions.HTTPError as exc:
        raise error_cls(f"{operation}: {exc}") from exc


class KubernetesCluster(ClusterClient):
    """:class:`ClusterClient` implementation talking to a real API server."""

    def __init__(self, api_client: Optional[client.ApiClient] = None) -> None:
        self._api_client = api_client or client.ApiClient()
        self._core = client.CoreV1Api(self._api_client)
        self._apps = client.AppsV1Api(self._api_client)

    @classmethod
    def from_kubeconfig(
        cls, kubeconfig: Optional[str] = None, context: Optional[str] = None
    ) -> "KubernetesCluster":
        return cls(load_api_client(kubeconfig, context))

    def _method(self, verb: str, kind: str):
        try:
            group, suffix = _KINDS[kind]
        except KeyError:
            raise ValueError(f"unsupported kind '{kind}'") from None
        api = self._core if group == "core" else self._apps
        return getattr(api, f"{verb}_namespaced_{suffix}")

    def _to_dict(self, obj: Any, kind: str) -> Dict[str, Any]:
        data = self._api_client.sanitize_for_serialization(obj)
        # typed responses do not always carry TypeMeta
        data.setdefault("apiVersion", _API_VERSIONS[kind])
        data.setdefault("kind", kind)
        return data

    def create(self, namespace: str, manifest: Mapping[str, Any]) -> Dict[str, Any]:
        kind = str(manifest.get("kind", ""))
        create = self._method("create", kind)
        name = (manifest.get("metadata") or {}).get("name")
        with _translate(f"create {kind} {namespace}/{name}", CreationError):
            created = create(namespace=namespace, body=dict(manifest))
        return self._to_dict(created, kind)

    def get(self, kind: str, namespace: str, name: str) -> Dict[str, Any]:
        read = self._method("read", kind)
        with _translate(f"get {kind} {namespace}/{name}", ClusterApiError):
            obj = read(name=name, namespace=namespace)
        return self._to_dict(obj, kind)

    def delete(
        self,
        kind: str,
        namespace: str,
        name: str,
        *,
        propagation: Optional[str] = None,
    ) -> None:
        if propagation is not None and propagation not in PROPAGATION_POLICIES:
            raise ValueError(f"unsupported propagation policy '{propagation}'")
        remove = self._method("delete", kind)
        kwargs: Dict[str, Any] = {}
        if propagation is not None:
            kwargs["propagation_policy"] = propagation
        with _translate(f"delete {kind} {namespace}/{name}", DeletionError):
            remove(name=name, namespace=namespace, **kwargs)

    def scale(self, namespace: str, name: str, replicas: int) -> None:
        body = {"spec": {"replicas": replicas}}
        with _translate(f"scale Deployment {namespace}/{name}", UpdateError):
            self._apps.patch_namespaced_deployment_scale(
                name=name, namespace=namespace, body=body
            )

    def list_pods(self, namespace: str, label_selector: str) -> List[Dict[str, Any]]:
        with _translate(f"list pods {namespace} ({label_selector})", ClusterApiError):
            pods = self._core.list_namespaced_pod(
                namespace=namespace, label_selector=label_selector
            )
        return [self._api_client.sanitize_for_serialization(p) for p in pods.items]

    def exec_in_pod(
        self,
        namespace: str,
        pod: str,
        command: Sequence[str],
        container: Optional[str] = None,
    ) -> str:
        kwargs: Dict[str, Any] = {}
        if container:
            kwargs["container"] = container
        with _translate(f"exec in pod {namespace}/{pod}", ClusterApiError):
            return stream(
                self._core.connect_get_namespaced_pod_exec,
                pod,
                namespace,
                command=list(command),
                stderr=True,
                stdin=False,
                stdout=True,
                tty=False,
                **kwargs,
            )
