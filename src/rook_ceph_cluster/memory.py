"""In-process cluster substrate used by the unit tests and lab dry runs.

Objects are stored as plain dictionaries.  Owner references are indexed in
reverse (owner UID -> dependent keys) so cascading deletion can be performed
without the owner holding forward references to its dependents, mirroring the
garbage collector behaviour of a real API server:

* ``Foreground`` deletes every dependent depth-first before the owner;
* ``Background`` (and the default) removes the owner and then its dependents;
* ``Orphan`` strips the owner reference from dependents and leaves them.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

from rook_ceph_lifecycle.errors import ConflictError, CreationError, NotFoundError

from .base import BACKGROUND, FOREGROUND, ORPHAN, PROPAGATION_POLICIES, ClusterClient

LOG = logging.getLogger(__name__)

ObjectKey = Tuple[str, str, str]

_API_VERSIONS = {
    "ConfigMap": "v1",
    "Deployment": "apps/v1",
    "Pod": "v1",
}


@dataclass(frozen=True)
class Call:
    """One recorded API call."""

    verb: str
    kind: str
    namespace: str
    name: str
    extra: Tuple[Tuple[str, Any], ...] = ()


def _matches(labels: Mapping[str, str], selector: str) -> bool:
    for term in filter(None, (t.strip() for t in selector.split(","))):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class InMemoryCluster(ClusterClient):
    """Dictionary-backed :class:`ClusterClient` honouring owner references."""

    def __init__(
        self,
        exec_handler: Optional[Callable[[str, str, Sequence[str]], str]] = None,
    ) -> None:
        self.objects: Dict[ObjectKey, Dict[str, Any]] = {}
        self.calls: List[Call] = []
        self.exec_handler = exec_handler
        self._dependents: Dict[str, Set[ObjectKey]] = defaultdict(set)
        self._version = 0

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _record(self, verb: str, kind: str, namespace: str, name: str, **extra: Any) -> None:
        self.calls.append(Call(verb, kind, namespace, name, tuple(sorted(extra.items()))))

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _lookup(self, kind: str, namespace: str, name: str) -> Dict[str, Any]:
        try:
            return self.objects[(kind, namespace, name)]
        except KeyError:
            raise NotFoundError(f'{kind.lower()}s "{name}" not found') from None

    def _index(self, key: ObjectKey, obj: Mapping[str, Any]) -> None:
        for ref in obj["metadata"].get("ownerReferences") or []:
            self._dependents[ref["uid"]].add(key)

    def _unindex(self, key: ObjectKey, obj: Mapping[str, Any]) -> None:
        for ref in obj["metadata"].get("ownerReferences") or []:
            keys = self._dependents.get(ref["uid"])
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._dependents[ref["uid"]]

    def dependents_of(self, uid: str) -> List[ObjectKey]:
        return sorted(self._dependents.get(uid, ()))

    def names(self, kind: str, namespace: str) -> List[str]:
        return sorted(n for (k, ns, n) in self.objects if k == kind and ns == namespace)

    def calls_for(self, verb: str) -> List[Call]:
        return [c for c in self.calls if c.verb == verb]

    def add_pod(self, namespace: str, name: str, labels: Mapping[str, str], phase: str = "Running") -> None:
        """Seed a pod, used to exercise the command execution shim."""

        self.objects[("Pod", namespace, name)] = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": dict(labels),
                "uid": str(uuid.uuid4()),
            },
            "status": {"phase": phase},
        }

    # ------------------------------------------------------------------
    # ClusterClient
    # ------------------------------------------------------------------
    def create(self, namespace: str, manifest: Mapping[str, Any]) -> Dict[str, Any]:
        kind = str(manifest.get("kind", ""))
        if kind not in _API_VERSIONS:
            raise CreationError(f"unsupported kind '{kind}'")
        obj = copy.deepcopy(dict(manifest))
        metadata = obj.setdefault("metadata", {})
        name = metadata.get("name")
        self._record("create", kind, namespace, str(name))
        if not name:
            raise CreationError(f"{kind} in {namespace} has no metadata.name")
        key = (kind, namespace, name)
        if key in self.objects:
            raise ConflictError(f'{kind.lower()}s "{name}" already exists')

        obj.setdefault("apiVersion", _API_VERSIONS[kind])
        metadata["namespace"] = namespace
        metadata["uid"] = str(uuid.uuid4())
        metadata["resourceVersion"] = self._next_version()
        if kind == "Deployment":
            replicas = obj.setdefault("spec", {}).setdefault("replicas", 1)
            obj["status"] = {"replicas": replicas, "readyReplicas": replicas}

        self.objects[key] = obj
        self._index(key, obj)
        LOG.debug("created %s %s/%s", kind, namespace, name)
        return copy.deepcopy(obj)

    def get(self, kind: str, namespace: str, name: str) -> Dict[str, Any]:
        self._record("get", kind, namespace, name)
        return copy.deepcopy(self._lookup(kind, namespace, name))

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
        self._record("delete", kind, namespace, name, propagation=propagation)
        self._lookup(kind, namespace, name)
        self._remove((kind, namespace, name), propagation or BACKGROUND)

    def _remove(self, key: ObjectKey, propagation: str) -> None:
        obj = self.objects.get(key)
        if obj is None:
            return
        uid = obj["metadata"]["uid"]
        dependents = list(self._dependents.get(uid, ()))

        if propagation == ORPHAN:
            for dep_key in dependents:
                dep = self.objects[dep_key]
                self._unindex(dep_key, dep)
                refs = [r for r in dep["metadata"].get("ownerReferences", []) if r["uid"] != uid]
                dep["metadata"]["ownerReferences"] = refs
                self._index(dep_key, dep)
        elif propagation == FOREGROUND:
            for dep_key in dependents:
                self._remove(dep_key, FOREGROUND)

        self._unindex(key, obj)
        del self.objects[key]
        LOG.debug("deleted %s %s/%s (%s)", key[0], key[1], key[2], propagation)

        if propagation == BACKGROUND:
            for dep_key in dependents:
                self._remove(dep_key, BACKGROUND)
        self._dependents.pop(uid, None)

    def scale(self, namespace: str, name: str, replicas: int) -> None:
        self._record("scale", "Deployment", namespace, name, replicas=replicas)
        obj = self._lookup("Deployment", namespace, name)
        obj["spec"]["replicas"] = replicas
        obj["status"] = {"replicas": replicas, "readyReplicas": replicas}
        obj["metadata"]["resourceVersion"] = self._next_version()

    def list_pods(self, namespace: str, label_selector: str) -> List[Dict[str, Any]]:
        self._record("list", "Pod", namespace, "", label_selector=label_selector)
        return [
            copy.deepcopy(obj)
            for (kind, ns, _), obj in sorted(self.objects.items())
            if kind == "Pod"
            and ns == namespace
            and _matches(obj["metadata"].get("labels") or {}, label_selector)
        ]

    def exec_in_pod(
        self,
        namespace: str,
        pod: str,
        command: Sequence[str],
        container: Optional[str] = None,
    ) -> str:
        self._record("exec", "Pod", namespace, pod, command=tuple(command), container=container)
        self._lookup("Pod", namespace, pod)
        if self.exec_handler is None:
            return ""
        return self.exec_handler(namespace, pod, command)
