"""Owner marker objects and their dependents.

Every resource created for a validation run carries an owner reference to a
single immutable ConfigMap (the *owner marker*) holding a snapshot of the run's
configuration.  Deleting the marker with foreground propagation makes the
cluster garbage collector remove all dependents first, so teardown never has to
know which dependents were actually created.

The marker name is fixed per run class rather than per run: two runs in the
same namespace share it.  :meth:`OwnedResourceGroup.owned` refuses to start
when a marker is already present instead of letting the runs clobber each
other.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping

from rook_ceph_cluster.base import FOREGROUND, ClusterClient

from .config import OwnerReference, ValidationConfig
from .errors import ClusterApiError, ConflictError, CreationError, NotFoundError

LOG = logging.getLogger(__name__)

# does not need to be unique per run; one per namespace is enough
OWNER_CONFIGMAP_NAME = "multus-validation-test-config"
OWNER_CONFIG_KEY = "config"


class OwnedResourceGroup:
    """Create, populate and tear down one owner marker and its dependents."""

    def __init__(
        self,
        cluster: ClusterClient,
        namespace: str,
        owner_name: str = OWNER_CONFIGMAP_NAME,
    ) -> None:
        self._cluster = cluster
        self._namespace = namespace
        self._owner_name = owner_name

    @property
    def owner_name(self) -> str:
        return self._owner_name

    def exists(self) -> bool:
        try:
            self._cluster.get("ConfigMap", self._namespace, self._owner_name)
        except NotFoundError:
            return False
        return True

    def create_owner(self, run_config: ValidationConfig) -> OwnerReference:
        """Write ``run_config`` into the immutable owner marker.

        Raises ``ConflictError`` when the marker already exists.
        """

        marker = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": self._owner_name, "namespace": self._namespace},
            # users must not modify the test config after the run starts
            "immutable": True,
            "data": {OWNER_CONFIG_KEY: run_config.to_json()},
        }
        try:
            created = self._cluster.create(self._namespace, marker)
        except ConflictError:
            raise
        except ClusterApiError as exc:
            raise CreationError(
                f"failed to create validation test config object {self._owner_name}: {exc}"
            ) from exc

        metadata = created["metadata"]
        LOG.debug("created owner marker %s/%s uid=%s", self._namespace, self._owner_name, metadata["uid"])
        return OwnerReference(
            api_version=created.get("apiVersion") or "v1",
            kind=created.get("kind") or "ConfigMap",
            name=metadata["name"],
            uid=metadata["uid"],
            block_owner_deletion=True,
        )

    def attach_dependent(
        self, manifest: Mapping[str, Any], owner: OwnerReference
    ) -> Dict[str, Any]:
        """Create ``manifest`` with ``owner`` as its only owner reference."""

        resource = copy.deepcopy(dict(manifest))
        metadata = resource.setdefault("metadata", {})
        metadata["namespace"] = self._namespace
        metadata["ownerReferences"] = [owner.to_dict()]

        kind = resource.get("kind")
        try:
            return self._cluster.create(self._namespace, resource)
        except ClusterApiError as exc:
            raise CreationError(
                f"failed to create {kind} {metadata.get('name')}: {exc}"
            ) from exc

    def teardown(self) -> bool:
        """Delete the owner marker in the foreground.

        Returns ``True`` once the marker is gone (or was never there).  Any
        other failure is logged with manual cleanup instructions and reported
        as ``False``; nothing is raised.
        """

        LOG.warning(
            "please wait for validation test resources to be cleaned up, "
            "or manually delete owner configmap %r",
            self._owner_name,
        )
        try:
            self._cluster.delete(
                "ConfigMap",
                self._namespace,
                self._owner_name,
                propagation=FOREGROUND,
            )
        except NotFoundError:
            LOG.debug("owner configmap %r already removed", self._owner_name)
        except Exception:
            LOG.exception(
                "failed to clean up validation test resources; please manually "
                "delete owner configmap %r in namespace %s to perform cleanup",
                self._owner_name,
                self._namespace,
            )
            return False
        LOG.info("validation test resources cleaned up")
        return True

    @contextmanager
    def owned(self, run_config: ValidationConfig) -> Iterator[OwnerReference]:
        """Create the owner marker and tear it down on every exit path.

        Teardown also follows a failed marker creation, since the API server
        may have stored the object before the call failed.  It runs
        independently of whatever cancellation signal governs the body of the
        ``with`` block.
        """

        if self.exists():
            raise ConflictError(
                f"owner configmap {self._owner_name!r} already exists in namespace "
                f"{self._namespace}; another validation run may be in progress"
            )
        owned_by_run = True
        try:
            try:
                owner = self.create_owner(run_config)
            except ConflictError:
                # the existing marker belongs to another run
                owned_by_run = False
                raise
            yield owner
        finally:
            if owned_by_run:
                self.teardown()
