"""Error taxonomy shared by the lifecycle core and the cluster adapters."""

from __future__ import annotations


class LifecycleError(RuntimeError):
    """Base class for every failure surfaced by the lifecycle core."""


class ClusterApiError(LifecycleError):
    """A call against the cluster resource API failed."""


class NotFoundError(ClusterApiError):
    """The requested object does not exist."""


class ConflictError(ClusterApiError):
    """The object already exists or the request conflicts with current state."""


class CreationError(ClusterApiError):
    pass


class UpdateError(ClusterApiError):
    pass


class DeletionError(ClusterApiError):
    pass


class SerializationError(LifecycleError):
    """Run configuration or manifest template could not be encoded/decoded."""


class MissingWorkloadError(NotFoundError):
    """The original workload targeted by a debug transition is absent."""


class MissingDebugWorkloadError(NotFoundError):
    """Stopping debug mode requires an existing debug deployment."""

    def __init__(self, name: str, cause: Exception | None = None) -> None:
        message = f"Missing mon or osd debug deployment name {name}."
        if cause is not None:
            message = f"{message} {cause}"
        super().__init__(message)
        self.name = name


class ValidationError(LifecycleError):
    """The validation run could not start its test resources."""
