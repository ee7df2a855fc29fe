"""YAML configuration loader for rook-ceph-ctl."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from rook_ceph_lifecycle.config import (
    DEFAULT_NGINX_IMAGE,
    DEFAULT_OBSERVATION_SECONDS,
    ValidationConfig,
)

DEFAULT_CONFIG_PATH = Path("/etc/rook-ceph-ctl/config.yaml")
DEFAULT_NAMESPACE = "rook-ceph"


@dataclass
class ValidationSection:
    public_network: str = ""
    cluster_network: str = ""
    nginx_image: str = DEFAULT_NGINX_IMAGE
    observation_seconds: float = DEFAULT_OBSERVATION_SECONDS

    def to_validation_config(self, namespace: str) -> ValidationConfig:
        return ValidationConfig(
            namespace=namespace,
            public_network=self.public_network,
            cluster_network=self.cluster_network,
            nginx_image=self.nginx_image,
            observation_seconds=self.observation_seconds,
        )


@dataclass
class CtlConfig:
    kubeconfig: Optional[str] = None
    context: Optional[str] = None
    operator_namespace: str = DEFAULT_NAMESPACE
    cluster_namespace: str = DEFAULT_NAMESPACE
    validation: ValidationSection = field(default_factory=ValidationSection)


def _optional_str(value) -> Optional[str]:
    return None if value is None else str(value)


def _parse_validation(section: dict) -> ValidationSection:
    seconds = float(section.get("observation_seconds", DEFAULT_OBSERVATION_SECONDS))
    if seconds < 0:
        raise ValueError("'observation_seconds' must not be negative")
    return ValidationSection(
        public_network=str(section.get("public_network") or ""),
        cluster_network=str(section.get("cluster_network") or ""),
        nginx_image=str(section.get("nginx_image") or DEFAULT_NGINX_IMAGE),
        observation_seconds=seconds,
    )


def load_config(path: Optional[Path]) -> CtlConfig:
    """Load ``path``; ``None`` yields the built-in defaults."""

    if path is None:
        return CtlConfig()

    try:
        data = yaml.safe_load(path.read_text())
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid configuration file {path}: {exc}") from exc
    if data is None:
        return CtlConfig()
    if not isinstance(data, dict):
        raise ValueError("rook-ceph-ctl configuration must be a mapping")

    validation_section = data.get("validation", {}) or {}
    if not isinstance(validation_section, dict):
        raise ValueError("'validation' section must be a mapping")

    return CtlConfig(
        kubeconfig=_optional_str(data.get("kubeconfig")),
        context=_optional_str(data.get("context")),
        operator_namespace=str(data.get("operator_namespace", DEFAULT_NAMESPACE)),
        cluster_namespace=str(data.get("cluster_namespace", DEFAULT_NAMESPACE)),
        validation=_parse_validation(validation_section),
    )
