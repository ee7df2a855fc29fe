from pathlib import Path

import pytest

from rook_ceph_ctl.config import CtlConfig, load_config
from rook_ceph_lifecycle.config import DEFAULT_NGINX_IMAGE


def test_load_config(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
kubeconfig: /home/ops/.kube/config
context: prod
operator_namespace: rook-ceph-system
cluster_namespace: storage
validation:
  public_network: public-net
  cluster_network: cluster-net
  observation_seconds: 5
"""
    )

    cfg = load_config(config_path)

    assert cfg.kubeconfig == "/home/ops/.kube/config"
    assert cfg.context == "prod"
    assert cfg.operator_namespace == "rook-ceph-system"
    assert cfg.cluster_namespace == "storage"
    assert cfg.validation.public_network == "public-net"
    assert cfg.validation.nginx_image == DEFAULT_NGINX_IMAGE
    assert cfg.validation.observation_seconds == pytest.approx(5.0)

    validation = cfg.validation.to_validation_config(cfg.cluster_namespace)
    assert validation.namespace == "storage"
    assert validation.networks() == ["public-net", "cluster-net"]


def test_load_config_defaults(tmp_path: Path):
    empty = tmp_path / "empty.yaml"
    empty.write_text("")

    assert load_config(None) == CtlConfig()
    assert load_config(empty) == CtlConfig()


def test_load_config_rejects_non_mapping(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("- rook-ceph\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_rejects_bad_validation_section(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("validation: [30]\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_rejects_negative_window(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("validation:\n  observation_seconds: -1\n")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_load_config_rejects_broken_yaml(tmp_path: Path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("validation: [unterminated\n")

    with pytest.raises(ValueError, match="invalid configuration file"):
        load_config(config_path)
