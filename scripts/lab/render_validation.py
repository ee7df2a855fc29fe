#!/usr/bin/env python3
"""Print the resources a multus validation run would create, without a cluster."""

from __future__ import annotations

import argparse
import logging
import sys

import yaml

from rook_ceph_cluster import InMemoryCluster
from rook_ceph_lifecycle.config import ValidationConfig
from rook_ceph_lifecycle.ownership import OwnedResourceGroup
from rook_ceph_lifecycle.templates import (
    NGINX_CONFIG_TEMPLATE,
    NGINX_DEPLOYMENT_TEMPLATE,
    ManifestRenderer,
)

LOG = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--namespace", default="rook-ceph", help="CephCluster namespace")
    parser.add_argument("--public-network", default="", help="Public network attachment")
    parser.add_argument("--cluster-network", default="", help="Cluster network attachment")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = ValidationConfig(
        namespace=args.namespace,
        public_network=args.public_network,
        cluster_network=args.cluster_network,
    )
    cluster = InMemoryCluster()
    group = OwnedResourceGroup(cluster, config.namespace)
    renderer = ManifestRenderer()
    context = config.template_context()

    owner = group.create_owner(config)
    for template in (NGINX_CONFIG_TEMPLATE, NGINX_DEPLOYMENT_TEMPLATE):
        group.attach_dependent(renderer.render(template, context), owner)

    documents = [obj for _, obj in sorted(cluster.objects.items())]
    yaml.safe_dump_all(documents, sys.stdout, sort_keys=False)
    LOG.debug("rendered %d objects", len(documents))
    return 0


if __name__ == "__main__":
    sys.exit(main())
