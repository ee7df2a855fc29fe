"""Entry point for rook-ceph-ctl."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event

from rook_ceph_cluster import ClusterClient, run_in_operator_pod
from rook_ceph_lifecycle import DebugOverrideManager, LifecycleError, MultusValidationTest

from .config import DEFAULT_CONFIG_PATH, CtlConfig, load_config

LOG = logging.getLogger(__name__)

PASSTHROUGH_COMMANDS = ("ceph", "rbd")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


def _build_cluster(cfg: CtlConfig) -> ClusterClient:
    from rook_ceph_cluster.kube import KubernetesCluster

    return KubernetesCluster.from_kubeconfig(cfg.kubeconfig, cfg.context)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rook-ceph-ctl", description="Operate on a Rook Ceph cluster"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Path to the configuration file (default: {DEFAULT_CONFIG_PATH} if present)",
    )
    parser.add_argument("--kubeconfig", help="Path to the kubeconfig file")
    parser.add_argument("--context", help="Kubeconfig context to use")
    parser.add_argument(
        "--operator-namespace", help="Namespace of the Rook operator"
    )
    parser.add_argument(
        "-n", "--namespace", dest="cluster_namespace", help="Namespace of the CephCluster"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    debug = commands.add_parser("debug", help="Debug a mon or osd deployment")
    debug_commands = debug.add_subparsers(dest="debug_command", required=True)
    start = debug_commands.add_parser("start", help="Start debugging a deployment")
    start.add_argument("deployment")
    start.add_argument(
        "--alternate-image", help="Image to run in the debug deployment"
    )
    stop = debug_commands.add_parser("stop", help="Stop debugging a deployment")
    stop.add_argument("deployment")

    multus = commands.add_parser("multus", help="Multus network tooling")
    multus_commands = multus.add_subparsers(dest="multus_command", required=True)
    validation = multus_commands.add_parser("validation", help="Multus validation test")
    validation_commands = validation.add_subparsers(dest="validation_command", required=True)
    run = validation_commands.add_parser("run", help="Run the multus validation test")
    run.add_argument("--public-network", help="NetworkAttachmentDefinition for the public network")
    run.add_argument("--cluster-network", help="NetworkAttachmentDefinition for the cluster network")
    run.add_argument("--nginx-image", help="Image used for the test web server")
    run.add_argument(
        "--observation-seconds",
        type=float,
        help="How long to keep the test resources running",
    )

    for tool in PASSTHROUGH_COMMANDS:
        passthrough = commands.add_parser(tool, help=f"call a '{tool}' CLI command with arbitrary args")
        passthrough.add_argument("args", nargs=argparse.REMAINDER)

    return parser


def _apply_overrides(cfg: CtlConfig, args: argparse.Namespace) -> CtlConfig:
    if args.kubeconfig:
        cfg.kubeconfig = args.kubeconfig
    if args.context:
        cfg.context = args.context
    if args.operator_namespace:
        cfg.operator_namespace = args.operator_namespace
    if args.cluster_namespace:
        cfg.cluster_namespace = args.cluster_namespace

    if args.command == "multus":
        section = cfg.validation
        if args.public_network:
            section.public_network = args.public_network
        if args.cluster_network:
            section.cluster_network = args.cluster_network
        if args.nginx_image:
            section.nginx_image = args.nginx_image
        if args.observation_seconds is not None:
            section.observation_seconds = args.observation_seconds
    return cfg


def _run_debug(cluster: ClusterClient, cfg: CtlConfig, args: argparse.Namespace) -> int:
    manager = DebugOverrideManager(cluster)
    if args.debug_command == "start":
        manager.start(
            cfg.cluster_namespace, args.deployment, alternate_image=args.alternate_image
        )
    else:
        manager.stop(cfg.cluster_namespace, args.deployment)
    return 0


def _run_validation(cluster: ClusterClient, cfg: CtlConfig) -> int:
    stop_event = Event()

    def _cancel(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, canceling validation test", signum)
        stop_event.set()

    previous = {
        sig: signal.signal(sig, _cancel) for sig in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        test = MultusValidationTest(
            cluster,
            cfg.validation.to_validation_config(cfg.cluster_namespace),
            stop_event=stop_event,
        )
        result = test.run()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if result.canceled:
        LOG.warning("multus validation test did not complete")
        return 1
    LOG.info("multus validation test finished")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    # leading dash arguments of passthrough commands are not known to argparse
    args, extra = parser.parse_known_args(argv)
    if extra:
        if args.command not in PASSTHROUGH_COMMANDS:
            parser.error(f"unrecognized arguments: {' '.join(extra)}")
        args.args = [*extra, *args.args]
    _setup_logging(args.verbose)

    try:
        config_path = args.config
        if config_path is None and DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
        cfg = _apply_overrides(load_config(config_path), args)
        cluster = _build_cluster(cfg)

        if args.command == "debug":
            return _run_debug(cluster, cfg, args)
        if args.command == "multus":
            return _run_validation(cluster, cfg)

        output = run_in_operator_pod(
            cluster,
            args.command,
            args.args,
            cfg.operator_namespace,
            cfg.cluster_namespace,
        )
        print(output)
        return 0
    except (LifecycleError, ValueError, OSError) as exc:
        LOG.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
