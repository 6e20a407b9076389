#!/usr/bin/env python3
"""
Kubernetes Backup Preflight Checks

Verifies a cluster is ready for a backup/restore product install.

Features:
- Client tooling checks (kubectl, helm)
- Server version, RBAC and CSI snapshot API checks
- Storage class / volume snapshot class driver matching
- In-cluster DNS resolution check
- Volume snapshot and restore round trip on mounted and unmounted volumes
- UID-scoped cleanup of every resource a run creates
"""

import argparse
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from lib import (
    CleanupConfiguration,
    KubeClient,
    PodResources,
    RunConfiguration,
    __version__,
    __version_date__,
    cleanup_by_uid,
    setup_logging,
)
from lib.constants import (
    DEFAULT_NAMESPACE,
    DEFAULT_PVC_STORAGE_REQUEST,
    DEFAULT_REQUEST_TIMEOUT,
    EXIT_FAILURE,
    EXIT_INTERRUPT,
    EXIT_SUCCESS,
    NAMESPACE_ENV_VAR,
)
from lib.exceptions import CleanupError, ConfigurationError
from lib.validation import InputValidator, ValidationError
from modules import PreflightCoordinator


def parse_key_value(value: str) -> Dict[str, str]:
    """argparse type for ``key=value`` flags."""
    key, sep, val = value.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected key=value, got '{value}'")
    return {key.strip(): val.strip()}


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--kubeconfig",
        default=None,
        help="Path to the kubeconfig file (default: $KUBECONFIG or ~/.kube/config)",
    )
    common.add_argument("--context", default=None, help="Kubeconfig context to use (default: current context)")
    common.add_argument(
        "--namespace",
        "-n",
        default=os.environ.get(NAMESPACE_ENV_VAR) or DEFAULT_NAMESPACE,
        help=f"Namespace in which preflight resources are created (default: ${NAMESPACE_ENV_VAR} or '{DEFAULT_NAMESPACE}')",
    )
    common.add_argument(
        "--request-timeout",
        type=int,
        default=DEFAULT_REQUEST_TIMEOUT,
        help=f"Timeout in seconds for each API request (default: {DEFAULT_REQUEST_TIMEOUT})",
    )
    common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    common.add_argument(
        "--log-format",
        choices=["text", "json"],
        default="text",
        help="Log output format (text or json)",
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    common = _common_parser()
    parser = argparse.ArgumentParser(
        prog="k8s-preflight",
        description="Kubernetes backup preflight checks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run all checks against a storage class
  %(prog)s run --storage-class csi-hostpath-sc

  # Pin the snapshot class and remove resources even if checks fail
  %(prog)s run --storage-class csi-hostpath-sc --volume-snapshot-class csi-hostpath-snapclass --cleanup-on-failure

  # Remove resources left behind by an earlier run
  %(prog)s cleanup --uid ab12cd -n backup-test
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__} ({__version_date__})")
    subparsers = parser.add_subparsers(dest="command", metavar="{run,cleanup}")
    subparsers.required = True

    run = subparsers.add_parser("run", parents=[common], help="Run preflight checks")
    run.add_argument("--storage-class", required=True, help="Name of the storage class to check (required)")
    run.add_argument(
        "--volume-snapshot-class",
        dest="snapshot_class",
        default=None,
        help="Volume snapshot class to use; auto-selected by driver when omitted",
    )
    run.add_argument("--local-registry", default=None, help="Registry to pull check images from")
    run.add_argument(
        "--image-pull-secret",
        default=None,
        help="Image pull secret for the local registry (requires --local-registry)",
    )
    run.add_argument("--service-account", default=None, help="Service account for check pods")
    run.add_argument(
        "--cleanup-on-failure",
        action="store_true",
        help="Delete created resources even when a check fails",
    )

    pod_group = run.add_argument_group("Pod and volume options")
    pod_group.add_argument("--requests-cpu", default=None, help="CPU request for check pods (e.g. 250m)")
    pod_group.add_argument("--requests-memory", default=None, help="Memory request for check pods (e.g. 64Mi)")
    pod_group.add_argument("--limits-cpu", default=None, help="CPU limit for check pods")
    pod_group.add_argument("--limits-memory", default=None, help="Memory limit for check pods")
    pod_group.add_argument(
        "--pvc-storage-request",
        default=DEFAULT_PVC_STORAGE_REQUEST,
        help=f"Storage request of check PVCs (default: {DEFAULT_PVC_STORAGE_REQUEST})",
    )
    pod_group.add_argument(
        "--node-selector",
        type=parse_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Node selector for check pods (repeatable)",
    )

    cleanup = subparsers.add_parser("cleanup", parents=[common], help="Delete resources of a previous run")
    cleanup.add_argument("--uid", required=True, help="UID of the preflight run to clean up")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def build_run_configuration(args: argparse.Namespace) -> RunConfiguration:
    node_selector: Dict[str, str] = {}
    for pair in args.node_selector or []:
        node_selector.update(pair)

    return RunConfiguration(
        storage_class=args.storage_class,
        namespace=args.namespace,
        snapshot_class=args.snapshot_class,
        local_registry=args.local_registry,
        image_pull_secret=args.image_pull_secret,
        service_account=args.service_account,
        cleanup_on_failure=args.cleanup_on_failure,
        resources=PodResources(
            requests_cpu=args.requests_cpu,
            requests_memory=args.requests_memory,
            limits_cpu=args.limits_cpu,
            limits_memory=args.limits_memory,
        ),
        pvc_storage_request=args.pvc_storage_request,
        node_selector=node_selector,
    )


def build_configuration(args: argparse.Namespace) -> Union[RunConfiguration, CleanupConfiguration]:
    """Build the configuration of the selected subcommand and validate it.

    Raises:
        ConfigurationError: If the flags describe an invalid configuration
    """
    if args.command == "run":
        config = build_run_configuration(args)
    else:
        config = CleanupConfiguration(uid=args.uid, namespace=args.namespace)
    config.validate()
    return config


def run_preflight(config: RunConfiguration, kube: KubeClient, logger: logging.Logger) -> bool:
    result = PreflightCoordinator(kube, config).run()
    if result.passed:
        logger.info("Preflight run %s passed", result.uid)
    else:
        logger.error("Preflight run %s failed", result.uid)
    return result.passed


def run_cleanup(config: CleanupConfiguration, kube: KubeClient, logger: logging.Logger) -> bool:
    try:
        cleanup_by_uid(kube, config.namespace, config.uid, logger=logger)
    except CleanupError as e:
        logger.error("✗ %s", e)
        return False
    return True


def _initialize_client(args: argparse.Namespace, logger: logging.Logger) -> KubeClient:
    logger.info("Connecting to cluster (context: %s)", args.context or "current")
    return KubeClient(
        kubeconfig=args.kubeconfig,
        context=args.context,
        request_timeout=args.request_timeout,
    )


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)
    logger = setup_logging(args.verbose, args.log_format)

    try:
        InputValidator.validate_kubernetes_namespace(args.namespace)
        config = build_configuration(args)
    except ValidationError as e:
        logger.error("Validation error: %s", e)
        sys.exit(EXIT_FAILURE)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(EXIT_FAILURE)

    logger.info("Kubernetes Preflight Checks v%s (%s)", __version__, __version_date__)
    logger.info("Started at: %s", datetime.now(timezone.utc).isoformat())

    try:
        kube = _initialize_client(args, logger)
    except Exception as exc:  # pragma: no cover - fatal init error
        logger.error("Failed to initialize Kubernetes client: %s", exc)
        sys.exit(EXIT_FAILURE)

    handler = run_preflight if args.command == "run" else run_cleanup
    try:
        success = handler(config, kube, logger)
    except KeyboardInterrupt:
        logger.warning("Operation interrupted by user")
        sys.exit(EXIT_INTERRUPT)
    except Exception as exc:
        logger.error("✗ Unexpected error: %s", exc, exc_info=args.verbose)
        sys.exit(EXIT_FAILURE)

    if success:
        logger.info("✓ Operation completed successfully!")
        sys.exit(EXIT_SUCCESS)

    logger.error("✗ Operation failed!")
    sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
