"""Modular preflight checks for Kubernetes backup readiness."""

from .base_check import PreflightCheck, RunContext
from .cluster_checks import ClusterAccessCheck, KubernetesVersionCheck, RBACCheck
from .dns_checks import DNSCheck
from .reporter import CheckResult, ValidationReporter
from .snapshot_checks import VolumeSnapshotCheck
from .storage_checks import CSICheck, StorageSnapshotClassCheck, select_snapshot_class
from .tooling_checks import HelmVersionCheck, KubectlCheck

__all__ = [
    "PreflightCheck",
    "RunContext",
    "CheckResult",
    "ValidationReporter",
    "KubectlCheck",
    "ClusterAccessCheck",
    "HelmVersionCheck",
    "KubernetesVersionCheck",
    "RBACCheck",
    "StorageSnapshotClassCheck",
    "CSICheck",
    "DNSCheck",
    "VolumeSnapshotCheck",
    "select_snapshot_class",
]
