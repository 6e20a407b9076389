"""Run and cleanup configuration for preflight checks."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from lib.constants import DEFAULT_NAMESPACE, DEFAULT_PVC_STORAGE_REQUEST
from lib.exceptions import ConfigurationError
from lib.validation import InputValidator


@dataclass(frozen=True)
class PodResources:
    """CPU/memory requests and limits for ephemeral pods.

    Unset values are left out of the pod manifest so cluster defaults
    (LimitRanges) still apply.
    """

    requests_cpu: Optional[str] = None
    requests_memory: Optional[str] = None
    limits_cpu: Optional[str] = None
    limits_memory: Optional[str] = None

    def validate(self) -> None:
        InputValidator.validate_request_within_limit(self.requests_cpu, self.limits_cpu, "cpu")
        InputValidator.validate_request_within_limit(self.requests_memory, self.limits_memory, "memory")

    def to_manifest(self) -> Dict[str, Dict[str, str]]:
        requirements: Dict[str, Dict[str, str]] = {}
        requests = {k: v for k, v in (("cpu", self.requests_cpu), ("memory", self.requests_memory)) if v}
        limits = {k: v for k, v in (("cpu", self.limits_cpu), ("memory", self.limits_memory)) if v}
        if requests:
            requirements["requests"] = requests
        if limits:
            requirements["limits"] = limits
        return requirements


@dataclass(frozen=True)
class RunConfiguration:
    """Immutable parameters of one preflight run."""

    storage_class: str
    namespace: str = DEFAULT_NAMESPACE
    snapshot_class: Optional[str] = None
    local_registry: Optional[str] = None
    image_pull_secret: Optional[str] = None
    service_account: Optional[str] = None
    cleanup_on_failure: bool = False
    resources: PodResources = field(default_factory=PodResources)
    pvc_storage_request: str = DEFAULT_PVC_STORAGE_REQUEST
    node_selector: Dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        """Check the configuration before any cluster call is made.

        Raises:
            ConfigurationError: If a required value is missing or values conflict
            ValidationError: If a name or quantity is malformed
        """
        if not self.storage_class or not self.storage_class.strip():
            raise ConfigurationError("storage-class is required, cannot be empty")
        if self.image_pull_secret and not self.local_registry:
            raise ConfigurationError(
                "Cannot give image pull secret if local registry is not provided. "
                "Use --local-registry flag to provide local registry"
            )

        InputValidator.validate_kubernetes_namespace(self.namespace)
        InputValidator.validate_kubernetes_name(self.storage_class, "StorageClass")
        if self.snapshot_class:
            InputValidator.validate_kubernetes_name(self.snapshot_class, "VolumeSnapshotClass")
        if self.image_pull_secret:
            InputValidator.validate_kubernetes_name(self.image_pull_secret, "image pull secret")
        if self.service_account:
            InputValidator.validate_kubernetes_name(self.service_account, "ServiceAccount")
        if self.local_registry:
            InputValidator.validate_non_empty_string(self.local_registry, "local-registry")

        InputValidator.validate_resource_quantity(self.pvc_storage_request, "pvc storage request")
        self.resources.validate()

        for key, value in self.node_selector.items():
            InputValidator.validate_kubernetes_label_key(key)
            InputValidator.validate_kubernetes_label_value(value)

    def image(self, name: str) -> str:
        """Image reference, pulled from the local registry when one is configured."""
        if self.local_registry:
            return f"{self.local_registry.rstrip('/')}/{name.rsplit('/', 1)[-1]}"
        return name

    def log_options(self, logger: logging.Logger) -> None:
        logger.info("====PREFLIGHT RUN OPTIONS====")
        for label, value in self.as_log_fields().items():
            logger.info('%s="%s"', label, value)
        logger.info("====PREFLIGHT RUN OPTIONS END====")

    def as_log_fields(self) -> Dict[str, Any]:
        return {
            "NAMESPACE": self.namespace,
            "STORAGE-CLASS": self.storage_class,
            "VOLUME-SNAPSHOT-CLASS": self.snapshot_class or "",
            "LOCAL-REGISTRY": self.local_registry or "",
            "IMAGE-PULL-SECRET": self.image_pull_secret or "",
            "SERVICE-ACCOUNT": self.service_account or "",
            "CLEANUP-ON-FAILURE": self.cleanup_on_failure,
            "POD CPU REQUEST": self.resources.requests_cpu or "",
            "POD MEMORY REQUEST": self.resources.requests_memory or "",
            "POD CPU LIMIT": self.resources.limits_cpu or "",
            "POD MEMORY LIMIT": self.resources.limits_memory or "",
            "PVC STORAGE REQUEST": self.pvc_storage_request,
            "NODE SELECTOR": ",".join(f"{k}={v}" for k, v in sorted(self.node_selector.items())),
        }


@dataclass(frozen=True)
class CleanupConfiguration:
    """Parameters of a standalone cleanup by run UID."""

    uid: str
    namespace: str = DEFAULT_NAMESPACE

    def validate(self) -> None:
        InputValidator.validate_run_uid(self.uid)
        InputValidator.validate_kubernetes_namespace(self.namespace)
