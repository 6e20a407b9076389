"""Builders and lifecycle helpers for the ephemeral objects preflight checks create.

Every object is named ``<prefix><run uid>`` and labelled with the managed-by
and run labels, which is what lets :mod:`lib.cleanup` find it again later
without any persisted manifest.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from lib.config import RunConfiguration
from lib.constants import (
    LOGGER_NAME,
    MANAGED_BY_LABEL,
    MANAGED_BY_VALUE,
    RUN_UID_LABEL,
    STORAGE_SNAPSHOT_GROUP,
    VOLUME_MOUNT_NAME,
    VOLUME_MOUNT_PATH,
    VOLUME_SNAPSHOT_CLASS_PLURAL,
    VOLUME_SNAPSHOT_PLURAL,
)
from lib.exceptions import FatalError
from lib.kube_client import DynamicResource, KubeClient, get_field
from lib.waiter import PollSpec, WaitOutcome, wait_for

logger = logging.getLogger(LOGGER_NAME)


class ResourceKind(Enum):
    POD = "Pod"
    PVC = "PersistentVolumeClaim"
    VOLUME_SNAPSHOT = "VolumeSnapshot"


@dataclass(frozen=True)
class ResourceHandle:
    """Identifies an ephemeral object created during a check."""

    kind: ResourceKind
    name: str
    namespace: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc), compare=False)

    def __str__(self) -> str:
        return f"{self.kind.value} {self.namespace}/{self.name}"


def volume_snapshot_resource(version: str) -> DynamicResource:
    return DynamicResource(STORAGE_SNAPSHOT_GROUP, version, "VolumeSnapshot", VOLUME_SNAPSHOT_PLURAL)


def volume_snapshot_class_resource(version: str) -> DynamicResource:
    return DynamicResource(
        STORAGE_SNAPSHOT_GROUP,
        version,
        "VolumeSnapshotClass",
        VOLUME_SNAPSHOT_CLASS_PLURAL,
        namespaced=False,
    )


def managed_by_selector() -> str:
    return f"{MANAGED_BY_LABEL}={MANAGED_BY_VALUE}"


class ResourceManager:
    """Creates, waits on and deletes the ephemeral objects of one run."""

    def __init__(
        self,
        kube: KubeClient,
        config: RunConfiguration,
        uid: str,
        *,
        poll_spec: Optional[PollSpec] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> None:
        self.kube = kube
        self.config = config
        self.uid = uid
        self.namespace = config.namespace
        self.poll_spec = poll_spec or PollSpec()
        self.cancel_event = cancel_event
        self._snapshot_version: Optional[str] = None

    @property
    def snapshot_version(self) -> str:
        """Preferred version of the snapshot API group, discovered once per run."""
        if self._snapshot_version is None:
            self._snapshot_version = self.kube.get_preferred_version(STORAGE_SNAPSHOT_GROUP)
        return self._snapshot_version

    def labels(self) -> Dict[str, str]:
        return {MANAGED_BY_LABEL: MANAGED_BY_VALUE, RUN_UID_LABEL: self.uid}

    def _metadata(self, name: str) -> Dict[str, Any]:
        return {"name": name, "namespace": self.namespace, "labels": self.labels()}

    # =============================
    # Manifests
    # =============================
    def pvc_spec(self, name: str, snapshot_name: Optional[str] = None) -> Dict[str, Any]:
        """PVC manifest; restored from ``snapshot_name`` when given."""
        spec: Dict[str, Any] = {
            "accessModes": ["ReadWriteOnce"],
            "storageClassName": self.config.storage_class,
            "resources": {"requests": {"storage": self.config.pvc_storage_request}},
        }
        if snapshot_name:
            spec["dataSource"] = {
                "apiGroup": STORAGE_SNAPSHOT_GROUP,
                "kind": ResourceKind.VOLUME_SNAPSHOT.value,
                "name": snapshot_name,
            }
        return {
            "apiVersion": "v1",
            "kind": ResourceKind.PVC.value,
            "metadata": self._metadata(name),
            "spec": spec,
        }

    def pod_spec(
        self,
        name: str,
        container_name: str,
        image: str,
        command: List[str],
        pvc_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Pod manifest honouring registry, pull secret, service account, node selector and resources."""
        container: Dict[str, Any] = {
            "name": container_name,
            "image": self.config.image(image),
            "command": list(command),
        }
        resources = self.config.resources.to_manifest()
        if resources:
            container["resources"] = resources

        spec: Dict[str, Any] = {"containers": [container], "restartPolicy": "Never"}
        if pvc_name:
            container["volumeMounts"] = [{"name": VOLUME_MOUNT_NAME, "mountPath": VOLUME_MOUNT_PATH}]
            spec["volumes"] = [{"name": VOLUME_MOUNT_NAME, "persistentVolumeClaim": {"claimName": pvc_name}}]
        if self.config.image_pull_secret:
            spec["imagePullSecrets"] = [{"name": self.config.image_pull_secret}]
        if self.config.service_account:
            spec["serviceAccountName"] = self.config.service_account
        if self.config.node_selector:
            spec["nodeSelector"] = dict(self.config.node_selector)

        return {
            "apiVersion": "v1",
            "kind": ResourceKind.POD.value,
            "metadata": self._metadata(name),
            "spec": spec,
        }

    def snapshot_spec(self, name: str, snapshot_class: str, pvc_name: str) -> Dict[str, Any]:
        resource = volume_snapshot_resource(self.snapshot_version)
        return {
            "apiVersion": resource.api_version,
            "kind": resource.kind,
            "metadata": self._metadata(name),
            "spec": {
                "volumeSnapshotClassName": snapshot_class,
                "source": {"persistentVolumeClaimName": pvc_name},
            },
        }

    # =============================
    # Create
    # =============================
    def create_pvc(self, name: str, snapshot_name: Optional[str] = None) -> ResourceHandle:
        self.kube.create_pvc(self.namespace, self.pvc_spec(name, snapshot_name))
        if snapshot_name:
            logger.info("Created restore pvc - %s from volume snapshot - %s", name, snapshot_name)
        else:
            logger.info("Created pvc - %s", name)
        return ResourceHandle(ResourceKind.PVC, name, self.namespace)

    def create_pod(
        self,
        name: str,
        container_name: str,
        image: str,
        command: List[str],
        pvc_name: Optional[str] = None,
    ) -> ResourceHandle:
        self.kube.create_pod(self.namespace, self.pod_spec(name, container_name, image, command, pvc_name))
        logger.info("Created pod - %s", name)
        return ResourceHandle(ResourceKind.POD, name, self.namespace)

    def create_volume_snapshot(self, name: str, snapshot_class: str, pvc_name: str) -> ResourceHandle:
        resource = volume_snapshot_resource(self.snapshot_version)
        self.kube.create_dynamic(resource, self.snapshot_spec(name, snapshot_class, pvc_name), namespace=self.namespace)
        logger.info("Created volume snapshot - %s from pvc - %s", name, pvc_name)
        return ResourceHandle(ResourceKind.VOLUME_SNAPSHOT, name, self.namespace)

    # =============================
    # Wait
    # =============================
    def wait_pod_ready(self, handle: ResourceHandle) -> WaitOutcome:
        def probe():
            pod = self.kube.get_pod(handle.namespace, handle.name)
            if pod is None:
                raise FatalError(f"pod {handle.name} no longer exists")
            status = pod.get("status") or {}
            phase = status.get("phase")
            if phase in ("Failed", "Succeeded"):
                raise FatalError(f"pod {handle.name} terminated with phase {phase}")
            for condition in status.get("conditions") or []:
                if condition.get("type") == "Ready" and condition.get("status") == "True":
                    return True, "Ready"
            return False, f"phase={phase}"

        return wait_for(
            f"pod {handle.name} to become ready",
            probe,
            self.poll_spec,
            cancel_event=self.cancel_event,
            logger=logger,
        )

    def wait_snapshot_ready(self, handle: ResourceHandle) -> WaitOutcome:
        resource = volume_snapshot_resource(self.snapshot_version)

        def probe():
            snapshot = self.kube.get_dynamic(resource, handle.name, handle.namespace)
            if snapshot is None:
                raise FatalError(f"volume snapshot {handle.name} no longer exists")
            if get_field(snapshot, "status.readyToUse") is True:
                return True, "readyToUse=true"
            error = get_field(snapshot, "status.error.message")
            return False, f"readyToUse=false, error: {error}" if error else "readyToUse=false"

        return wait_for(
            f"volume snapshot {handle.name} to become ready-to-use",
            probe,
            self.poll_spec,
            cancel_event=self.cancel_event,
            logger=logger,
        )

    def wait_pod_deleted(self, handle: ResourceHandle) -> WaitOutcome:
        def probe():
            pod = self.kube.get_pod(handle.namespace, handle.name)
            if pod is None:
                return True, "deleted"
            return False, f"phase={get_field(pod, 'status.phase')}"

        return wait_for(
            f"pod {handle.name} to be deleted",
            probe,
            self.poll_spec,
            cancel_event=self.cancel_event,
            logger=logger,
        )

    def log_pod_schedule(self, handle: ResourceHandle) -> None:
        pod = self.kube.get_pod(handle.namespace, handle.name)
        node = get_field(pod, "spec.node_name")
        if node:
            logger.info("Pod - %s scheduled on node - %s", handle.name, node)

    # =============================
    # Delete
    # =============================
    def delete(self, handle: ResourceHandle) -> None:
        """Delete the object behind ``handle``; an already-absent object counts as deleted."""
        if handle.kind is ResourceKind.POD:
            deleted = self.kube.delete_pod(handle.namespace, handle.name)
        elif handle.kind is ResourceKind.PVC:
            deleted = self.kube.delete_pvc(handle.namespace, handle.name)
        else:
            deleted = self.kube.delete_dynamic(
                volume_snapshot_resource(self.snapshot_version), handle.name, handle.namespace
            )
        if deleted:
            logger.info("Deleted %s", handle)
        else:
            logger.info("%s already gone", handle)
