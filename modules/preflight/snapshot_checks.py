"""Volume snapshot and restore round trip check."""

import logging

from lib.constants import (
    BUSYBOX_CONTAINER_NAME,
    BUSYBOX_IMAGE,
    LOGGER_NAME,
    RESTORE_DATA_CHECK_COMMAND,
    RESTORE_POD_COMMAND,
    RESTORE_POD_NAME_PREFIX,
    RESTORE_PVC_NAME_PREFIX,
    SOURCE_POD_COMMAND,
    SOURCE_POD_NAME_PREFIX,
    SOURCE_PVC_NAME_PREFIX,
    UNMOUNTED_RESTORE_POD_NAME_PREFIX,
    UNMOUNTED_RESTORE_PVC_NAME_PREFIX,
    UNMOUNTED_VOLUME_SNAP_SRC_NAME_PREFIX,
    VOLUME_SNAP_SRC_NAME_PREFIX,
)
from lib.exceptions import CheckFailure, PodExecError
from lib.naming import resource_name
from lib.pod_exec import ExecOptions, exec_in_pod

from .base_check import PreflightCheck, RunContext
from .reporter import CheckResult
from .storage_checks import StorageSnapshotClassCheck

logger = logging.getLogger(LOGGER_NAME)


class VolumeSnapshotCheck(PreflightCheck):
    """Snapshots a PVC, restores it and verifies the data, first mounted then unmounted.

    The second pass snapshots the source PVC after its pod is gone, catching
    provisioners that can only snapshot attached volumes. Any failing step
    ends the check; created objects are left for the cleanup sweep.
    """

    name = "volume snapshot"
    description = "Checking if volume snapshot and restore is enabled in K8s cluster"
    depends_on = (StorageSnapshotClassCheck.name,)

    def run(self, ctx: RunContext) -> CheckResult:
        if not ctx.snapshot_class:
            raise CheckFailure("no volume snapshot class selected for the storage class")
        uid = ctx.uid
        resources = ctx.resources

        source_pvc = resources.create_pvc(resource_name(SOURCE_PVC_NAME_PREFIX, uid))
        source_pod = resources.create_pod(
            resource_name(SOURCE_POD_NAME_PREFIX, uid),
            BUSYBOX_CONTAINER_NAME,
            BUSYBOX_IMAGE,
            SOURCE_POD_COMMAND,
            pvc_name=source_pvc.name,
        )
        resources.wait_pod_ready(source_pod).raise_for_status()
        resources.log_pod_schedule(source_pod)

        self._snapshot_restore_verify(
            ctx,
            source_pvc.name,
            resource_name(VOLUME_SNAP_SRC_NAME_PREFIX, uid),
            resource_name(RESTORE_PVC_NAME_PREFIX, uid),
            resource_name(RESTORE_POD_NAME_PREFIX, uid),
        )

        resources.delete(source_pod)
        resources.wait_pod_deleted(source_pod).raise_for_status()
        logger.info("Source pod - %s deleted, snapshotting unmounted pvc - %s", source_pod.name, source_pvc.name)

        self._snapshot_restore_verify(
            ctx,
            source_pvc.name,
            resource_name(UNMOUNTED_VOLUME_SNAP_SRC_NAME_PREFIX, uid),
            resource_name(UNMOUNTED_RESTORE_PVC_NAME_PREFIX, uid),
            resource_name(UNMOUNTED_RESTORE_POD_NAME_PREFIX, uid),
        )

        return self.passed(
            "volume snapshot and restore verified for mounted and unmounted volumes",
            snapshot_class=ctx.snapshot_class,
        )

    def _snapshot_restore_verify(
        self,
        ctx: RunContext,
        pvc_name: str,
        snapshot_name: str,
        restore_pvc_name: str,
        restore_pod_name: str,
    ) -> None:
        resources = ctx.resources

        snapshot = resources.create_volume_snapshot(snapshot_name, ctx.snapshot_class, pvc_name)
        resources.wait_snapshot_ready(snapshot).raise_for_status()

        restore_pvc = resources.create_pvc(restore_pvc_name, snapshot_name=snapshot.name)
        restore_pod = resources.create_pod(
            restore_pod_name,
            BUSYBOX_CONTAINER_NAME,
            BUSYBOX_IMAGE,
            RESTORE_POD_COMMAND,
            pvc_name=restore_pvc.name,
        )
        resources.wait_pod_ready(restore_pod).raise_for_status()
        resources.log_pod_schedule(restore_pod)

        options = ExecOptions(
            namespace=restore_pod.namespace,
            pod_name=restore_pod.name,
            container_name=BUSYBOX_CONTAINER_NAME,
            command=list(RESTORE_DATA_CHECK_COMMAND),
        )
        try:
            exec_in_pod(ctx.kube, options)
        except PodExecError as e:
            raise PodExecError(
                f"restored pod - {restore_pod.name} does not have expected data :: {e}",
                exit_code=e.exit_code,
                stdout=e.stdout,
                stderr=e.stderr,
            ) from e
        logger.info("Restored pod - %s has expected data", restore_pod.name)
