"""Delete every ephemeral preflight resource belonging to one run UID."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from lib.constants import LOGGER_NAME, STORAGE_SNAPSHOT_GROUP
from lib.exceptions import CleanupError, FatalError, ValidationError
from lib.kube_client import KubeClient
from lib.resources import ResourceKind, managed_by_selector, volume_snapshot_resource


@dataclass
class CleanupReport:
    uid: str
    namespace: str
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def _belongs_to_run(obj: Dict, uid: str) -> bool:
    name = (obj.get("metadata") or {}).get("name") or ""
    return name.endswith(uid)


def cleanup_by_uid(
    kube: KubeClient,
    namespace: str,
    uid: str,
    logger: Optional[logging.Logger] = None,
) -> CleanupReport:
    """Delete pods, volume snapshots and PVCs of run ``uid`` in ``namespace``.

    Objects are selected by the managed-by label and by the ``<prefix><uid>``
    naming scheme, so resources of other runs in the same namespace are left
    alone. Every deletion is attempted even after earlier failures.

    Raises:
        ValidationError: If ``uid`` is empty
        CleanupError: If any listing or deletion failed, after all attempts
    """
    logger = logger or logging.getLogger(LOGGER_NAME)
    if not uid:
        raise ValidationError("UID is required for cleanup")

    report = CleanupReport(uid=uid, namespace=namespace)
    selector = managed_by_selector()
    logger.info("Cleaning up preflight resources with UID - %s in namespace - %s", uid, namespace)

    def sweep(kind: ResourceKind, list_fn: Callable[[], List[Dict]], delete_fn: Callable[[str], bool]) -> None:
        try:
            objects = [obj for obj in list_fn() if _belongs_to_run(obj, uid)]
        except Exception as e:
            logger.warning("⚠ Failed to list %s objects for cleanup :: %s", kind.value, e)
            report.failed.append(f"list {kind.value}: {e}")
            return

        for obj in objects:
            name = obj["metadata"]["name"]
            try:
                if delete_fn(name):
                    logger.info("Deleted %s - %s", kind.value, name)
                else:
                    logger.info("%s - %s already gone", kind.value, name)
                report.deleted.append(f"{kind.value}/{name}")
            except Exception as e:
                logger.warning("⚠ Problem deleting %s - %s :: %s", kind.value, name, e)
                report.failed.append(f"{kind.value}/{name}: {e}")

    sweep(
        ResourceKind.POD,
        lambda: kube.list_pods(namespace, label_selector=selector),
        lambda name: kube.delete_pod(namespace, name),
    )

    try:
        snapshot = volume_snapshot_resource(kube.get_preferred_version(STORAGE_SNAPSHOT_GROUP))
    except FatalError as e:
        # No snapshot API means no snapshots can exist.
        logger.warning("⚠ Skipping VolumeSnapshot cleanup :: %s", e)
    except Exception as e:
        logger.warning("⚠ Cannot resolve the VolumeSnapshot API version, skipping snapshot cleanup :: %s", e)
        report.failed.append(f"discover {STORAGE_SNAPSHOT_GROUP}: {e}")
    else:
        sweep(
            ResourceKind.VOLUME_SNAPSHOT,
            lambda: kube.list_dynamic(snapshot, namespace=namespace, label_selector=selector),
            lambda name: kube.delete_dynamic(snapshot, name, namespace),
        )

    sweep(
        ResourceKind.PVC,
        lambda: kube.list_pvcs(namespace, label_selector=selector),
        lambda name: kube.delete_pvc(namespace, name),
    )

    if report.failed:
        raise CleanupError(report.failed)

    logger.info("✓ Cleaned %d preflight resource(s) with UID - %s", len(report.deleted), uid)
    return report
