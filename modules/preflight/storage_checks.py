"""Storage checks: storage/snapshot class driver match and CSI snapshot CRDs."""

import logging
from typing import Dict, List, Optional

from lib.constants import (
    API_EXTENSIONS_GROUP,
    CRD_PLURAL,
    CSI_APIS,
    DEFAULT_SNAPSHOT_CLASS_ANNOTATION,
    LOGGER_NAME,
)
from lib.exceptions import CheckFailure
from lib.kube_client import get_field
from lib.resources import volume_snapshot_class_resource

from .base_check import PreflightCheck, RunContext
from .reporter import CheckResult

logger = logging.getLogger(LOGGER_NAME)


def _is_default_class(snapshot_class: Dict) -> bool:
    annotations = get_field(snapshot_class, "metadata.annotations") or {}
    return str(annotations.get(DEFAULT_SNAPSHOT_CLASS_ANNOTATION, "")).lower() == "true"


def select_snapshot_class(snapshot_classes: List[Dict], provisioner: str) -> Optional[Dict]:
    """Pick the snapshot class whose driver matches ``provisioner``.

    A class annotated as the cluster default wins; otherwise the first match
    in list order is returned.
    """
    matching = [vsc for vsc in snapshot_classes if vsc.get("driver") == provisioner]
    for vsc in matching:
        if _is_default_class(vsc):
            return vsc
    return matching[0] if matching else None


class StorageSnapshotClassCheck(PreflightCheck):
    """Pairs the configured storage class with a compatible volume snapshot class.

    On success the selected class name is stored in ``ctx.snapshot_class``
    for the volume snapshot round trip.
    """

    name = "storage snapshot class"
    description = "Checking if a StorageClass and VolumeSnapshotClass are present"

    def run(self, ctx: RunContext) -> CheckResult:
        storage_class_name = ctx.config.storage_class
        storage_class = ctx.kube.get_storage_class(storage_class_name)
        if storage_class is None:
            raise CheckFailure(f"not found storageclass - {storage_class_name} on cluster")
        provisioner = storage_class.get("provisioner") or ""
        logger.info("Storage class - %s found in cluster", storage_class_name)

        resource = volume_snapshot_class_resource(ctx.resources.snapshot_version)
        configured = ctx.config.snapshot_class

        if configured:
            vsc = ctx.kube.get_dynamic(resource, configured)
            if vsc is None:
                raise CheckFailure(f"volume snapshot class - {configured} not found on cluster")
            driver = vsc.get("driver")
            if driver != provisioner:
                raise CheckFailure(
                    f"volume snapshot class - {configured} driver does not match with given StorageClass's "
                    f"provisioner={provisioner}; volume snapshot class driver={driver}"
                )
            selected = configured
        else:
            vsc = select_snapshot_class(ctx.kube.list_dynamic(resource), provisioner)
            if vsc is None:
                raise CheckFailure(
                    f"no matching volume snapshot class found on cluster for provisioner - {provisioner}"
                )
            selected = get_field(vsc, "metadata.name")

        ctx.snapshot_class = selected
        logger.info("Volume snapshot class - %s driver matches with given StorageClass's provisioner", selected)
        return self.passed(
            f"volume snapshot class - {selected} matches storage class - {storage_class_name}",
            snapshot_class=selected,
            provisioner=provisioner,
        )


class CSICheck(PreflightCheck):
    """Verifies every CSI snapshot CRD in CSI_APIS is installed."""

    name = "CSI"
    description = "Checking if CSI APIs are installed in the cluster"

    def run(self, ctx: RunContext) -> CheckResult:
        version = ctx.kube.get_preferred_version(API_EXTENSIONS_GROUP)
        found: List[str] = []
        missing: List[str] = []
        for api in CSI_APIS:
            crd = ctx.kube.get_custom_resource(API_EXTENSIONS_GROUP, version, CRD_PLURAL, api)
            if crd is None:
                logger.error("CRD - %s not found on cluster", api)
                missing.append(api)
            else:
                logger.info("Found CRD - %s", api)
                found.append(api)

        if len(found) != len(CSI_APIS):
            raise CheckFailure(f"some CSI APIs not found in cluster: {', '.join(missing)}")
        return self.passed("all CSI APIs are installed", found=found)
