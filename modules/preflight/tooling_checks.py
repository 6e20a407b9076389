"""Client-side tooling checks: kubectl and helm."""

import logging
import re
import shutil
import subprocess
from typing import Optional

from lib.constants import (
    HELM_BINARY_NAME,
    KUBECTL_BINARY_NAME,
    LOGGER_NAME,
    MIN_HELM_VERSION,
    OPENSHIFT_API_GROUP,
    OPENSHIFT_API_VERSION,
)
from lib.exceptions import CheckFailure
from lib.utils import is_version_ge

from .base_check import PreflightCheck, RunContext
from .reporter import CheckResult

logger = logging.getLogger(LOGGER_NAME)

HELM_VERSION_PATTERN = re.compile(r"v?(\d+\.\d+\.\d+)")


def find_binary(binary_name: str) -> str:
    """Return the path of ``binary_name`` in $PATH.

    Raises:
        CheckFailure: If the binary is not installed
    """
    path = shutil.which(binary_name)
    if not path:
        raise CheckFailure(f"error finding '{binary_name}' binary in $PATH of the system")
    logger.info("%s found at path - %s", binary_name, path)
    return path


def get_helm_version(helm_path: str) -> Optional[str]:
    """Run ``helm version --short`` and extract ``X.Y.Z``; None if unparsable."""
    try:
        result = subprocess.run(
            [helm_path, "version", "--short"],
            capture_output=True,
            text=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise CheckFailure(f"unable to run '{helm_path} version' :: {e}") from e

    if result.returncode != 0:
        raise CheckFailure(f"'{helm_path} version' failed :: {result.stderr.strip()}")

    match = HELM_VERSION_PATTERN.search(result.stdout)
    return match.group(1) if match else None


class KubectlCheck(PreflightCheck):
    """Validates kubectl is installed on the client machine."""

    name = "kubectl"
    description = "Checking for kubectl"

    def run(self, ctx: RunContext) -> CheckResult:
        path = find_binary(KUBECTL_BINARY_NAME)
        return self.passed(f"kubectl found at {path}", path=path)


class HelmVersionCheck(PreflightCheck):
    """Validates helm >= MIN_HELM_VERSION, except on OpenShift where helm is not needed."""

    name = "helm version"
    description = f"Checking for required Helm version (>= {MIN_HELM_VERSION})"

    def run(self, ctx: RunContext) -> CheckResult:
        if ctx.kube.has_api_group_version(OPENSHIFT_API_GROUP, OPENSHIFT_API_VERSION):
            return self.passed("Running OCP cluster. Helm not needed for OCP clusters", openshift=True)
        logger.info(
            "APIVersion - %s/%s not found on cluster, not an OCP cluster",
            OPENSHIFT_API_GROUP,
            OPENSHIFT_API_VERSION,
        )

        path = find_binary(HELM_BINARY_NAME)
        version = get_helm_version(path)
        if version is None:
            raise CheckFailure("unable to determine helm version")
        if not is_version_ge(version, MIN_HELM_VERSION):
            raise CheckFailure(
                f"helm version {version} does not meet minimum version requirement. "
                f"Upgrade helm to minimum version - {MIN_HELM_VERSION}"
            )
        return self.passed(f"Helm version {version} meets required version", version=version, openshift=False)
