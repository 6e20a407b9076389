"""Cluster-level checks: access, server version and RBAC."""

import logging

from lib.constants import LOGGER_NAME, MIN_K8S_VERSION, RBAC_API_GROUP, RBAC_API_VERSION
from lib.exceptions import CheckFailure
from lib.utils import is_version_ge, parse_version

from .base_check import PreflightCheck, RunContext
from .reporter import CheckResult

logger = logging.getLogger(LOGGER_NAME)


class ClusterAccessCheck(PreflightCheck):
    """Verifies the API server is reachable and the run namespace is readable."""

    name = "cluster access"
    description = "Checking access to the namespace of the cluster"

    def run(self, ctx: RunContext) -> CheckResult:
        namespace = ctx.config.namespace
        try:
            found = ctx.kube.get_namespace(namespace)
        except Exception as e:
            raise CheckFailure(f"unable to access namespace {namespace} of cluster :: {e}") from e
        if found is None:
            raise CheckFailure(f"namespace {namespace} not found on cluster")
        return self.passed(f"namespace {namespace} is accessible")


class KubernetesVersionCheck(PreflightCheck):
    """Verifies the server version is at least MIN_K8S_VERSION."""

    name = "kubernetes version"
    description = f"Checking for required kubernetes server version (>={MIN_K8S_VERSION})"

    def run(self, ctx: RunContext) -> CheckResult:
        server_version = ctx.kube.get_server_version()
        if parse_version(server_version) is None:
            raise CheckFailure(f"unable to parse kubernetes server version '{server_version}'")
        if not is_version_ge(server_version, MIN_K8S_VERSION):
            raise CheckFailure(
                f"kubernetes server version {server_version} does not meet minimum requirement {MIN_K8S_VERSION}"
            )
        return self.passed(f"kubernetes server version {server_version}", version=server_version)


class RBACCheck(PreflightCheck):
    """Verifies the RBAC API group/version is served.

    Unavailable aggregated API services only produce a warning; RBAC is then
    judged against the groups discovery did return.
    """

    name = "kubernetes RBAC"
    description = "Checking Kubernetes RBAC"

    def run(self, ctx: RunContext) -> CheckResult:
        try:
            orphaned = ctx.kube.list_unavailable_api_services()
        except Exception as e:
            logger.debug("Unable to list API services: %s", e)
            orphaned = []

        if orphaned:
            logger.warning(
                "The Kubernetes server has orphaned API service(s): %s. Group discovery may be incomplete",
                ", ".join(orphaned),
            )
            logger.warning("To fix this, kubectl delete apiservice <service-name>")

        if not ctx.kube.has_api_group_version(RBAC_API_GROUP, RBAC_API_VERSION):
            raise CheckFailure("not enabled kubernetes RBAC")
        return self.passed("Kubernetes RBAC is enabled", orphaned_api_services=orphaned)
