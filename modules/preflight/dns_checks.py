"""In-cluster DNS resolution check."""

import logging

from lib.constants import (
    DNS_CONTAINER_NAME,
    DNS_IMAGE,
    DNS_POD_COMMAND,
    DNS_POD_NAME_PREFIX,
    DNS_RESOLUTION_COMMAND,
    LOGGER_NAME,
)
from lib.exceptions import PodExecError
from lib.naming import resource_name
from lib.pod_exec import ExecOptions, exec_in_pod

from .base_check import PreflightCheck, RunContext
from .reporter import CheckResult

logger = logging.getLogger(LOGGER_NAME)


class DNSCheck(PreflightCheck):
    """Resolves ``kubernetes.default`` from a disposable pod.

    The pod is deleted only when resolution succeeds; on failure it is left
    in place for inspection until the run's cleanup sweep.
    """

    name = "DNS resolution"
    description = "Checking if DNS resolution is working in K8s cluster"

    def run(self, ctx: RunContext) -> CheckResult:
        pod_name = resource_name(DNS_POD_NAME_PREFIX, ctx.uid)
        handle = ctx.resources.create_pod(pod_name, DNS_CONTAINER_NAME, DNS_IMAGE, DNS_POD_COMMAND)

        ctx.resources.wait_pod_ready(handle).raise_for_status()
        ctx.resources.log_pod_schedule(handle)

        options = ExecOptions(
            namespace=handle.namespace,
            pod_name=handle.name,
            container_name=DNS_CONTAINER_NAME,
            command=list(DNS_RESOLUTION_COMMAND),
        )
        try:
            exec_in_pod(ctx.kube, options)
        except PodExecError as e:
            raise PodExecError(
                f"not able to resolve DNS 'kubernetes.default' service inside pods :: {e}",
                exit_code=e.exit_code,
                stdout=e.stdout,
                stderr=e.stderr,
            ) from e
        logger.info("Pod - %s is able to resolve DNS 'kubernetes.default'", pod_name)

        ctx.resources.delete(handle)
        return self.passed("DNS resolution is working", pod=pod_name)
