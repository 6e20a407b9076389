"""Run commands inside a container of a running pod through the exec subresource."""

import logging
from dataclasses import dataclass, field
from typing import List

from kubernetes.client.rest import ApiException
from kubernetes.stream import stream

from lib.constants import LOGGER_NAME, POD_EXEC_TIMEOUT
from lib.exceptions import PodExecError
from lib.kube_client import KubeClient

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class ExecOptions:
    namespace: str
    pod_name: str
    container_name: str
    command: List[str] = field(default_factory=list)
    timeout: int = POD_EXEC_TIMEOUT


@dataclass
class ExecResult:
    exit_code: int
    stdout: str = ""
    stderr: str = ""


def exec_in_pod(kube: KubeClient, options: ExecOptions) -> ExecResult:
    """Execute ``options.command`` in the target container and wait for it to exit.

    Failures are not retried here; callers decide whether to retry the
    surrounding wait instead.

    Raises:
        PodExecError: If the exec channel cannot be opened (including a missing
            pod), the command does not finish within ``options.timeout``, or it
            exits non-zero
    """
    target = f"{options.namespace}/{options.pod_name}[{options.container_name}]"
    logger.debug("Executing %s in %s", options.command, target)

    try:
        resp = stream(
            kube.core_v1.connect_get_namespaced_pod_exec,
            options.pod_name,
            options.namespace,
            command=options.command,
            container=options.container_name,
            stderr=True,
            stdin=False,
            stdout=True,
            tty=False,
            _preload_content=False,
        )
    except ApiException as e:
        raise PodExecError(f"unable to exec into {target}: {e.status} {e.reason}") from e
    except Exception as e:
        raise PodExecError(f"unable to exec into {target}: {e}") from e

    try:
        resp.run_forever(timeout=options.timeout)
        if resp.is_open():
            raise PodExecError(f"command {options.command} in {target} did not finish within {options.timeout}s")
        stdout = resp.read_stdout() or ""
        stderr = resp.read_stderr() or ""
        try:
            # Parsed from the error channel; missing when the connection dropped.
            exit_code = resp.returncode
        except (TypeError, KeyError, ValueError) as e:
            raise PodExecError(
                f"exec channel of {target} closed without an exit status: {e!r}",
                stdout=stdout,
                stderr=stderr,
            ) from e
    finally:
        resp.close()

    if stdout:
        logger.debug("%s stdout: %s", target, stdout.strip())
    if stderr:
        logger.debug("%s stderr: %s", target, stderr.strip())

    if exit_code != 0:
        raise PodExecError(
            f"command {options.command} in {target} exited with code {exit_code}: {stderr.strip() or stdout.strip()}",
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
        )
    return ExecResult(exit_code=0, stdout=stdout, stderr=stderr)
