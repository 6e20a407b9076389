"""
Preflight run coordinator: runs the ordered checks and cleans up after them.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from lib.cleanup import cleanup_by_uid
from lib.config import RunConfiguration
from lib.constants import LOGGER_NAME
from lib.exceptions import CleanupError
from lib.kube_client import KubeClient
from lib.naming import new_run_uid
from lib.resources import ResourceManager
from lib.waiter import PollSpec

from .preflight import (
    ClusterAccessCheck,
    CSICheck,
    DNSCheck,
    HelmVersionCheck,
    KubectlCheck,
    KubernetesVersionCheck,
    PreflightCheck,
    RBACCheck,
    RunContext,
    StorageSnapshotClassCheck,
    ValidationReporter,
    VolumeSnapshotCheck,
)
from .preflight.reporter import CheckResult

logger = logging.getLogger(LOGGER_NAME)


def default_checks() -> List[PreflightCheck]:
    """The checks of a full run, in execution order."""
    return [
        KubectlCheck(),
        ClusterAccessCheck(),
        HelmVersionCheck(),
        KubernetesVersionCheck(),
        RBACCheck(),
        StorageSnapshotClassCheck(),
        CSICheck(),
        DNSCheck(),
        VolumeSnapshotCheck(),
    ]


@dataclass
class PreflightRunResult:
    """Outcome of a whole preflight run."""

    uid: str
    results: List[CheckResult] = field(default_factory=list)
    cleanup_performed: bool = False
    cleanup_error: Optional[CleanupError] = None

    @property
    def passed(self) -> bool:
        return bool(self.results) and all(r.passed for r in self.results)


class PreflightCoordinator:
    """Coordinates one preflight run.

    Every check is attempted even when earlier ones failed; only checks that
    declare ``depends_on`` are skipped. Ephemeral resources are swept when all
    checks pass, or on failure when ``cleanup_on_failure`` is set, and are
    otherwise left in place for inspection under the run UID.
    """

    def __init__(
        self,
        kube: KubeClient,
        config: RunConfiguration,
        checks: Optional[Sequence[PreflightCheck]] = None,
        *,
        poll_spec: Optional[PollSpec] = None,
        cancel_event: Optional[threading.Event] = None,
        uid_factory: Callable[[], str] = new_run_uid,
    ) -> None:
        self.kube = kube
        self.config = config
        self.checks = list(checks) if checks is not None else default_checks()
        self.poll_spec = poll_spec
        self._supplied_cancel_event = cancel_event
        self.cancel_event = cancel_event or threading.Event()
        self.uid_factory = uid_factory
        self.reporter = ValidationReporter()

    def run(self) -> PreflightRunResult:
        """Run all checks, print the summary and clean up as configured.

        Raises:
            KeyboardInterrupt: Re-raised after cancelling in-flight waits and
                running cleanup when ``cleanup_on_failure`` is set
        """
        self.reporter = ValidationReporter()
        self.cancel_event = self._supplied_cancel_event or threading.Event()
        self.config.log_options(logger)
        uid = self.uid_factory()
        logger.info("Generated UID for preflight check - %s", uid)

        resources = ResourceManager(
            self.kube,
            self.config,
            uid,
            poll_spec=self.poll_spec,
            cancel_event=self.cancel_event,
        )
        ctx = RunContext(
            kube=self.kube,
            config=self.config,
            uid=uid,
            resources=resources,
            cancel_event=self.cancel_event,
        )
        outcome = PreflightRunResult(uid=uid)

        try:
            self._run_checks(ctx)
        except KeyboardInterrupt:
            logger.warning("Preflight run interrupted, cancelling in-flight waits")
            self.cancel_event.set()
            outcome.results = list(self.reporter.results)
            if self.config.cleanup_on_failure:
                self._cleanup(uid, outcome)
            else:
                self._log_leftover_hint(uid)
            raise

        self.reporter.print_summary()
        outcome.results = list(self.reporter.results)

        if outcome.passed or self.config.cleanup_on_failure:
            self._cleanup(uid, outcome)
        else:
            self._log_leftover_hint(uid)

        return outcome

    def _run_checks(self, ctx: RunContext) -> None:
        for check in self.checks:
            if self.cancel_event.is_set():
                self.reporter.add_result(check.failed("preflight run cancelled"))
                continue

            reason = check.skip_reason(self.reporter.results)
            if reason:
                self.reporter.add_result(check.skipped(reason))
                continue

            logger.info("%s...", check.description)
            try:
                result = check.run(ctx)
            except Exception as e:
                result = check.failed(str(e))
            self.reporter.add_result(result)

    def _cleanup(self, uid: str, outcome: PreflightRunResult) -> None:
        logger.info("Cleaning up preflight resources")
        outcome.cleanup_performed = True
        try:
            cleanup_by_uid(self.kube, self.config.namespace, uid, logger=logger)
        except CleanupError as e:
            outcome.cleanup_error = e
            logger.error("✗ Cleanup of preflight resources incomplete :: %s", e)
            self._log_leftover_hint(uid)

    def _log_leftover_hint(self, uid: str) -> None:
        logger.info(
            "Preflight resources left in namespace %s; remove them with: k8s-preflight cleanup --uid %s -n %s",
            self.config.namespace,
            uid,
            self.config.namespace,
        )
