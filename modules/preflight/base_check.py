"""Base class and shared run state for preflight checks."""

import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, Tuple

from lib.config import RunConfiguration
from lib.kube_client import KubeClient
from lib.resources import ResourceManager

from .reporter import CheckResult


@dataclass
class RunContext:
    """Everything a check may use during one run.

    ``snapshot_class`` is filled in by the storage/snapshot class check and
    read by the volume snapshot round trip.
    """

    kube: KubeClient
    config: RunConfiguration
    uid: str
    resources: ResourceManager
    cancel_event: threading.Event = field(default_factory=threading.Event)
    snapshot_class: Optional[str] = None


class PreflightCheck:
    """Base class for all preflight checks.

    Subclasses set ``name`` and ``description`` and implement :meth:`run`,
    which returns a passing result or raises. Raised errors are turned into
    failed results by the coordinator, so one check can never abort the run.
    A check listing other checks in ``depends_on`` is skipped (and counted as
    failed) unless all of them passed.
    """

    name: str = ""
    description: str = ""
    depends_on: Tuple[str, ...] = ()

    def skip_reason(self, prior_results: Sequence[CheckResult]) -> Optional[str]:
        by_name = {r.name: r for r in prior_results}
        for dependency in self.depends_on:
            result = by_name.get(dependency)
            if result is None or not result.passed:
                return f"preflight check for {dependency} failed"
        return None

    def run(self, ctx: RunContext) -> CheckResult:
        raise NotImplementedError

    def passed(self, message: str, **details: Any) -> CheckResult:
        return CheckResult(self.name, True, message=message, details=details)

    def failed(self, error: str, **details: Any) -> CheckResult:
        return CheckResult(self.name, False, error=error, details=details)

    def skipped(self, reason: str) -> CheckResult:
        return CheckResult(self.name, False, error=reason, skipped=True)
