"""Check result collection and summary logging for preflight runs."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from lib.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


@dataclass
class CheckResult:
    """Outcome of one preflight check."""

    name: str
    passed: bool
    message: str = ""
    error: Optional[str] = None
    skipped: bool = False
    details: Dict[str, Any] = field(default_factory=dict)


class ValidationReporter:
    """Collects check results in execution order and handles summary logging."""

    def __init__(self) -> None:
        self.results: List[CheckResult] = []

    def add_result(self, result: CheckResult) -> None:
        """Record a result and log its one-line transition."""
        self.results.append(result)

        if result.passed:
            logger.info("✓ Preflight check for %s is successful: %s", result.name, result.message)
        elif result.skipped:
            logger.error("⚠ Skipping preflight check for %s: %s", result.name, result.error)
        else:
            logger.error("✗ Preflight check for %s failed :: %s", result.name, result.error)

    def failures(self) -> List[CheckResult]:
        """Failed checks, including those skipped because a dependency failed."""
        return [r for r in self.results if not r.passed]

    def print_summary(self) -> None:
        """Print run summary to the log."""
        passed = sum(1 for r in self.results if r.passed)
        total = len(self.results)

        logger.info("=" * 60)
        logger.info("Preflight Summary: %s/%s checks passed", passed, total)

        if self.failures():
            logger.warning("Some preflight checks failed")
            for result in self.failures():
                marker = "⚠" if result.skipped else "✗"
                logger.error("  %s %s: %s", marker, result.name, result.error)
        else:
            logger.info("All preflight checks succeeded!")

        logger.info("=" * 60)
