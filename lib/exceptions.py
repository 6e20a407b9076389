"""
Custom exceptions for Kubernetes preflight checks.
"""

from typing import List, Optional


class PreflightError(Exception):
    """Base class for all preflight errors."""


class TransientError(PreflightError):
    """
    Error that might be resolved by retrying.
    Examples: object not yet visible, 503 Service Unavailable.
    """


class FatalError(PreflightError):
    """
    Error that cannot be resolved by retrying.
    Examples: Invalid configuration, awaited object deleted out-of-band.
    """


class ConfigurationError(FatalError):
    """Invalid configuration or arguments."""


class ValidationError(ConfigurationError):
    """Invalid input value (resource name, quantity, flag combination)."""


class CheckFailure(PreflightError):
    """A preflight check's precondition is not met."""


class WaitTimeoutError(CheckFailure):
    """A resource did not reach the awaited condition within the poll budget."""


class WaitCancelledError(PreflightError):
    """A wait was interrupted by the run's cancel signal."""


class PodExecError(CheckFailure):
    """Command executed inside a pod failed or could not be started."""

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr


class CleanupError(PreflightError):
    """One or more deletions failed while cleaning up preflight resources."""

    def __init__(self, failures: List[str]) -> None:
        self.failures = list(failures)
        super().__init__(f"{len(self.failures)} resource(s) could not be deleted: " + "; ".join(self.failures))
