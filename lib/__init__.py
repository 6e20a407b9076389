"""
Library package for Kubernetes preflight checks.
"""

# Import version from lightweight module (avoids importing heavy deps at build time)
from ._version import __version__, __version_date__

from .cleanup import CleanupReport, cleanup_by_uid
from .config import CleanupConfiguration, PodResources, RunConfiguration
from .exceptions import (
    CheckFailure,
    CleanupError,
    ConfigurationError,
    FatalError,
    PodExecError,
    PreflightError,
    TransientError,
    ValidationError,
    WaitTimeoutError,
)
from .kube_client import KubeClient
from .naming import new_run_uid
from .utils import is_version_ge, parse_version, setup_logging

__all__ = [
    "__version__",
    "__version_date__",
    "KubeClient",
    "PreflightError",
    "TransientError",
    "FatalError",
    "ValidationError",
    "ConfigurationError",
    "CheckFailure",
    "WaitTimeoutError",
    "PodExecError",
    "CleanupError",
    "RunConfiguration",
    "CleanupConfiguration",
    "PodResources",
    "CleanupReport",
    "cleanup_by_uid",
    "new_run_uid",
    "setup_logging",
    "parse_version",
    "is_version_ge",
]
