"""
Module package initialization.
"""

from lib.exceptions import ValidationError

from .preflight_coordinator import PreflightCoordinator, PreflightRunResult, default_checks

__all__ = [
    "ValidationError",
    "PreflightCoordinator",
    "PreflightRunResult",
    "default_checks",
]
