"""
Common utilities for Kubernetes preflight checks.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Optional

from packaging.version import InvalidVersion, Version

from lib.constants import LOGGER_NAME


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_record = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record)


def setup_logging(verbose: bool = False, log_format: str = "text") -> logging.Logger:
    """
    Configure logging.

    Args:
        verbose: Enable debug logging
        log_format: 'text' or 'json'
    """
    level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.addHandler(handler)

    # kubernetes/urllib3 are chatty at DEBUG
    if not verbose:
        logging.getLogger("kubernetes").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger(LOGGER_NAME)


def parse_version(version_string: str) -> Optional[Version]:
    """
    Parse a version string such as ``v1.27.3`` or ``v1.27.3-gke.100``.

    Build metadata and pre-release suffixes after the first '-' or '+' are
    dropped, matching how the server and helm report their versions.

    Returns:
        Version or None if unparsable
    """
    if not version_string:
        return None
    value = version_string.strip()
    if value.startswith("v"):
        value = value[1:]
    for separator in ("+", "-"):
        value = value.split(separator, 1)[0]
    try:
        return Version(value)
    except InvalidVersion:
        return None


def is_version_ge(version: str, compare_to: str) -> bool:
    """
    Check if version is greater than or equal to comparison version.

    Returns:
        True if version >= compare_to, False if either is unparsable
    """
    current = parse_version(version)
    target = parse_version(compare_to)

    if current is None or target is None:
        return False

    return current >= target

