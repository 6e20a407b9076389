#!/usr/bin/env python3
"""
Input validation utilities for Kubernetes preflight checks.

This module validates CLI arguments and the Kubernetes resource names,
namespaces, labels and resource quantities they carry, so that a bad
invocation fails before any cluster call is made.

Features:
- Kubernetes resource name validation (DNS-1123 subdomain rules)
- Kubernetes namespace validation (DNS-1123 label rules)
- Kubernetes label validation (used for node selectors)
- Resource quantity validation (CPU, memory, storage)
- Run UID validation for standalone cleanup
"""

import logging
import re
from decimal import Decimal
from typing import Optional, Pattern

from kubernetes.utils.quantity import parse_quantity

from lib.constants import LOGGER_NAME, UID_ALPHABET, UID_LENGTH
from lib.exceptions import ValidationError

logger = logging.getLogger(LOGGER_NAME)

# Kubernetes resource name validation patterns
# Based on Kubernetes naming conventions: https://kubernetes.io/docs/concepts/overview/working-with-objects/names/
# DNS-1123 subdomain format: contains only lowercase alphanumeric characters, '-' or '.',
# starts with an alphanumeric character, ends with an alphanumeric character
K8S_NAME_PATTERN: Pattern[str] = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
K8S_NAME_MAX_LENGTH = 253

# Kubernetes namespace validation pattern
# RFC 1123 label format: contains only lowercase alphanumeric characters or '-',
# starts with an alphabetic character (Kubernetes requires this), ends with an alphanumeric character
K8S_NAMESPACE_PATTERN: Pattern[str] = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")
K8S_NAMESPACE_MAX_LENGTH = 63

# Kubernetes label validation patterns
# Label keys: optional prefix and name, separated by a slash (/),
# where prefix must be a DNS subdomain and name must be a DNS label
K8S_LABEL_KEY_PATTERN: Pattern[str] = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?$"
    r"|^[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?/[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?$"
)
K8S_LABEL_VALUE_PATTERN: Pattern[str] = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?$")
K8S_LABEL_MAX_LENGTH = 63

RUN_UID_PATTERN: Pattern[str] = re.compile(rf"^[{re.escape(UID_ALPHABET)}]{{{UID_LENGTH}}}$")


class InputValidator:
    """Input validation for preflight run and cleanup options."""

    @staticmethod
    def validate_kubernetes_name(name: str, resource_type: str = "resource") -> None:
        """
        Validate Kubernetes resource name according to DNS-1123 subdomain rules.

        Args:
            name: The name to validate
            resource_type: Type of resource for error messages

        Raises:
            ValidationError: If name is invalid
        """
        if not name:
            raise ValidationError(f"{resource_type} name cannot be empty")

        if len(name) > K8S_NAME_MAX_LENGTH:
            raise ValidationError(
                f"{resource_type} name '{name}' exceeds maximum length of {K8S_NAME_MAX_LENGTH} characters"
            )

        if not K8S_NAME_PATTERN.match(name):
            raise ValidationError(
                f"Invalid {resource_type} name '{name}'. "
                f"Must consist of lowercase alphanumeric characters, '-', or '.', "
                f"must start and end with an alphanumeric character (DNS-1123 subdomain)"
            )

    @staticmethod
    def validate_kubernetes_namespace(namespace: str) -> None:
        """
        Validate Kubernetes namespace name according to DNS-1123 label rules.

        Args:
            namespace: The namespace to validate

        Raises:
            ValidationError: If namespace is invalid
        """
        if not namespace:
            raise ValidationError("Namespace cannot be empty")

        if len(namespace) > K8S_NAMESPACE_MAX_LENGTH:
            raise ValidationError(
                f"Namespace '{namespace}' exceeds maximum length of {K8S_NAMESPACE_MAX_LENGTH} characters"
            )

        if not K8S_NAMESPACE_PATTERN.match(namespace):
            raise ValidationError(
                f"Invalid namespace '{namespace}'. "
                f"Must consist of lower case alphanumeric characters or '-', "
                f"and must start and end with an alphanumeric character"
            )

    @staticmethod
    def validate_kubernetes_label_key(key: str) -> None:
        """
        Validate Kubernetes label key.

        Raises:
            ValidationError: If label key is invalid
        """
        if not key:
            raise ValidationError("Label key cannot be empty")

        if len(key) > K8S_LABEL_MAX_LENGTH:
            raise ValidationError(f"Label key '{key}' exceeds maximum length of {K8S_LABEL_MAX_LENGTH} characters")

        if not K8S_LABEL_KEY_PATTERN.match(key):
            raise ValidationError(
                f"Invalid label key '{key}'. "
                f"Must be an optional prefix and name, separated by a slash (/), "
                f"where prefix must be a DNS subdomain and name must be a DNS label"
            )

    @staticmethod
    def validate_kubernetes_label_value(value: str) -> None:
        """
        Validate Kubernetes label value.

        Raises:
            ValidationError: If label value is invalid
        """
        # None is not allowed, but empty string is valid per K8s spec
        if value is None:
            raise ValidationError("Label value cannot be None")

        if len(value) > K8S_LABEL_MAX_LENGTH:
            raise ValidationError(f"Label value '{value}' exceeds maximum length of {K8S_LABEL_MAX_LENGTH} characters")

        if value and not K8S_LABEL_VALUE_PATTERN.match(value):
            raise ValidationError(
                f"Invalid label value '{value}'. "
                f"Must be 63 characters or less and must be empty or begin and end with an alphanumeric character"
            )

    @staticmethod
    def validate_resource_quantity(value: str, field_name: str) -> Decimal:
        """
        Validate a Kubernetes resource quantity such as ``250m`` or ``1Gi``.

        Returns:
            The parsed quantity

        Raises:
            ValidationError: If the value is not a valid, non-negative quantity
        """
        try:
            quantity = parse_quantity(value)
        except (ValueError, TypeError) as e:
            raise ValidationError(f"Invalid {field_name} '{value}': {e}") from e
        if quantity < 0:
            raise ValidationError(f"Invalid {field_name} '{value}': must not be negative")
        return quantity

    @staticmethod
    def validate_request_within_limit(
        request: Optional[str],
        limit: Optional[str],
        resource: str,
    ) -> None:
        """
        Validate that a resource request does not exceed its limit.

        Raises:
            ValidationError: If either value is invalid or request > limit
        """
        parsed_request = (
            InputValidator.validate_resource_quantity(request, f"{resource} request") if request else None
        )
        parsed_limit = InputValidator.validate_resource_quantity(limit, f"{resource} limit") if limit else None
        if parsed_request is not None and parsed_limit is not None and parsed_request > parsed_limit:
            raise ValidationError(f"{resource} request '{request}' cannot be greater than {resource} limit '{limit}'")

    @staticmethod
    def validate_run_uid(uid: str) -> None:
        """
        Validate a preflight run UID supplied for cleanup.

        Raises:
            ValidationError: If the UID does not have the generated format
        """
        if not uid or not RUN_UID_PATTERN.match(uid):
            raise ValidationError(
                f"Invalid UID '{uid}'. Must be {UID_LENGTH} lowercase alphanumeric characters "
                f"as logged by a previous preflight run"
            )

    @staticmethod
    def validate_non_empty_string(value: str, field_name: str) -> None:
        """
        Validate that a string is not empty or whitespace-only.

        Raises:
            ValidationError: If string is empty or whitespace-only
        """
        if not value or not value.strip():
            raise ValidationError(f"{field_name} cannot be empty or whitespace-only")
