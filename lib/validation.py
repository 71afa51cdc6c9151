#!/usr/bin/env python3
"""
Input validation utilities for the functional test harness.

This module validates Kubernetes resource names, namespaces, labels, context
names and CLI arguments before they reach the cluster API.

Features:
- Kubernetes resource name validation (DNS-1123 subdomain rules)
- Kubernetes namespace validation (DNS-1123 label rules)
- Kubernetes label validation
- Context name validation
- CLI argument validation
"""

import logging
import re
from typing import Dict, Iterable, Optional, Pattern

from lib.exceptions import ValidationError

logger = logging.getLogger("ocp_functional")

# Kubernetes resource name validation patterns
# DNS-1123 subdomain format: contains only lowercase alphanumeric characters, '-' or '.',
# starts with an alphanumeric character, ends with an alphanumeric character
K8S_NAME_PATTERN: Pattern[str] = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$")
K8S_NAME_MAX_LENGTH = 253

# RFC 1123 label format, must start with a letter for namespaces
K8S_NAMESPACE_PATTERN: Pattern[str] = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")
K8S_NAMESPACE_MAX_LENGTH = 63

K8S_LABEL_KEY_PATTERN: Pattern[str] = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?$"
    r"|^[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?/[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?$"
)
K8S_LABEL_VALUE_PATTERN: Pattern[str] = re.compile(r"^[a-zA-Z0-9]([a-zA-Z0-9-_.]*[a-zA-Z0-9])?$")
K8S_LABEL_MAX_LENGTH = 63

# Accommodates default oc login contexts like 'default/api.example.com:6443/admin'
CONTEXT_NAME_PATTERN: Pattern[str] = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:\-/]*[A-Za-z0-9]$|^[A-Za-z0-9]$")
CONTEXT_NAME_MAX_LENGTH = 128

VALID_KINDS = ["pod", "vm"]
VALID_LOG_FORMATS = ["text", "json"]


class InputValidator:
    """Input validation for harness operations."""

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
        """Validate Kubernetes label key."""
        if not key:
            raise ValidationError("Label key cannot be empty")

        # Prefixed keys allow a DNS subdomain prefix up to 253 characters
        name = key.rsplit("/", 1)[-1]
        if len(name) > K8S_LABEL_MAX_LENGTH:
            raise ValidationError(f"Label key '{key}' exceeds maximum length of {K8S_LABEL_MAX_LENGTH} characters")

        if not K8S_LABEL_KEY_PATTERN.match(key):
            raise ValidationError(
                f"Invalid label key '{key}'. "
                f"Must be an optional prefix and name, separated by a slash (/), "
                f"where prefix must be a DNS subdomain and name must be a DNS label"
            )

    @staticmethod
    def validate_kubernetes_label_value(value: str) -> None:
        """Validate Kubernetes label value (empty string is allowed)."""
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
    def validate_labels(labels: Optional[Dict[str, str]]) -> None:
        """Validate every key/value pair of a label map."""
        for key, value in (labels or {}).items():
            InputValidator.validate_kubernetes_label_key(key)
            InputValidator.validate_kubernetes_label_value(value)

    @staticmethod
    def validate_context_name(context: str) -> None:
        """
        Validate Kubernetes context name.

        Raises:
            ValidationError: If context name is invalid
        """
        if not context:
            raise ValidationError("Context name cannot be empty")

        if len(context) > CONTEXT_NAME_MAX_LENGTH:
            raise ValidationError(
                f"Context name '{context}' exceeds maximum length of {CONTEXT_NAME_MAX_LENGTH} characters"
            )

        if not CONTEXT_NAME_PATTERN.match(context):
            raise ValidationError(
                f"Invalid context name '{context}'. "
                f"Must consist of alphanumeric characters, '-', '_', '.', ':', or '/', "
                f"and must start and end with an alphanumeric character"
            )

    @staticmethod
    def _validate_choice(value: str, valid_choices: Iterable[str], field_name: str) -> None:
        valid_choices = list(valid_choices)
        if value not in valid_choices:
            raise ValidationError(f"Invalid {field_name} '{value}'. Must be one of: {', '.join(valid_choices)}")

    @staticmethod
    def validate_port(port: int, field_name: str = "port") -> None:
        """Validate a TCP/UDP port number."""
        if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
            raise ValidationError(f"Invalid {field_name} '{port}'. Must be an integer between 1 and 65535")

    @staticmethod
    def validate_positive_number(value: float, field_name: str) -> None:
        if value is None or value <= 0:
            raise ValidationError(f"{field_name} must be a positive number, got {value}")

    @staticmethod
    def validate_non_empty_string(value: str, field_name: str) -> None:
        """
        Validate that a string is not empty or whitespace-only.

        Raises:
            ValidationError: If string is empty or whitespace-only
        """
        if not value or not value.strip():
            raise ValidationError(f"{field_name} cannot be empty or whitespace-only")

    @staticmethod
    def validate_all_cli_args(args: object) -> None:
        """
        Validate the arguments of the provisioning CLI.

        Args:
            args: Parsed CLI arguments object

        Raises:
            ValidationError: If any argument validation fails
        """
        if getattr(args, "context", None):
            InputValidator.validate_context_name(args.context)

        InputValidator.validate_kubernetes_namespace(args.namespace)
        InputValidator._validate_choice(args.kind, VALID_KINDS, "kind")
        InputValidator._validate_choice(args.log_format, VALID_LOG_FORMATS, "log format")

        if args.name:
            InputValidator.validate_kubernetes_name(args.name, args.kind)

        InputValidator.validate_positive_number(args.interval, "--interval")
        InputValidator.validate_positive_number(args.timeout, "--timeout")
        if args.attempts < 1:
            raise ValidationError(f"--attempts must be at least 1, got {args.attempts}")

        if args.kind == "pod":
            InputValidator.validate_non_empty_string(args.image or "", "--image")
        else:
            InputValidator.validate_kubernetes_name(args.template, "template")
            InputValidator.validate_non_empty_string(args.script or "", "--script")

        if args.ssh_key and args.kind != "vm":
            raise ValidationError("--ssh-key can only be used with --kind vm")
        if args.read_file and not args.ssh_key:
            raise ValidationError("--read-file requires --ssh-key")
