"""
Common utilities for the functional test harness.
"""

import json
import logging
import secrets
from datetime import datetime, timezone
from typing import Optional

from lib.constants import LOGGER_NAME, RANDOM_NAME_ALPHABET, RANDOM_NAME_LENGTH, TEST_PREFIX


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
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
        )

    root_logger.addHandler(handler)

    return logging.getLogger(LOGGER_NAME)


def generate_random_name(length: int = RANDOM_NAME_LENGTH) -> str:
    """Return a random lowercase alphanumeric suffix usable in resource names."""
    return "".join(secrets.choice(RANDOM_NAME_ALPHABET) for _ in range(length))


def resource_name(role: Optional[str], suffix: str, prefix: str = TEST_PREFIX) -> str:
    """
    Build a test resource name such as ``functional-test-client-ab12cd34``.

    Args:
        role: Role of the resource in the scenario ('server', 'client', 'lb', ...)
        suffix: Random per-scenario suffix
        prefix: Name prefix shared by all harness resources
    """
    if role:
        return f"{prefix}-{role}-{suffix}"
    return f"{prefix}-{suffix}"


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"
