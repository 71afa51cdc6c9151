"""
Custom exceptions for the functional test harness.
"""

from typing import List, Optional


class HarnessError(Exception):
    """Base class for all harness errors."""


class TransientError(HarnessError):
    """
    Error that might be resolved by retrying.
    Examples: Network timeouts, 503 Service Unavailable, resource not yet visible.
    """


class FatalError(HarnessError):
    """
    Error that cannot be resolved by retrying.
    Examples: Invalid configuration, missing permissions.
    """


class ConfigurationError(FatalError):
    """Invalid configuration or arguments."""


class ValidationError(ConfigurationError):
    """Input validation failure."""


class WaitError(HarnessError):
    """A bounded wait ended without the condition becoming true."""

    def __init__(
        self,
        message: str,
        description: str = "",
        elapsed: float = 0.0,
        evaluations: int = 0,
        last_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.description = description
        self.elapsed = elapsed
        self.evaluations = evaluations
        self.last_error = last_error


class PredicateFailedError(WaitError):
    """The resource reached a terminal bad state."""

    def __init__(self, message: str, reason: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason


class WaitTimeoutError(WaitError):
    """The wall-clock timeout elapsed."""


class RetriesExhaustedError(WaitError):
    """The maximum number of evaluations was reached."""


class WaitCancelledError(WaitError):
    """The caller cancelled the wait."""


class ProvisionExhaustedError(HarnessError):
    """Every provisioning attempt failed."""

    def __init__(self, message: str, attempts: Optional[List] = None):
        super().__init__(message)
        self.attempts = attempts or []

    @property
    def last_error(self) -> Optional[BaseException]:
        if not self.attempts:
            return None
        return self.attempts[-1].error


class RemoteCommandError(FatalError):
    """A command run over SSH exited with a non-zero status."""

    def __init__(self, message: str, exit_status: int = -1, output: str = ""):
        super().__init__(message)
        self.exit_status = exit_status
        self.output = output
