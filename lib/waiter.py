"""Generic wait/poll utilities for functional test workflows.

Every bounded wait in the harness goes through :func:`wait_for_condition`.
A wait is described by a :class:`PollSpec` (tick interval plus a timeout,
a retry cap, or both) and a predicate that classifies the current state as
pending, ready or failed.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Type

from lib.exceptions import (
    ConfigurationError,
    PredicateFailedError,
    RetriesExhaustedError,
    TransientError,
    WaitCancelledError,
    WaitError,
    WaitTimeoutError,
)


class Readiness(Enum):
    """Classification of a single predicate evaluation."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class PredicateResult:
    """Outcome of one predicate evaluation."""

    state: Readiness
    detail: str = ""
    value: Any = None

    @classmethod
    def pending(cls, detail: str = "") -> "PredicateResult":
        return cls(Readiness.PENDING, detail)

    @classmethod
    def ready(cls, detail: str = "", value: Any = None) -> "PredicateResult":
        return cls(Readiness.READY, detail, value)

    @classmethod
    def failed(cls, reason: str) -> "PredicateResult":
        return cls(Readiness.FAILED, reason)

    @property
    def is_ready(self) -> bool:
        return self.state is Readiness.READY

    @property
    def is_failed(self) -> bool:
        return self.state is Readiness.FAILED


Predicate = Callable[[], PredicateResult]


@dataclass(frozen=True)
class PollSpec:
    """
    Stopping policy for one wait.

    Args:
        interval: Seconds between predicate evaluations (must be > 0)
        timeout: Wall-clock budget in seconds; 0 disables the timeout
        max_retries: Maximum number of evaluations; 0 disables the cap

    Raises:
        ConfigurationError: If the spec could wait forever or is malformed
    """

    interval: float
    timeout: float = 0
    max_retries: int = 0

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ConfigurationError(f"Poll interval must be positive, got {self.interval}")
        if self.timeout < 0:
            raise ConfigurationError(f"Poll timeout cannot be negative, got {self.timeout}")
        if self.max_retries < 0:
            raise ConfigurationError(f"Poll max_retries cannot be negative, got {self.max_retries}")
        if self.timeout == 0 and self.max_retries == 0:
            raise ConfigurationError("Poll spec needs a positive timeout or max_retries, otherwise it never stops")

    def describe(self) -> str:
        parts = []
        if self.timeout:
            parts.append(f"timeout: {self.timeout}s")
        if self.max_retries:
            parts.append(f"max retries: {self.max_retries}")
        return ", ".join(parts)


class Clock:
    """Time source and sleeper used by the poll engine."""

    def now(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        """Sleep for ``seconds``; return True if ``cancel`` is set."""
        if cancel is None:
            if seconds > 0:
                time.sleep(seconds)
            return False
        if seconds <= 0:
            return cancel.is_set()
        return cancel.wait(seconds)


SYSTEM_CLOCK = Clock()


def _stop(
    error_cls: Type[WaitError],
    reason: str,
    description: str,
    elapsed: float,
    evaluations: int,
    last_error: Optional[BaseException],
) -> WaitError:
    message = f"{description}: {reason} after {evaluations} checks ({elapsed:.1f}s elapsed)"
    if last_error is not None:
        message = f"{message}; last error: {last_error}"
    return error_cls(
        message,
        description=description,
        elapsed=elapsed,
        evaluations=evaluations,
        last_error=last_error,
    )


def wait_for_condition(
    description: str,
    predicate: Predicate,
    spec: PollSpec,
    *,
    logger: logging.Logger,
    cancel: Optional[threading.Event] = None,
    clock: Optional[Clock] = None,
) -> Any:
    """
    Poll ``predicate`` every ``spec.interval`` seconds until it is ready.

    The first evaluation happens one interval after the call starts. Ticks
    stay on a fixed cadence; a predicate that overruns a tick does not cause
    catch-up evaluations.

    Args:
        description: Human-readable subject of the wait, used in logs and errors
        predicate: Zero-argument callable returning a PredicateResult
        spec: Stopping policy
        logger: Logger receiving progress messages
        cancel: Optional event; once set the wait stops at the next tick boundary
        clock: Time source, defaults to the system monotonic clock

    Returns:
        The ``value`` of the ready PredicateResult (None for plain conditions)

    Raises:
        PredicateFailedError: The predicate reported a terminal failure
        WaitTimeoutError: ``spec.timeout`` elapsed
        RetriesExhaustedError: ``spec.max_retries`` evaluations were made
        WaitCancelledError: ``cancel`` was set
    """
    clock = clock or SYSTEM_CLOCK
    start = clock.now()
    deadline = start + spec.timeout if spec.timeout else None
    next_tick = start + spec.interval
    evaluations = 0
    last_error: Optional[TransientError] = None

    logger.info("Waiting for %s (%s, interval: %ss)...", description, spec.describe(), spec.interval)

    while True:
        if deadline is not None and next_tick > deadline:
            if clock.sleep(deadline - clock.now(), cancel):
                raise _stop(WaitCancelledError, "cancelled", description, clock.now() - start, evaluations, last_error)
            error = _stop(
                WaitTimeoutError,
                f"timed out ({spec.timeout}s)",
                description,
                clock.now() - start,
                evaluations,
                last_error,
            )
            logger.warning("%s", error)
            raise error from last_error

        if clock.sleep(next_tick - clock.now(), cancel):
            raise _stop(WaitCancelledError, "cancelled", description, clock.now() - start, evaluations, last_error)

        evaluations += 1
        try:
            result = predicate()
        except TransientError as e:
            last_error = e
            result = PredicateResult.pending(str(e))
            logger.warning("%s check %s failed transiently: %s", description, evaluations, e)
        else:
            last_error = None

        elapsed = clock.now() - start
        if result.is_ready:
            if result.detail:
                logger.info("%s complete: %s", description, result.detail)
            else:
                logger.info("%s complete", description)
            return result.value

        if result.is_failed:
            logger.error("%s failed: %s", description, result.detail)
            raise PredicateFailedError(
                f"{description} failed: {result.detail}",
                reason=result.detail,
                description=description,
                elapsed=elapsed,
                evaluations=evaluations,
            )

        if result.detail:
            logger.debug("%s in progress: %s (elapsed: %ds)", description, result.detail, elapsed)
        else:
            logger.debug("%s in progress (elapsed: %ds)", description, elapsed)

        if spec.max_retries and evaluations >= spec.max_retries:
            error = _stop(
                RetriesExhaustedError,
                f"retries exhausted ({spec.max_retries})",
                description,
                elapsed,
                evaluations,
                last_error,
            )
            logger.warning("%s", error)
            raise error from last_error

        next_tick += spec.interval
        now = clock.now()
        while next_tick < now:
            next_tick += spec.interval
