"""Create a resource, wait for it, and recreate it when it never becomes ready."""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Type

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from lib.exceptions import (
    HarnessError,
    ProvisionExhaustedError,
    WaitCancelledError,
    WaitError,
)
from lib.resources import ResourceHandle
from lib.waiter import SYSTEM_CLOCK, Clock, PollSpec, PredicateResult, wait_for_condition

DEFAULT_CREATE_ERRORS: Tuple[Type[BaseException], ...] = (HarnessError, ApiException, HTTPError)


@dataclass
class ProvisioningAttempt:
    """One create -> wait cycle."""

    number: int
    handle: Optional[ResourceHandle] = None
    error: Optional[BaseException] = None

    @property
    def created(self) -> bool:
        return self.handle is not None


def _cleanup(
    handle: ResourceHandle,
    delete: Callable[[ResourceHandle], object],
    exists: Optional[Callable[[ResourceHandle], bool]],
    spec: PollSpec,
    logger: logging.Logger,
    clock: Clock,
) -> None:
    """Best-effort delete; errors are logged and never replace the original failure."""
    try:
        delete(handle)
    except Exception as e:  # noqa: BLE001
        logger.error("Failed to delete %s after failure: %s", handle, e)
        return

    if exists is None:
        return

    try:
        wait_for_condition(
            f"deletion of {handle}",
            lambda: PredicateResult.pending() if exists(handle) else PredicateResult.ready(),
            spec,
            logger=logger,
            clock=clock,
        )
    except (WaitError, HarnessError, ApiException, HTTPError) as e:
        logger.error("%s still present after delete: %s", handle, e)


def provision(
    create: Callable[[], ResourceHandle],
    predicate: Callable[[ResourceHandle], PredicateResult],
    spec: PollSpec,
    attempts: int,
    *,
    delete: Callable[[ResourceHandle], object],
    logger: logging.Logger,
    exists: Optional[Callable[[ResourceHandle], bool]] = None,
    cancel: Optional[threading.Event] = None,
    clock: Optional[Clock] = None,
    create_errors: Tuple[Type[BaseException], ...] = DEFAULT_CREATE_ERRORS,
    description: str = "resource",
    delete_spec: Optional[PollSpec] = None,
) -> ResourceHandle:
    """
    Ensure a resource exists and is ready, recreating it on failure.

    Args:
        create: Creates the resource and returns its handle
        predicate: Readiness predicate called with the created handle
        spec: Poll policy for each readiness wait (its interval also spaces
            retries after a failed creation)
        attempts: Maximum number of create -> wait cycles
        delete: Deletes a failed resource before the next attempt
        logger: Logger receiving progress messages
        exists: Optional check used to wait until a deleted resource is gone
        cancel: Optional event aborting the whole operation
        clock: Time source for the poll engine
        create_errors: Exceptions from ``create`` that are retried
        description: Subject used in log and error messages
        delete_spec: Poll policy for the post-delete wait, defaults to ``spec``

    Returns:
        Handle of the ready resource; the caller owns its cleanup

    Raises:
        ProvisionExhaustedError: Every attempt failed
        WaitCancelledError: ``cancel`` was set
    """
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")

    clock = clock or SYSTEM_CLOCK
    history: List[ProvisioningAttempt] = []

    for number in range(1, attempts + 1):
        attempt = ProvisioningAttempt(number)
        history.append(attempt)
        logger.info("Provisioning %s (attempt %s/%s)", description, number, attempts)

        try:
            attempt.handle = create()
        except create_errors as e:
            attempt.error = e
            logger.warning("Failed to create %s (attempt %s/%s): %s", description, number, attempts, e)
            if number < attempts and clock.sleep(spec.interval, cancel):
                raise WaitCancelledError(f"provisioning {description} cancelled", description=description)
            continue

        handle = attempt.handle
        try:
            wait_for_condition(
                str(handle),
                lambda: predicate(handle),
                spec,
                logger=logger,
                cancel=cancel,
                clock=clock,
            )
        except WaitCancelledError:
            _cleanup(handle, delete, exists, delete_spec or spec, logger, clock)
            raise
        except WaitError as e:
            attempt.error = e
            logger.warning("%s did not become ready (attempt %s/%s): %s", handle, number, attempts, e)
            _cleanup(handle, delete, exists, delete_spec or spec, logger, clock)
            continue
        except BaseException:
            _cleanup(handle, delete, exists, delete_spec or spec, logger, clock)
            raise

        logger.info("%s is ready after %s attempt(s)", handle, number)
        return handle

    last_error = history[-1].error
    message = f"provisioning {description} failed after {attempts} attempts: {last_error}"
    logger.error("%s", message)
    raise ProvisionExhaustedError(message, attempts=history) from last_error
