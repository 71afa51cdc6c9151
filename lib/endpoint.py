"""Poll a raw network endpoint until a handshake succeeds."""

import logging
import threading
from typing import Callable, Optional, Tuple, Type, TypeVar

from lib.exceptions import TransientError
from lib.waiter import Clock, PollSpec, PredicateResult, wait_for_condition

T = TypeVar("T")


def wait_for_endpoint(
    description: str,
    connect: Callable[[], T],
    spec: PollSpec,
    *,
    logger: logging.Logger,
    retry_on: Tuple[Type[BaseException], ...] = (OSError,),
    cancel: Optional[threading.Event] = None,
    clock: Optional[Clock] = None,
) -> T:
    """
    Call ``connect`` on every tick until it returns a connection.

    Exceptions listed in ``retry_on`` are treated as "not reachable yet";
    anything else propagates. The live connection from the successful attempt
    is returned as-is.

    Raises:
        WaitTimeoutError / RetriesExhaustedError: The endpoint never answered;
            the last connection error is chained and exposed as ``last_error``
        WaitCancelledError: ``cancel`` was set
    """

    def _attempt() -> PredicateResult:
        try:
            connection = connect()
        except retry_on as e:
            raise TransientError(f"{description} not reachable: {e}") from e
        return PredicateResult.ready(f"{description} reachable", value=connection)

    return wait_for_condition(description, _attempt, spec, logger=logger, cancel=cancel, clock=clock)
