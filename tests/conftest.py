"""Shared fixtures for unit tests."""

import logging
from unittest.mock import Mock

import pytest

from lib.waiter import Clock


class FakeClock(Clock):
    """Virtual time: sleeping advances the clock instantly."""

    def __init__(self, start: float = 1000.0):
        self.time = start
        self.sleeps = []

    def now(self) -> float:
        return self.time

    def sleep(self, seconds, cancel=None) -> bool:
        if cancel is not None and cancel.is_set():
            return True
        if seconds > 0:
            self.sleeps.append(seconds)
            self.time += seconds
        return cancel is not None and cancel.is_set()

    def advance(self, seconds: float) -> None:
        self.time += seconds


@pytest.fixture
def clock():
    """A fake clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def mock_logger():
    """Create a mock logger."""
    return Mock(spec=logging.Logger)
