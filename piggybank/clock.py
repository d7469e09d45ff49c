"""
piggybank.clock — the ambient "current time" consulted at call time.

Deadlines are compared against `clock.now()` when an operation runs; nothing is
scheduled. Timestamps are integer UNIX seconds.
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now(self) -> int:
        """Current time in whole UNIX seconds."""


class SystemClock:
    """Wall-clock time."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Deterministic clock for tests and simulations. Time only moves when told to,
    and never backwards.
    """

    __slots__ = ("_now",)

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("cannot move a clock backwards")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> int:
        if timestamp < self._now:
            raise ValueError("cannot move a clock backwards")
        self._now = int(timestamp)
        return self._now


__all__ = ["Clock", "SystemClock", "ManualClock"]
