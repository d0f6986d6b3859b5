# =============================================================================
# core/clock.py
#
# Injectable time source. Every duration in the monitor is a comparison of
# millisecond timestamps read from a Clock, never a scheduled callback, so
# tests and the replay driver can simulate elapsed time without sleeping.
# =============================================================================

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float:
        """Current time in milliseconds."""
        ...


class SystemClock:
    """Wall clock in milliseconds since the epoch."""

    def now(self) -> float:
        return time.time() * 1000.0


class ManualClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock()
        clock.advance(1500)     # +1.5 s
        clock.set(60_000)       # jump to t = 60 s
    """

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, ms: float) -> float:
        if ms < 0:
            raise ValueError(f"ManualClock cannot go backwards (advance by {ms})")
        self._now += ms
        return self._now

    def set(self, timestamp: float) -> float:
        if timestamp < self._now:
            raise ValueError(
                f"ManualClock cannot go backwards ({timestamp} < {self._now})"
            )
        self._now = float(timestamp)
        return self._now
