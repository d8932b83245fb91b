"""
Clock sources.

The engine only ever asks for an integer unix timestamp and reads it once
per operation.
"""
import time
import threading


class Clock:
    def now(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock that never steps backwards, even if the host clock does."""

    def __init__(self):
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            self._last = max(self._last, int(time.time()))
            return self._last


class ManualClock(Clock):
    """Settable clock for tests and simulations."""

    def __init__(self, start: int = 1_700_000_000):
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, timestamp: int):
        """Jump to an absolute time. Going backwards is allowed to simulate clock faults."""
        self._now = timestamp
