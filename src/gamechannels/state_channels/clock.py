"""
Time sources for challenge expiry.

Custody reads block time through a ``Clock``. ``SystemClock`` follows wall
time; ``ManualClock`` only moves when told to, which lets simulations and
tests warp past a challenge period.
"""

import threading
import time
from abc import ABC, abstractmethod
from typing import Optional


class Clock(ABC):
    """Source of the current timestamp in whole seconds."""

    @abstractmethod
    def now(self) -> int:
        pass


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """Clock that advances only through ``warp`` and ``set``."""

    def __init__(self, start: Optional[int] = None):
        self._now = int(time.time()) if start is None else start
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def warp(self, seconds: int) -> int:
        """Advance by ``seconds`` and return the new time."""
        if seconds < 0:
            raise ValueError("Cannot warp backwards")
        with self._lock:
            self._now += seconds
            return self._now

    def set(self, timestamp: int) -> None:
        with self._lock:
            if timestamp < self._now:
                raise ValueError("Cannot move the clock backwards")
            self._now = timestamp
