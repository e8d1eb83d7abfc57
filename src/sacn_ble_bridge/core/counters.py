"""Rolling event counters for status displays."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, List


class EventCounter:
    """
    Counts events per interval and keeps a short history of past intervals.

    The liveness timer calls ``roll()`` once a second; a UI can then draw
    the history as a sparkline. ``total`` never resets.
    """

    def __init__(
        self,
        interval_s: float = 1.0,
        max_history: int = 20,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.interval_s = interval_s
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._total = 0
        self._last_clear = clock()
        self._history: deque = deque(maxlen=max_history)

    def increment(self, amount: int = 1) -> None:
        with self._lock:
            self._count += amount
            self._total += amount

    @property
    def count(self) -> int:
        """Events in the current interval."""
        return self._count

    @property
    def total(self) -> int:
        return self._total

    @property
    def history(self) -> List[int]:
        with self._lock:
            return list(self._history)

    def time_since_last_clear(self) -> float:
        return self._clock() - self._last_clear

    def should_clear(self) -> bool:
        return self.time_since_last_clear() >= self.interval_s

    def clear(self) -> None:
        """Push the current count into history and start a new interval."""
        with self._lock:
            self._history.append(self._count)
            self._count = 0
            self._last_clear = self._clock()

    def roll(self) -> bool:
        """Clear if the interval has elapsed. Returns True when it did."""
        if self.should_clear():
            self.clear()
            return True
        return False
