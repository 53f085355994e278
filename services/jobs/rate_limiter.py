"""
Sliding-window rate limiter for job dispatches.

Keeps the timestamps of recent dispatches and reports how many more may start
inside the trailing window.
"""

import logging
import time
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Counts dispatches in a trailing time window.

    Usage:
        limiter = RateLimiter(limit=4, window_seconds=60)

        if limiter.available_slots() > 0:
            limiter.record_dispatch()
    """

    def __init__(
        self,
        limit: int = 4,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._timestamps: deque[float] = deque()

    def _prune(self, now: float):
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    def record_dispatch(self):
        """Record a dispatch at the current time."""
        self._timestamps.append(self.clock())

    def available_slots(self, now: Optional[float] = None) -> int:
        """Dispatches still allowed in the window ending at ``now``."""
        if now is None:
            now = self.clock()
        self._prune(now)
        return max(self.limit - len(self._timestamps), 0)

    def in_window(self, now: Optional[float] = None) -> int:
        """Number of dispatches inside the window ending at ``now``."""
        if now is None:
            now = self.clock()
        self._prune(now)
        return len(self._timestamps)

    def get_status(self) -> dict:
        """Get current status as a dictionary."""
        return {
            "limit": self.limit,
            "window_seconds": self.window_seconds,
            "in_window": self.in_window(),
            "available": self.available_slots(),
        }
