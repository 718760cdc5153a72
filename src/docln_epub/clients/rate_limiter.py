"""Minimum-interval gate shared by every request of a run."""

import threading
import time
from typing import Callable


class RateLimiter:
    """Spaces the start of consecutive requests by a minimum interval.

    The interval is measured between request starts, so a slow response does
    not shorten the gap before the next request. The last start time is the
    only state shared between callers and is guarded by a lock.

    Example:
        limiter = RateLimiter(0.5)
        limiter.acquire()   # returns immediately
        limiter.acquire()   # sleeps until 0.5 s after the first start
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")

        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_start: float | None = None

    @property
    def last_start(self) -> float | None:
        return self._last_start

    def acquire(self) -> float:
        """Wait for the next request slot and claim it.

        Returns:
            The clock reading recorded as the start of this request
        """
        with self._lock:
            now = self._clock()
            if self._last_start is not None:
                wait = self._last_start + self.min_interval - now
                if wait > 0:
                    self._sleep(wait)
                    now = self._clock()
            self._last_start = now
            return now
