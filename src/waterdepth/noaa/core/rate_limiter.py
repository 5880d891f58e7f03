"""
Rate limiter shared by concurrent NOAA CO-OPS requests.
"""

import time
from typing import Optional
import logging
from threading import Lock

logger = logging.getLogger(__name__)

class RateLimiter:
    """Spaces requests at least 1/requests_per_second apart across threads."""

    def __init__(self, requests_per_second: float = 4.0):
        """Initialize the rate limiter.

        Args:
            requests_per_second (float): Maximum number of requests per second

        Raises:
            ValueError: If requests_per_second is not positive
        """
        if requests_per_second <= 0:
            raise ValueError(f"requests_per_second must be positive, got {requests_per_second}")
        self._requests_per_second = requests_per_second
        self._min_interval = 1.0 / requests_per_second
        self._next_slot: Optional[float] = None
        self._lock = Lock()

    @property
    def requests_per_second(self) -> float:
        """Get the configured requests per second limit."""
        return self._requests_per_second

    def wait(self) -> None:
        """Block until this caller's request slot comes up.

        The slot is reserved under the lock and the sleep happens outside it,
        so waiting workers don't serialize on the lock itself.
        """
        with self._lock:
            now = time.monotonic()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self._min_interval

        delay = slot - now
        if delay > 0:
            logger.debug(f"Rate limiting: sleeping for {delay:.2f} seconds")
            time.sleep(delay)
