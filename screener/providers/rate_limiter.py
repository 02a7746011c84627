"""Minimum-interval request throttle for the CoinGecko public API."""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class RequestThrottle:
    """
    Spaces outgoing requests at least ``min_interval`` seconds apart.

    The public CoinGecko tier rejects bursts well below its nominal
    per-minute quota, so callers serialise their send times through
    ``acquire`` rather than counting tokens.

    Attributes:
        min_interval: Minimum seconds between two request starts
        request_count: Requests admitted so far
    """

    def __init__(self, min_interval: float = 1.5):
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")

        self.min_interval = min_interval
        self.request_count = 0
        self._last_request_ts: float = 0.0
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next request slot is free, then claim it."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request_ts
            if self._last_request_ts and elapsed < self.min_interval:
                wait_time = self.min_interval - elapsed
                logger.debug("Throttling request for %.2fs", wait_time)
                await asyncio.sleep(wait_time)

            self._last_request_ts = time.monotonic()
            self.request_count += 1

    def get_stats(self) -> dict:
        """Get current throttle statistics."""
        return {
            "min_interval": self.min_interval,
            "requests": self.request_count,
        }
