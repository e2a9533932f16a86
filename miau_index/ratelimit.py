"""Sliding-window rate limiting for outbound requests."""

import asyncio
import logging
import math
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

from .errors import RateLimitError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitUsage:
    current: int
    limit: int
    remaining: int
    reset_in: float


class RateLimiter:
    """Allow at most max_requests per window seconds, tracked per key.

    check_limit() fails fast with RateLimitError; acquire() waits for a slot.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window = window
        self._clock = clock
        self._requests: dict[str, deque[float]] = {}

    @classmethod
    def per_minute(cls, requests_per_minute: int) -> "RateLimiter":
        return cls(max_requests=requests_per_minute, window=60.0)

    def _recent(self, key: str) -> deque[float]:
        """Drop timestamps that fell out of the window and return the rest."""
        timestamps = self._requests.setdefault(key, deque())
        window_start = self._clock() - self.window
        while timestamps and timestamps[0] <= window_start:
            timestamps.popleft()
        return timestamps

    def _wait_time(self, key: str) -> float:
        timestamps = self._recent(key)
        if len(timestamps) < self.max_requests:
            return 0.0
        return max(timestamps[0] + self.window - self._clock(), 0.0)

    def check_limit(self, key: str = "default") -> None:
        """Raise RateLimitError if the key has no request left in the window."""
        wait = self._wait_time(key)
        if wait > 0:
            raise RateLimitError(retry_after=math.ceil(wait))

    def record_request(self, key: str = "default") -> None:
        self._recent(key).append(self._clock())

    async def acquire(self, key: str = "default") -> None:
        """Wait until the key may send another request, then record it."""
        wait = self._wait_time(key)
        while wait > 0:
            logger.debug(f"Rate limit reached for {key}, waiting {wait:.2f}s")
            await asyncio.sleep(wait)
            wait = self._wait_time(key)
        self.record_request(key)

    def usage(self, key: str = "default") -> RateLimitUsage:
        timestamps = self._recent(key)
        reset_in = timestamps[0] + self.window - self._clock() if timestamps else self.window
        return RateLimitUsage(
            current=len(timestamps),
            limit=self.max_requests,
            remaining=max(self.max_requests - len(timestamps), 0),
            reset_in=reset_in,
        )

    def reset(self, key: str = "default") -> None:
        self._requests.pop(key, None)

    def clear(self) -> None:
        self._requests.clear()
