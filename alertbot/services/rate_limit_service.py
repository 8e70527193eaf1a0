"""Service for managing rate limits."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class RateLimitWindow:
    """Accepted requests for one key inside the current fixed window."""

    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single rate limit check."""

    allowed: bool
    remaining: int
    reset_after: float


class RateLimitService:
    """Fixed-window rate limiter keyed by arbitrary strings.

    The window for a key starts with its first accepted request and resets
    once ``window_seconds`` have elapsed. Check-and-increment happens under a
    single lock so concurrent requests can't both slip past the boundary.

    At most ``max_keys`` windows are tracked. When a new key arrives and the
    table is full, elapsed windows are dropped first, then the oldest live ones.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self.clock = clock
        self._windows: dict[str, RateLimitWindow] = {}
        self._lock = asyncio.Lock()

    def _current_window(self, key: str, now: float) -> RateLimitWindow | None:
        window = self._windows.get(key)
        if window is not None and now - window.window_start >= self.window_seconds:
            del self._windows[key]
            return None
        return window

    def _drop_expired(self, now: float) -> int:
        expired = [
            key
            for key, window in self._windows.items()
            if now - window.window_start >= self.window_seconds
        ]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def _make_room(self, now: float) -> None:
        self._drop_expired(now)
        evicted = 0
        # Windows are inserted in start order, so the first key is the oldest
        while len(self._windows) >= self.max_keys:
            del self._windows[next(iter(self._windows))]
            evicted += 1
        if evicted:
            logger.warning("Rate limit table full, evicted %d live windows", evicted)

    async def hit(self, key: str) -> RateLimitDecision:
        """Consume one request for ``key`` if quota remains."""
        async with self._lock:
            now = self.clock()
            window = self._current_window(key, now)
            if window is None:
                if len(self._windows) >= self.max_keys:
                    self._make_room(now)
                window = RateLimitWindow(count=0, window_start=now)
                self._windows[key] = window

            reset_after = max(0.0, window.window_start + self.window_seconds - now)
            if window.count >= self.max_requests:
                logger.warning("Rate limit exceeded for %s", key)
                return RateLimitDecision(allowed=False, remaining=0, reset_after=reset_after)

            window.count += 1
            return RateLimitDecision(
                allowed=True,
                remaining=self.max_requests - window.count,
                reset_after=reset_after,
            )

    async def cleanup_expired(self) -> int:
        """Drop windows that have already elapsed. Returns how many were removed."""
        async with self._lock:
            removed = self._drop_expired(self.clock())
        if removed:
            logger.debug("Pruned %d expired rate limit windows", removed)
        return removed

    def describe(self) -> str:
        """Human readable limit, e.g. ``100 alerts per day``."""
        if self.window_seconds == 24 * 60 * 60:
            period = "day"
        elif self.window_seconds == 60 * 60:
            period = "hour"
        else:
            period = f"{int(self.window_seconds)} seconds"
        return f"{self.max_requests} alerts per {period}"
