"""
Per-provider sliding-window rate limiter.

Tracks admitted calls over the last 60 seconds against two ceilings:
requests per minute and estimated tokens per minute. Callers await
acquire() before each gateway query; it suspends until both ceilings
have headroom.

Each provider gets its own RateLimiter instance, owned by whoever drives
that provider (the AnalysisRunner by default). There is no global registry.
An internal asyncio.Lock serialises concurrent acquire() calls on one
instance.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
WAIT_BUFFER_SECONDS = 0.1
DEFAULT_ESTIMATED_TOKENS = 1000


class RateLimiter:
    """
    Sliding 60 s window over request count and estimated tokens.

    Args:
        max_requests_per_minute: Request ceiling within the window
        max_tokens_per_minute: Estimated-token ceiling within the window
        clock: Monotonic clock in seconds (injectable for tests)
        sleep: Awaitable sleep (injectable for tests)

    Example:
        >>> limiter = RateLimiter(60, 60_000)
        >>> await limiter.acquire(estimated_tokens=1000)
    """

    def __init__(
        self,
        max_requests_per_minute: int = 60,
        max_tokens_per_minute: int = 60_000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_requests_per_minute <= 0:
            raise ValueError("max_requests_per_minute must be positive")
        if max_tokens_per_minute <= 0:
            raise ValueError("max_tokens_per_minute must be positive")

        self.max_requests_per_minute = max_requests_per_minute
        self.max_tokens_per_minute = max_tokens_per_minute
        self._clock = clock
        self._sleep = sleep

        # (admitted_at, estimated_tokens), oldest first
        self._entries: deque[tuple[float, int]] = deque()
        self._tracked_tokens = 0
        self._lock = asyncio.Lock()

    async def acquire(self, estimated_tokens: int = DEFAULT_ESTIMATED_TOKENS) -> None:
        """
        Wait until the call fits within both ceilings, then record it.

        While the request count or tracked token estimate is at or above its
        ceiling, sleeps until the oldest entry leaves the window (plus a
        100 ms buffer) and re-checks.

        Args:
            estimated_tokens: Token estimate charged to the window
        """
        if estimated_tokens < 0:
            raise ValueError("estimated_tokens cannot be negative")

        async with self._lock:
            self._purge(self._clock())

            while self._is_saturated():
                oldest = self._entries[0][0]
                wait_seconds = oldest + WINDOW_SECONDS - self._clock() + WAIT_BUFFER_SECONDS
                logger.debug(
                    f"Rate limit reached ({len(self._entries)} requests, "
                    f"{self._tracked_tokens} tokens); waiting {wait_seconds:.2f}s"
                )
                if wait_seconds > 0:
                    await self._sleep(wait_seconds)
                self._purge(self._clock())

            self._entries.append((self._clock(), estimated_tokens))
            self._tracked_tokens += estimated_tokens

    def stats(self) -> dict[str, float]:
        """Return current window usage."""
        self._purge(self._clock())
        return {
            "requests_in_window": len(self._entries),
            "max_requests_per_minute": self.max_requests_per_minute,
            "tokens_in_window": self._tracked_tokens,
            "max_tokens_per_minute": self.max_tokens_per_minute,
            "request_utilization": len(self._entries) / self.max_requests_per_minute,
            "token_utilization": self._tracked_tokens / self.max_tokens_per_minute,
        }

    def _is_saturated(self) -> bool:
        return (
            len(self._entries) >= self.max_requests_per_minute
            or self._tracked_tokens >= self.max_tokens_per_minute
        )

    def _purge(self, now: float) -> None:
        cutoff = now - WINDOW_SECONDS
        while self._entries and self._entries[0][0] <= cutoff:
            _, tokens = self._entries.popleft()
            self._tracked_tokens -= tokens
