"""In-memory sliding-window rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
  Use the Redis store anywhere more than one worker serves traffic.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimitStore,
    RateLimitResult,
    validate_consume_args,
)


class InMemorySlidingWindowStore(AbstractRateLimitStore):
    """Sliding-window log kept in process memory.

    Each key owns a deque of admission timestamps. An admission is counted
    while it is younger than the window, so the limit holds for every window
    position rather than for fixed buckets.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the in-memory store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._events_by_key: dict[str, deque[float]] = {}

    def _evict_expired(self, events: deque[float], now: float, window_seconds: int) -> None:
        cutoff = now - window_seconds
        while events and events[0] <= cutoff:
            events.popleft()

    async def consume(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        cost: int = 1,
    ) -> RateLimitResult:
        """Check the window for ``key`` and record the admission if it fits.

        Raises:
            ValueError: If key is empty or numeric arguments are invalid.
        """
        validate_consume_args(key, limit=limit, window_seconds=window_seconds, cost=cost)

        now = self._clock()

        with self._lock:
            events = self._events_by_key.setdefault(key, deque())
            self._evict_expired(events, now, window_seconds)

            allowed = len(events) + cost <= limit
            if allowed:
                events.extend([now] * cost)

            oldest = events[0] if events else now
            reset_at = oldest + window_seconds
            remaining = max(0, limit - len(events))

            if not events:
                del self._events_by_key[key]

        if allowed:
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=remaining,
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=False,
            limit=limit,
            remaining=remaining,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
        )
