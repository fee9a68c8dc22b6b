"""Rate limit store interfaces.

The rate limiter service depends on this abstraction (not the concrete
implementation) so the storage backend can be swapped with no changes to the
API layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the next unit of capacity frees up.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimitStore(ABC):
    """Interface for sliding-window counter stores.

    Implementations must check and record an admission in one atomic step:
    two concurrent callers for the same key may never both be admitted when
    only one unit of capacity remains.
    """

    @abstractmethod
    async def consume(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        cost: int = 1,
    ) -> RateLimitResult:
        """Consume rate limit budget for a given key.

        Args:
            key: Namespaced identifier (scope prefix + caller identity).
            limit: Maximum admissions within any window.
            window_seconds: Width of the sliding window.
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    async def ping(self) -> bool:
        """Report whether the backend answers (for readiness probes)."""
        return True

    async def close(self) -> None:
        """Release backend resources (connections, pools)."""
        return None


def validate_consume_args(key: str, *, limit: int, window_seconds: int, cost: int) -> None:
    """Reject arguments no store can honour.

    Raises:
        ValueError: If key is empty or a numeric argument is out of range.
    """
    if not key:
        raise ValueError("key must be a non-empty string")
    if limit < 1:
        raise ValueError("limit must be >= 1")
    if window_seconds < 1:
        raise ValueError("window_seconds must be >= 1")
    if cost < 1:
        raise ValueError("cost must be >= 1")
