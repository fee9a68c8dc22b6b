"""Redis sliding-window rate limit store.

Each key is a sorted set of admission timestamps (milliseconds). A single Lua
script trims expired entries, counts, and conditionally records the new
admission, so the check and the increment are one atomic step on the server
no matter how many workers share the store.

Timestamps come from the Redis server clock (``TIME``) so every worker trims
and counts against the same notion of "now".
"""

from __future__ import annotations

import math
import uuid
from typing import Callable

from redis.asyncio import Redis

from app.adapters.rate_limit.base import (
    AbstractRateLimitStore,
    RateLimitResult,
    validate_consume_args,
)

# KEYS[1]  sorted set for the caller/scope
# ARGV[1]  now (ms), or "" to read the server clock
# ARGV[2]  window (ms)  ARGV[3] limit  ARGV[4] cost
# ARGV[5]  unique member prefix for this call
# Returns {allowed (0|1), count after call, reset (ms), now (ms)}
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
if now == nil then
  local t = redis.call('TIME')
  now = tonumber(t[1]) * 1000 + math.floor(tonumber(t[2]) / 1000)
end
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])
local cost = tonumber(ARGV[4])
local member = ARGV[5]

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
local allowed = 0

if count + cost <= limit then
  for i = 1, cost do
    redis.call('ZADD', key, now, member .. ':' .. i)
  end
  count = count + cost
  allowed = 1
end

if count > 0 then
  redis.call('PEXPIRE', key, window)
end

local reset = now + window
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
if oldest[2] then
  reset = tonumber(oldest[2]) + window
end

return {allowed, count, reset, now}
"""


class RedisSlidingWindowStore(AbstractRateLimitStore):
    """Sliding-window log stored in Redis and shared by every worker."""

    def __init__(
        self,
        client: Redis,
        *,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            client: Connected ``redis.asyncio.Redis`` client.
            clock: Optional time source returning UNIX time in seconds. When
                omitted the Redis server clock is used.
        """
        self._client = client
        self._clock = clock
        self._script = client.register_script(SLIDING_WINDOW_SCRIPT)

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float) -> "RedisSlidingWindowStore":
        """Build a store with bounded connect/read timeouts."""
        client = Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    async def consume(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
        cost: int = 1,
    ) -> RateLimitResult:
        """Run the sliding-window script for ``key``.

        Raises:
            ValueError: If key is empty or numeric arguments are invalid.
            redis.exceptions.RedisError: If the store cannot be reached.
        """
        validate_consume_args(key, limit=limit, window_seconds=window_seconds, cost=cost)

        now_arg = "" if self._clock is None else int(self._clock() * 1000)
        window_ms = window_seconds * 1000

        allowed_flag, count, reset_ms, now_ms = await self._script(
            keys=[key],
            args=[now_arg, window_ms, limit, cost, uuid.uuid4().hex],
        )

        allowed = int(allowed_flag) == 1
        reset_at = int(math.ceil(int(reset_ms) / 1000))
        remaining = max(0, limit - int(count))

        if allowed:
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=remaining,
                reset_at=reset_at,
                retry_after_seconds=None,
            )

        retry_after = max(1, int(math.ceil((int(reset_ms) - int(now_ms)) / 1000)))
        return RateLimitResult(
            allowed=False,
            limit=limit,
            remaining=remaining,
            reset_at=reset_at,
            retry_after_seconds=retry_after,
        )

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def close(self) -> None:
        await self._client.aclose()
