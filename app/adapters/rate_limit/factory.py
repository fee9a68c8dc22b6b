"""Factory for rate limit stores."""

import logging

from app.adapters.rate_limit.base import AbstractRateLimitStore
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from app.adapters.rate_limit.redis_store import RedisSlidingWindowStore
from app.core.config import RateLimitSettings, RedisSettings
from app.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


def create_rate_limit_store(
    rate_limit: RateLimitSettings,
    redis: RedisSettings,
) -> AbstractRateLimitStore:
    """Instantiate the counter store selected by ``RATE_LIMIT_BACKEND``.

    Returns:
        AbstractRateLimitStore: Configured store instance.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    backend = rate_limit.backend.lower()

    if backend == "redis":
        return RedisSlidingWindowStore.from_url(
            redis.url,
            socket_timeout=redis.socket_timeout_seconds,
        )

    if backend == "memory":
        logger.warning(
            "rate_limit.process_local_store",
            extra={
                "backend": backend,
                "hint": "limits are per worker; use RATE_LIMIT_BACKEND=redis when scaling out",
            },
        )
        return InMemorySlidingWindowStore()

    raise ValidationAppError(
        code="rate_limit_unknown_backend",
        message=f"Unknown rate limit backend: '{backend}'. Supported backends: redis, memory",
    )
