"""Rate limiting dependency for FastAPI routes.

This module wires the scoped rate limiter into the HTTP layer.

Design goals:
- Minimal coupling: API routes depend on ``rate_limit(scope)`` only.
- Shared state: counters live in the store behind ``RateLimiter`` so every
  worker sees the same windows.
- Fail closed: a store outage rejects the request (500) rather than admitting.

Identity strategy:
- First non-empty entry of ``X-Forwarded-For``, else ``X-Real-IP``.
- Without proxy headers every caller shares the ``anonymous`` bucket. This is
  conservative on purpose: a misconfigured proxy throttles everyone instead
  of nobody.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, status

from app.core.logging import hash_identifier
from app.services.rate_limiter import RateLimiter, RateLimitScope

logger = logging.getLogger(__name__)

ANONYMOUS_IDENTITY = "anonymous"
RATE_LIMIT_EXCEEDED_MESSAGE = "Too many requests. Please try again later."


def client_identity(request: Request) -> str:
    """Derive the rate limit identity from proxy-forwarded headers.

    Args:
        request: FastAPI request.

    Returns:
        str: Client address, or ``"anonymous"`` when no header is usable.
    """

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        for candidate in forwarded_for.split(","):
            candidate = candidate.strip()
            if candidate:
                return candidate

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    return ANONYMOUS_IDENTITY


def get_rate_limiter(request: Request) -> RateLimiter:
    """Return the limiter created during application startup."""
    return request.app.state.rate_limiter


def rate_limit(scope: RateLimitScope) -> Callable[[Request], Awaitable[None]]:
    """Build a FastAPI dependency charging one unit of ``scope`` per request.

    Usage:
        @router.post("/enroll", dependencies=[Depends(rate_limit(RateLimitScope.NOTIFICATION))])

    Args:
        scope: Bucket to charge.

    Returns:
        Async dependency raising HTTP 429 when the caller is over the limit.
    """

    async def enforce_rate_limit(request: Request) -> None:
        cfg = request.app.state.settings.rate_limit
        if not cfg.enabled:
            return

        limiter = get_rate_limiter(request)
        identity = client_identity(request)
        identity_hash = hash_identifier(identity)

        # RateLimitUnavailableError propagates to the global handler (500).
        result = await limiter.admit(identity, scope)
        if result.allowed:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "scope": scope.value,
                    "identity_hash": identity_hash,
                    "anonymous": identity == ANONYMOUS_IDENTITY,
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return

        retry_after = result.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "scope": scope.value,
                "identity_hash": identity_hash,
                "anonymous": identity == ANONYMOUS_IDENTITY,
                "limit": result.limit,
                "remaining": result.remaining,
                "retry_after_s": retry_after,
            },
        )

        headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset_at),
        }
        if cfg.include_headers:
            headers["Retry-After"] = str(retry_after)

        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=RATE_LIMIT_EXCEEDED_MESSAGE,
            headers=headers,
        )

    return enforce_rate_limit
