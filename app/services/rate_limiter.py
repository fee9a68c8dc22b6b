"""Scoped admission control on top of a shared counter store.

Each scope has its own threshold, window width and key namespace. Store
failures and slow round-trips are reported as ``RateLimitUnavailableError``
so callers reject the request instead of letting unmetered traffic through.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitResult
from app.core.config import RateLimitSettings
from app.core.errors import RateLimitUnavailableError
from app.core.logging import hash_identifier

logger = logging.getLogger(__name__)


class RateLimitScope(str, Enum):
    """Named buckets with independent limits."""

    GENERAL = "general"
    EXPENSIVE = "expensive"
    NOTIFICATION = "notification"


@dataclass(frozen=True)
class RateLimitPolicy:
    """Threshold and window for one scope."""

    prefix: str
    limit: int
    window_seconds: int


def build_policies(cfg: RateLimitSettings) -> dict[RateLimitScope, RateLimitPolicy]:
    """Map every scope to its configured policy."""
    return {
        RateLimitScope.GENERAL: RateLimitPolicy(
            prefix="api:public",
            limit=cfg.general_requests,
            window_seconds=cfg.general_window_seconds,
        ),
        RateLimitScope.EXPENSIVE: RateLimitPolicy(
            prefix="api:expensive",
            limit=cfg.expensive_requests,
            window_seconds=cfg.expensive_window_seconds,
        ),
        RateLimitScope.NOTIFICATION: RateLimitPolicy(
            prefix="api:email",
            limit=cfg.notification_requests,
            window_seconds=cfg.notification_window_seconds,
        ),
    }


class RateLimiter:
    """Admit or deny a caller for a scope."""

    def __init__(
        self,
        store: AbstractRateLimitStore,
        policies: dict[RateLimitScope, RateLimitPolicy],
        *,
        timeout_seconds: float,
    ) -> None:
        self._store = store
        self._policies = policies
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(
        cls, store: AbstractRateLimitStore, cfg: RateLimitSettings
    ) -> "RateLimiter":
        return cls(store, build_policies(cfg), timeout_seconds=cfg.timeout_seconds)

    async def admit(self, identity: str, scope: RateLimitScope) -> RateLimitResult:
        """Consume one unit of ``scope`` budget for ``identity``.

        Args:
            identity: Caller identity (client address or the anonymous sentinel).
            scope: Which bucket to charge.

        Returns:
            RateLimitResult with the decision and header metadata.

        Raises:
            RateLimitUnavailableError: If the store errors or exceeds the timeout.
        """
        policy = self._policies[scope]
        key = f"{policy.prefix}:{identity}"

        try:
            return await asyncio.wait_for(
                self._store.consume(
                    key,
                    limit=policy.limit,
                    window_seconds=policy.window_seconds,
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as exc:
            logger.error(
                "rate_limit.store_timeout",
                extra={
                    "scope": scope.value,
                    "key_hash": hash_identifier(key),
                    "timeout_s": self._timeout,
                },
            )
            raise RateLimitUnavailableError(
                code="rate_limit_unavailable",
                message="Rate limit store timed out",
            ) from exc
        except ValueError:
            raise
        except Exception as exc:
            logger.error(
                "rate_limit.store_error",
                extra={
                    "scope": scope.value,
                    "key_hash": hash_identifier(key),
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise RateLimitUnavailableError(
                code="rate_limit_unavailable",
                message="Rate limit store is unavailable",
            ) from exc

    async def health_check(self) -> bool:
        """Check the counter store answers within the admission timeout."""
        try:
            return await asyncio.wait_for(self._store.ping(), timeout=self._timeout)
        except Exception as exc:
            logger.warning(
                "rate_limit.store_unhealthy",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            return False

    async def close(self) -> None:
        await self._store.close()
