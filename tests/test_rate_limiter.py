"""Tests for scoped admission control and its FastAPI dependency."""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowStore
from app.core.config import RateLimitSettings, Settings
from app.core.errors import RateLimitUnavailableError
from app.core.exception_handlers import setup_exception_handlers
from app.core.rate_limit import ANONYMOUS_IDENTITY, client_identity, rate_limit
from app.services.rate_limiter import (
    RateLimiter,
    RateLimitPolicy,
    RateLimitScope,
    build_policies,
)


def _request(headers: dict[str, str]) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
    return Request({"type": "http", "headers": raw})


class TestClientIdentity:

    def test_first_forwarded_for_entry(self) -> None:
        request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
        assert client_identity(request) == "203.0.113.7"

    def test_skips_empty_forwarded_for_entries(self) -> None:
        request = _request({"X-Forwarded-For": " , 198.51.100.2"})
        assert client_identity(request) == "198.51.100.2"

    def test_falls_back_to_real_ip(self) -> None:
        request = _request({"X-Forwarded-For": " ", "X-Real-IP": "192.0.2.9"})
        assert client_identity(request) == "192.0.2.9"

    def test_anonymous_without_proxy_headers(self) -> None:
        assert client_identity(_request({})) == ANONYMOUS_IDENTITY


class _SlowStore(AbstractRateLimitStore):
    async def consume(self, key, *, limit, window_seconds, cost=1) -> RateLimitResult:
        await asyncio.sleep(5)
        raise AssertionError("unreachable")


class TestRateLimiter:

    def test_policies_follow_settings(self) -> None:
        cfg = RateLimitSettings(
            general_requests=7,
            general_window_seconds=30,
            expensive_requests=2,
            notification_requests=3,
            notification_window_seconds=90,
        )

        policies = build_policies(cfg)

        assert policies[RateLimitScope.GENERAL] == RateLimitPolicy("api:public", 7, 30)
        assert policies[RateLimitScope.EXPENSIVE].limit == 2
        assert policies[RateLimitScope.NOTIFICATION] == RateLimitPolicy("api:email", 3, 90)

    @pytest.mark.asyncio
    async def test_k_plus_first_call_denied_then_admitted_after_window(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = RateLimiter.from_settings(
            InMemorySlidingWindowStore(clock=clock),
            RateLimitSettings(notification_requests=3, notification_window_seconds=60),
        )

        for _ in range(3):
            assert (await limiter.admit("1.2.3.4", RateLimitScope.NOTIFICATION)).allowed

        denied = await limiter.admit("1.2.3.4", RateLimitScope.NOTIFICATION)
        assert denied.allowed is False
        assert denied.limit == 3
        assert denied.remaining == 0

        clock.return_value = 1060.0
        assert (await limiter.admit("1.2.3.4", RateLimitScope.NOTIFICATION)).allowed

    @pytest.mark.asyncio
    async def test_scopes_have_independent_buckets(self) -> None:
        limiter = RateLimiter.from_settings(
            InMemorySlidingWindowStore(),
            RateLimitSettings(general_requests=1, notification_requests=1),
        )

        assert (await limiter.admit("ip", RateLimitScope.GENERAL)).allowed
        assert not (await limiter.admit("ip", RateLimitScope.GENERAL)).allowed
        assert (await limiter.admit("ip", RateLimitScope.NOTIFICATION)).allowed

    @pytest.mark.asyncio
    async def test_keys_are_namespaced_by_scope_prefix(self) -> None:
        store = AsyncMock(spec=AbstractRateLimitStore)
        store.consume.return_value = RateLimitResult(True, 5, 4, 0, None)
        limiter = RateLimiter.from_settings(store, RateLimitSettings(expensive_requests=5))

        await limiter.admit("anonymous", RateLimitScope.EXPENSIVE)

        store.consume.assert_awaited_once_with(
            "api:expensive:anonymous", limit=5, window_seconds=3600
        )

    @pytest.mark.asyncio
    async def test_store_timeout_fails_closed(self) -> None:
        limiter = RateLimiter(
            _SlowStore(),
            build_policies(RateLimitSettings()),
            timeout_seconds=0.05,
        )

        with pytest.raises(RateLimitUnavailableError) as exc_info:
            await limiter.admit("ip", RateLimitScope.GENERAL)

        assert exc_info.value.code == "rate_limit_unavailable"

    @pytest.mark.asyncio
    async def test_store_error_fails_closed(self) -> None:
        store = AsyncMock(spec=AbstractRateLimitStore)
        store.consume.side_effect = ConnectionError("redis down")
        limiter = RateLimiter.from_settings(store, RateLimitSettings())

        with pytest.raises(RateLimitUnavailableError):
            await limiter.admit("ip", RateLimitScope.GENERAL)

    @pytest.mark.asyncio
    async def test_health_check_reports_store_ping(self) -> None:
        store = AsyncMock(spec=AbstractRateLimitStore)
        store.ping.return_value = True
        limiter = RateLimiter.from_settings(store, RateLimitSettings())

        assert await limiter.health_check() is True

        store.ping.side_effect = ConnectionError("redis down")
        assert await limiter.health_check() is False

    @pytest.mark.asyncio
    async def test_health_check_times_out(self) -> None:
        class _HangingStore(_SlowStore):
            async def ping(self) -> bool:
                await asyncio.sleep(5)
                return True

        limiter = RateLimiter(
            _HangingStore(),
            build_policies(RateLimitSettings()),
            timeout_seconds=0.05,
        )

        assert await limiter.health_check() is False


def _app_with_limit(limiter: RateLimiter, **rate_limit_overrides) -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)
    app.state.settings = Settings(rate_limit=RateLimitSettings(**rate_limit_overrides))
    app.state.rate_limiter = limiter

    @app.get("/limited", dependencies=[Depends(rate_limit(RateLimitScope.GENERAL))])
    async def limited() -> dict:
        return {"ok": True}

    return app


class TestRateLimitDependency:

    def test_returns_429_with_rate_limit_headers(self) -> None:
        clock = Mock(return_value=1000.0)
        limiter = RateLimiter.from_settings(
            InMemorySlidingWindowStore(clock=clock),
            RateLimitSettings(general_requests=2, general_window_seconds=60),
        )
        client = TestClient(_app_with_limit(limiter))
        headers = {"X-Forwarded-For": "203.0.113.7"}

        assert client.get("/limited", headers=headers).status_code == 200
        assert client.get("/limited", headers=headers).status_code == 200

        response = client.get("/limited", headers=headers)

        assert response.status_code == 429
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1060"
        assert response.headers["Retry-After"] == "60"

    def test_rate_limit_headers_sent_without_retry_after(self) -> None:
        limiter = RateLimiter.from_settings(
            InMemorySlidingWindowStore(clock=Mock(return_value=1000.0)),
            RateLimitSettings(general_requests=1, general_window_seconds=60),
        )
        client = TestClient(_app_with_limit(limiter, include_headers=False))

        client.get("/limited")
        response = client.get("/limited")

        assert response.status_code == 429
        assert response.headers["X-RateLimit-Limit"] == "1"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1060"
        assert "Retry-After" not in response.headers

    def test_anonymous_callers_share_one_bucket(self) -> None:
        limiter = RateLimiter.from_settings(
            InMemorySlidingWindowStore(),
            RateLimitSettings(general_requests=1),
        )
        client = TestClient(_app_with_limit(limiter))

        assert client.get("/limited").status_code == 200
        assert client.get("/limited").status_code == 429
        assert client.get("/limited", headers={"X-Real-IP": "192.0.2.1"}).status_code == 200

    def test_store_failure_rejects_request(self) -> None:
        store = AsyncMock(spec=AbstractRateLimitStore)
        store.consume.side_effect = ConnectionError("redis down")
        limiter = RateLimiter.from_settings(store, RateLimitSettings())
        client = TestClient(_app_with_limit(limiter))

        response = client.get("/limited")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "rate_limit_unavailable"
        assert "redis" not in response.text

    def test_disabled_limiter_skips_store(self) -> None:
        store = AsyncMock(spec=AbstractRateLimitStore)
        limiter = RateLimiter.from_settings(store, RateLimitSettings())
        client = TestClient(_app_with_limit(limiter, enabled=False))

        assert client.get("/limited").status_code == 200
        store.consume.assert_not_awaited()
