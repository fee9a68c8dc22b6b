"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before anything imports ``app.core.config`` so
the global settings never point at real infrastructure.
"""

import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("EMAIL_PROVIDER", "log")
os.environ.setdefault("WEBHOOK_SIGNING_SECRET", "whsec_test_secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable, Iterator

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.core.app_factory import create_app
from app.core.config import (
    DatabaseSettings,
    EmailSettings,
    RateLimitSettings,
    Settings,
    WebhookSettings,
)
from app.db.session import DatabaseSessionManager
from app.services.enrollment_service import EnrollmentSequencer

TEST_WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    """Build isolated settings: temp SQLite file, in-memory limiter, log mailer."""

    def _make(
        *,
        rate_limit: dict[str, Any] | None = None,
        email: dict[str, Any] | None = None,
        webhook: dict[str, Any] | None = None,
    ) -> Settings:
        return Settings(
            database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'waitlist.db'}"),
            rate_limit=RateLimitSettings(**{"backend": "memory", **(rate_limit or {})}),
            email=EmailSettings(**{"provider": "log", **(email or {})}),
            webhook=WebhookSettings(
                **{"signing_secret": TEST_WEBHOOK_SECRET, **(webhook or {})}
            ),
        )

    return _make


@pytest.fixture
def client(make_settings) -> Iterator[TestClient]:
    """Test client with the lifespan running (tables created, services wired)."""
    with TestClient(create_app(make_settings())) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def db(tmp_path):
    """Fresh database with schema and a seeded sequence row."""
    manager = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await manager.create_schema()
    await EnrollmentSequencer(manager).ensure_sequence()
    yield manager
    await manager.close()
