"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
the lifespan that owns shared resources: database engine, rate limit store
and delivery client.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.notifications.factory import create_delivery_client
from app.adapters.rate_limit.factory import create_rate_limit_store
from app.api.routes import enroll_router, health_router, webhooks_router
from app.core.config import Settings, settings as default_settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.db.session import DatabaseSessionManager
from app.services.enrollment_service import EnrollmentSequencer
from app.services.event_dispatcher import EventDispatcher
from app.services.notification_service import NotificationTrigger
from app.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def _build_lifespan(cfg: Settings):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        db = DatabaseSessionManager(
            cfg.database.url,
            pool_size=cfg.database.pool_size,
            max_overflow=cfg.database.max_overflow,
            echo=cfg.database.echo,
        )
        sequencer = EnrollmentSequencer(db)
        if cfg.database.create_schema:
            await db.create_schema()
        await sequencer.ensure_sequence()

        rate_limiter = RateLimiter.from_settings(
            create_rate_limit_store(cfg.rate_limit, cfg.redis),
            cfg.rate_limit,
        )
        delivery_client = create_delivery_client(cfg.email)

        app.state.db = db
        app.state.sequencer = sequencer
        app.state.dispatcher = EventDispatcher(db)
        app.state.rate_limiter = rate_limiter
        app.state.notifier = NotificationTrigger(
            delivery_client,
            project_name=cfg.app.project_name,
            timeout_seconds=cfg.email.timeout_seconds,
        )

        logger.info(
            "app.started",
            extra={
                "app_env": cfg.app_env,
                "rate_limit_backend": cfg.rate_limit.backend,
                "email_provider": cfg.email.provider,
            },
        )
        try:
            yield
        finally:
            await delivery_client.close()
            await rate_limiter.close()
            await db.close()
            logger.info("app.stopped")

    return lifespan


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to use; defaults to the environment-loaded ones.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="Waitlist Intake API",
        description=(
            "Waitlist enrollment with gapless positions and signed payment "
            "processor webhooks, behind a shared-store sliding-window rate limiter."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=_build_lifespan(cfg),
    )
    app.state.settings = cfg

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(enroll_router)
    app.include_router(webhooks_router)
    app.include_router(health_router)

    # OpenAPI customizations (signature header, tags)
    apply_openapi_customizations(app, signature_header=cfg.webhook.signature_header)

    return app
