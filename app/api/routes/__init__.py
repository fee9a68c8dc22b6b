from __future__ import annotations

from app.api.routes.enroll import router as enroll_router
from app.api.routes.health import router as health_router
from app.api.routes.webhooks import router as webhooks_router

__all__ = ["enroll_router", "health_router", "webhooks_router"]
