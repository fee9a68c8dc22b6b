from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """Readiness check: the durable store and the rate limit store must answer.

    Returns:
        JSONResponse: 200 with ``{"status": "ok", ...}`` or 503 with
            ``{"status": "unavailable", ...}``; each store is reported as
            ``"ok"`` or ``"unavailable"``.
    """

    checks = {
        "database": await request.app.state.db.health_check(),
        "rate_limit": await request.app.state.rate_limiter.health_check(),
    }
    body = {name: "ok" if healthy else "unavailable" for name, healthy in checks.items()}

    if all(checks.values()):
        return JSONResponse({"status": "ok", **body})
    return JSONResponse({"status": "unavailable", **body}, status_code=503)
