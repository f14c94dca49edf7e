from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from doop_chat.infrastructure.db.session import ping_database

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready once Postgres and Redis answer and the fan-out listener is attached."""
    checks: dict[str, str] = {}

    try:
        await ping_database()
        checks["postgres"] = "ok"
    except Exception as exc:  # noqa: BLE001
        checks["postgres"] = f"error: {exc}"

    redis = getattr(request.app.state, "redis", None)
    try:
        if redis is None:
            raise RuntimeError("not connected")
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:  # noqa: BLE001
        checks["redis"] = f"error: {exc}"

    subscriber = getattr(request.app.state, "pubsub_subscriber", None)
    checks["fanout"] = "ok" if subscriber is not None and subscriber.running else "error: not listening"

    ready = all(v == "ok" for v in checks.values())
    if not ready:
        logger.warning("Readiness check failed: %s", checks)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "unavailable", "checks": checks},
    )
