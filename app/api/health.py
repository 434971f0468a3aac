"""Health and readiness endpoints.

/health (liveness) answers "is the process alive?" and reports the state
of each backing service without failing, since a restart would not fix a
degraded dependency.  /ready (readiness) answers "can this instance take
traffic?" and returns 503 while a configured database is unreachable.
Redis is never critical: the response cache fails soft.
"""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from app.db import engine as db
from app.db.redis import redis_pool

router = APIRouter(tags=["health"])


async def _redis_status() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except Exception:
        return "degraded"
    return "ok"


async def _database_status() -> str:
    if db.engine is None:
        return "not_configured"
    return "ok" if await db.ping_database() else "degraded"


@router.get("/health")
async def health() -> dict:
    """Liveness probe plus dependency status.

    Returns 200 even when degraded; the ``status`` field carries the
    actual health.
    """
    checks = {
        "database": await _database_status(),
        "redis": await _redis_status(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _database_status() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
