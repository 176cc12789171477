# app/routes/health.py
"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter

from app.config import settings
from app.db.pool import db_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "crm-core"}


@router.get("/readyz")
async def readyz():
    """Readiness check: database pool plus delivery configuration."""
    checks = {}

    t0 = time.time()
    db_health = await db_health_check()
    is_healthy = db_health.get("healthy", False)
    checks["database"] = {
        "ok": is_healthy,
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }
    if "pool_stats" in db_health:
        checks["database"]["pool_stats"] = db_health["pool_stats"]
    if not is_healthy:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")

    # The scheduler cannot deliver without a sender, but the API still serves
    checks["campaign_sender"] = {
        "ok": settings.campaign_sender_configured(),
        "environment": settings.environment,
    }

    return {"overall_ok": is_healthy, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
