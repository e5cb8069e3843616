"""
Health check endpoints for production deployment.

Provides:
- /health - Basic liveness check (is the app running?)
- /ready - Readiness check (can the app reach PostgreSQL and Redis?)
- /metrics - Active game and sync outbox counts for monitoring
"""

import json
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_db_pool = None
_redis_client = None
_session_manager = None


def set_health_dependencies(
    db_pool=None,
    redis_client=None,
    session_manager=None,
):
    """Set dependencies for health checks."""
    global _db_pool, _redis_client, _session_manager
    _db_pool = db_pool
    _redis_client = redis_client
    _session_manager = session_manager


@router.get("/health")
async def health_check():
    """
    Basic liveness check.

    Always returns 200 while the process is alive.
    """
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check():
    """
    Readiness check.

    Returns 503 if a configured database or Redis is unreachable.
    """
    checks = {}
    overall_healthy = True

    if _db_pool is not None:
        try:
            async with _db_pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            checks["database"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            checks["database"] = {"status": "error", "message": str(e)}
            overall_healthy = False
    else:
        checks["database"] = {"status": "not_configured"}

    if _redis_client is not None:
        try:
            await _redis_client.ping()
            checks["redis"] = {"status": "ok"}
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = {"status": "error", "message": str(e)}
            overall_healthy = False
    else:
        checks["redis"] = {"status": "not_configured"}

    status_code = 200 if overall_healthy else 503
    return Response(
        content=json.dumps({
            "status": "ok" if overall_healthy else "degraded",
            "checks": checks,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }),
        status_code=status_code,
        media_type="application/json",
    )


@router.get("/metrics")
async def metrics():
    """Operational counts for dashboards and alerting."""
    metrics_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if _session_manager is not None:
        sessions = _session_manager.active_sessions()
        metrics_data.update({
            "connected_users": len(_session_manager.controllers),
            "games_in_progress": len(sessions),
            "games_unsynced": sum(1 for s in sessions if not s.synced),
        })

        outbox = _session_manager.outbox
        if outbox is not None:
            try:
                metrics_data["outbox_pending"] = len(await outbox.pending())
            except Exception as e:
                logger.warning(f"Failed to read outbox size: {e}")

    return metrics_data
