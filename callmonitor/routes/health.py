"""
Health check endpoints with call stream and database monitoring.
"""

import time

from fastapi import APIRouter, Depends

from callmonitor.config import settings
from callmonitor.infrastructure.observability.logging import log_health_check
from callmonitor.routes.dependencies import get_monitor_service
from callmonitor.services.monitor_service import CallMonitorService

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "cti-call-monitor"}


@router.get("/readyz")
async def readyz(service: CallMonitorService = Depends(get_monitor_service)):
    """
    Readiness check covering the call stream, the contact directory and,
    when configured, the database pool.
    """
    checks = {}
    overall_ok = True

    # 1) CTI call stream
    if service.cti_enabled:
        stream_ok = bool(service.stream and service.stream.connected)
        checks["cti_stream"] = {
            "ok": stream_ok,
            "reconnects": service.stream.reconnects if service.stream else 0,
        }
        overall_ok = overall_ok and stream_ok
    else:
        checks["cti_stream"] = {"ok": False, "error": "CTI credentials not configured"}
        overall_ok = False

    # 2) Contact directory (optional, fallback labels work without it)
    snapshot = service.directory.snapshot
    checks["directory"] = {
        "ok": service.directory.is_ready or not service.directory.is_configured,
        "configured": service.directory.is_configured,
        "entries": len(snapshot) if snapshot else 0,
        "last_error": service.directory.last_refresh_error,
    }
    overall_ok = overall_ok and checks["directory"]["ok"]

    # 3) Database pool (optional)
    if service.db_pool is not None:
        t0 = time.time()
        try:
            db_health = await service.db_pool.health_check()
            is_healthy = db_health.get("healthy", False)
            latency_ms = round((time.time() - t0) * 1000, 1)
            checks["database"] = {"ok": is_healthy, "latency_ms": latency_ms}
            if "pool_stats" in db_health:
                checks["database"].update(db_health["pool_stats"])
            if not is_healthy:
                checks["database"]["error"] = db_health.get("error", "Database unhealthy")
            log_health_check("database", is_healthy, latency_ms, db_health.get("error"))
        except Exception as e:
            checks["database"] = {
                "ok": False,
                "error": f"{type(e).__name__}: {e}",
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
        overall_ok = overall_ok and checks["database"]["ok"]

    checks["configuration"] = {
        "ok": settings.cti_configured(),
        "environment": settings.environment,
        "persistent_store": service.db_pool is not None,
    }

    return {
        "overall_ok": overall_ok,
        "checks": checks,
        "status": service.status(),
        "timestamp": time.time(),
    }
