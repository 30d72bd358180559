"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from bizdesk.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Lightweight health check (no Redis/upstream check)."""
    return {
        "status": "ok",
        "service": "BizDesk",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": settings.environment,
        "mode": settings.mode,
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness check including the Redis cache.

    In mock mode the cache lives in memory, so there is nothing to probe.
    """
    checks = {"service": "ok", "cache": "unknown"}
    overall_healthy = True

    if settings.is_mock:
        checks["cache"] = "memory"
    else:
        try:
            from bizdesk.utils.cache import get_redis

            redis_client = await get_redis()
            await redis_client.ping()
            checks["cache"] = "ok"
        except Exception as e:
            checks["cache"] = f"error: {str(e)[:100]}"
            overall_healthy = False

    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if overall_healthy else "not_ready", "checks": checks},
    )
