"""Health check router: liveness + readiness."""

import asyncio

import httpx
import structlog
from fastapi import APIRouter

from apps.api.core.config import settings

router = APIRouter(tags=["health"])
logger = structlog.get_logger()

LEDGER_PING_TIMEOUT_SECONDS = 2


@router.get("/health")
async def health_liveness():
    """Liveness probe. Returns 200 if the API process is running."""
    return {"status": "healthy", "service": "api"}


@router.get("/health/ready")
async def health_readiness():
    """Readiness probe. Checks that the Supabase REST endpoint answers."""
    status = {
        "status": "healthy",
        "services": {
            "api": "up",
            "ledger": "unknown",
        },
    }

    if not settings:
        status["services"]["ledger"] = "unconfigured"
        status["status"] = "degraded"
        return status

    try:
        async with httpx.AsyncClient(timeout=LEDGER_PING_TIMEOUT_SECONDS) as client:
            response = await asyncio.wait_for(
                client.get(
                    f"{settings.SUPABASE_URL}/rest/v1/",
                    headers={"apikey": settings.SUPABASE_ANON_KEY},
                ),
                timeout=LEDGER_PING_TIMEOUT_SECONDS,
            )
        if response.status_code < 500:
            status["services"]["ledger"] = "up"
        else:
            status["services"]["ledger"] = "down"
            status["status"] = "degraded"
    except asyncio.TimeoutError:
        status["services"]["ledger"] = "timeout"
        status["status"] = "degraded"
        logger.warning("ledger_health_timeout", timeout_s=LEDGER_PING_TIMEOUT_SECONDS)
    except httpx.HTTPError as e:
        status["services"]["ledger"] = "down"
        status["status"] = "degraded"
        logger.warning("ledger_health_failed", error=str(e))

    return status
