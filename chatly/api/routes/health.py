"""Health check endpoints."""

from datetime import datetime
from typing import Any

import structlog
from fastapi import APIRouter

from chatly.api.dependencies import FanoutDep, LLMDep, StorageDep
from chatly.core.config import settings

logger = structlog.get_logger()

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
@router.get("/")
async def health_check() -> dict[str, Any]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.app_env,
    }


@router.get("/ready")
async def readiness_check(
    storage: StorageDep,
    fanout: FanoutDep,
    llm: LLMDep,
) -> dict[str, Any]:
    """Readiness check - verifies the store is reachable."""
    storage_ok = False
    try:
        storage_ok = await storage.health_check()
    except Exception as e:
        logger.error("Storage readiness check failed", error=str(e))

    return {
        "status": "ready" if storage_ok else "degraded",
        "timestamp": datetime.utcnow().isoformat(),
        "checks": {
            "storage": storage_ok,
            "remote_model": llm.is_configured,
        },
        "connections": fanout.registry.count(),
    }


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    """Liveness check - basic endpoint for kubernetes liveness checks."""
    return {"status": "alive"}
