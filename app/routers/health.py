# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
# =============================================================================

import logging

from fastapi import APIRouter, Request
from pydantic import BaseModel

from app.dependencies import SettingsDep
from lib.utils import utc_now

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: str
    environment: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    storage: str
    timestamp: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep):
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=utc_now().isoformat(),
        environment=settings.ENVIRONMENT,
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Checks that the storage backend answers a trivial query.
    """
    try:
        request.app.state.repository.list_tenants()
        storage = "healthy"
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        storage = f"unhealthy: {str(e)[:50]}"

    return ReadinessResponse(
        status="ready" if storage == "healthy" else "degraded",
        storage=storage,
        timestamp=utc_now().isoformat(),
    )
