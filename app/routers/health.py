# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
# =============================================================================

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from app.dependencies import SupabaseDep
from lib.utils import utc_now_iso

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


class ChecksResponse(BaseModel):
    """Individual service checks."""
    database: str
    email: str
    teams: str
    feasibility: str
    plan_review: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    checks: ChecksResponse
    timestamp: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=utc_now_iso(),
        environment=settings.ENVIRONMENT,
        version="1.0.0",
    )


@router.get("/health/ready", response_model=ReadinessResponse)
def readiness_check(supabase: SupabaseDep):
    """
    Readiness check endpoint.

    Database connectivity decides readiness; delivery providers are only
    reported, since each of them is optional.
    """
    checks = ChecksResponse(
        database="healthy" if supabase.ping() else "unhealthy",
        email="simulate" if settings.email_simulate_mode else "configured",
        teams="configured" if settings.MS_TEAMS_WEBHOOK_URL else "not configured",
        feasibility="configured" if settings.PERPLEXITY_API_KEY else "not configured",
        plan_review="configured" if settings.OPENAI_API_KEY else "not configured",
    )

    return ReadinessResponse(
        status="ready" if checks.database == "healthy" else "degraded",
        checks=checks,
        timestamp=utc_now_iso(),
    )
