"""Health check API routes."""

from fastapi import APIRouter
from pydantic import BaseModel, Field

from src.api.dependencies import GatewayDep, EngineDep
from src.shared.database import check_redis_health
from src.shared.feature_flags import is_redis_persistence_enabled

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(
        ...,
        description="Overall health status",
    )
    version: str = Field(
        default="1.0.0",
        description="API version",
    )


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str = Field(
        ...,
        description="Overall readiness status",
    )
    redis: str = Field(
        ...,
        description="Redis connection status ('disabled' when running memory-only)",
    )


class EngineHealthResponse(BaseModel):
    """Assessment engine health response."""

    status: str = Field(..., description="Engine status")
    sections: int = Field(..., description="Sections in the catalog")
    total_questions: int = Field(..., description="Questions across all sections")
    backend: str = Field(..., description="Session storage backend")
    redis_healthy: bool | None = Field(
        default=None,
        description="Redis reachability, null when Redis is disabled",
    )
    memory_sessions: int = Field(..., description="Sessions held in the memory fallback")


@router.get(
    "",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Simple health check endpoint.",
)
async def health_check() -> HealthResponse:
    """Basic health check.

    Returns:
        Health status
    """
    return HealthResponse(
        status="healthy",
        version="1.0.0",
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Check if the service is ready to accept traffic.",
)
async def readiness_check() -> ReadinessResponse:
    """Readiness check with dependency verification.

    An unreachable Redis is reported as degraded: sessions already held in
    memory keep working, every other turn fails with 503 until it returns.

    Returns:
        Readiness status with component details
    """
    if not is_redis_persistence_enabled():
        return ReadinessResponse(status="ready", redis="disabled")

    redis_healthy = await check_redis_health(max_retries=1)
    return ReadinessResponse(
        status="ready" if redis_healthy else "degraded",
        redis="healthy" if redis_healthy else "unhealthy",
    )


@router.get(
    "/engine",
    response_model=EngineHealthResponse,
    summary="Assessment engine health",
    description="Report catalog size and session storage status.",
)
async def engine_health(engine: EngineDep, gateway: GatewayDep) -> EngineHealthResponse:
    """Assessment engine health.

    Returns:
        Catalog and storage status
    """
    storage = await gateway.health()
    degraded = storage["redis_healthy"] is False

    return EngineHealthResponse(
        status="degraded" if degraded else "healthy",
        sections=len(engine.catalog),
        total_questions=engine.catalog.total_questions,
        backend=storage["backend"],
        redis_healthy=storage["redis_healthy"],
        memory_sessions=storage["memory_sessions"],
    )
