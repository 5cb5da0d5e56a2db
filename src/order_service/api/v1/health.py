"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncEngine

from order_service import __version__
from order_service.api.deps import get_engine, get_fetcher
from order_service.config import Settings, get_settings
from order_service.infrastructure.database.connection import check_database
from order_service.services import ExternalOrderFetcher

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information.
    This endpoint is used by load balancers and orchestrators
    to determine if the service is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "database": "configured",
            "idosell_api": "configured" if settings.is_idosell_configured else "not configured",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    engine: AsyncEngine = Depends(get_engine),
    fetcher: ExternalOrderFetcher = Depends(get_fetcher),
) -> ReadinessResponse:
    """
    Readiness check endpoint.

    The service is ready when the database answers. The IdoSell client is
    reported but does not gate readiness: stored orders can still be served
    without it.
    """
    checks = {
        "database": await check_database(engine),
        "idosell_api": fetcher.is_ready(),
    }
    return ReadinessResponse(ready=checks["database"], checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.

    Simple endpoint that returns 200 if the service is running.
    """
    return {"status": "alive"}
