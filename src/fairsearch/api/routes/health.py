"""Health check endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Request

from fairsearch import __version__
from fairsearch.api.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
    description="Check the health status of the API and its dependencies.",
)
async def health_check(request: Request) -> HealthResponse:
    """Check API health status."""
    services: dict[str, Literal["up", "down", "unknown"]] = {}
    overall_status: Literal["healthy", "degraded", "unhealthy"] = "healthy"

    service = getattr(request.app.state, "search_service", None)
    if service is None:
        services["index"] = "unknown"
        services["coordinator"] = "unknown"
        overall_status = "unhealthy"
    else:
        try:
            services["index"] = "up" if await service.health() else "down"
        except Exception:
            services["index"] = "down"
        if services["index"] == "down":
            overall_status = "unhealthy"

        services["coordinator"] = "up" if service.coordinator.is_running else "down"
        if services["coordinator"] == "down" and overall_status == "healthy":
            overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=__version__,
        services=services,
    )


@router.get(
    "/ready",
    operation_id="getReady",
    summary="Readiness check",
    description="Check if the API is ready to serve traffic.",
)
async def readiness_check(request: Request) -> dict[str, bool]:
    """Check if API is ready to serve traffic."""
    service = getattr(request.app.state, "search_service", None)
    return {"ready": service is not None and service.is_ready}
