"""Health check endpoints."""

from __future__ import annotations

import asyncio
from typing import Literal

from fastapi import APIRouter, Query, Request

from bookmerge import __version__
from bookmerge.api.schemas import HealthResponse, RateLimitResponse

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
    description="Check the health status of the API and its providers.",
)
async def health_check(
    request: Request,
    live: bool = Query(False, description="Send a live request to each provider"),
) -> HealthResponse:
    """Check API health status."""
    client = getattr(request.app.state, "client", None)
    if client is None:
        return HealthResponse(status="unhealthy", version=__version__, services={})

    registry = client.registry
    services: dict[str, Literal["up", "down", "unknown"]] = {}
    providers = registry.providers

    if live and providers:
        checks = await asyncio.gather(*(p.health_check() for p in providers))
        for provider, healthy in zip(providers, checks):
            services[provider.source_name] = "up" if healthy else "down"
    else:
        for provider in providers:
            services[provider.source_name] = "unknown"

    overall_status: Literal["healthy", "degraded", "unhealthy"] = "healthy"
    if not providers or (services and all(s == "down" for s in services.values())):
        overall_status = "unhealthy"
    elif any(s == "down" for s in services.values()):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=__version__,
        services=services,
        rate_limits={
            source: RateLimitResponse.model_validate(status.model_dump())
            for source, status in registry.rate_limit_status().items()
        },
    )


@router.get(
    "/ready",
    operation_id="getReady",
    summary="Readiness check",
    description="Check if the API is ready to serve traffic.",
)
async def readiness_check(request: Request) -> dict[str, bool]:
    """Check if API is ready to serve traffic."""
    client = getattr(request.app.state, "client", None)
    ready = client is not None and bool(client.registry.providers)
    return {"ready": ready}
