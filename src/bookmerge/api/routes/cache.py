"""Cache analytics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Query

from bookmerge.api.dependencies import Client
from bookmerge.api.schemas import CacheAnalyticsResponse

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get(
    "/analytics",
    response_model=CacheAnalyticsResponse,
    operation_id="getCacheAnalytics",
    summary="Cache analytics",
    description="Hit/miss counters and the most frequently read keys.",
)
async def cache_analytics(
    client: Client,
    limit: int | None = Query(None, ge=1, le=100, description="Number of hot keys"),
) -> CacheAnalyticsResponse:
    """Read-only snapshot of cache statistics across providers."""
    analytics = client.cache_analytics(limit)
    return CacheAnalyticsResponse.model_validate(analytics.model_dump())
