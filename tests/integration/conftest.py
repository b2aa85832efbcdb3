"""Integration test fixtures for the HTTP API."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from bookmerge.api.app import create_app
from bookmerge.config import BookmergeSettings
from bookmerge.core.types import SourceName
from bookmerge.resolution.registry import ProviderRegistry


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def api_registry(stub_provider, isbndb_record, google_record) -> ProviderRegistry:
    """Registry whose providers both know 9780143127550."""
    registry = ProviderRegistry()
    registry.register(stub_provider(SourceName.ISBNDB, records=[isbndb_record], total_items=25))
    registry.register(stub_provider(SourceName.GOOGLE_BOOKS, records=[google_record]))
    return registry


@pytest.fixture
def empty_registry(stub_provider) -> ProviderRegistry:
    """Registry whose providers know nothing."""
    registry = ProviderRegistry()
    registry.register(stub_provider(SourceName.ISBNDB))
    registry.register(stub_provider(SourceName.GOOGLE_BOOKS))
    return registry


@asynccontextmanager
async def _started(app: FastAPI) -> AsyncIterator[AsyncClient]:
    # ASGITransport does not send lifespan events, so run the lifespan here.
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client


@pytest.fixture
async def test_client(
    test_settings: BookmergeSettings, api_registry: ProviderRegistry
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client against an app backed by in-memory providers."""
    async with _started(create_app(test_settings, registry=api_registry)) as client:
        yield client


@pytest.fixture
async def empty_client(
    test_settings: BookmergeSettings, empty_registry: ProviderRegistry
) -> AsyncIterator[AsyncClient]:
    async with _started(create_app(test_settings, registry=empty_registry)) as client:
        yield client
