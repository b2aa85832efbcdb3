"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bookmerge import __version__
from bookmerge.api.routes import books_router, cache_router, health_router
from bookmerge.api.schemas import APIError, ErrorDetail
from bookmerge.client import BookmergeClient
from bookmerge.config import BookmergeSettings, get_settings
from bookmerge.core.exceptions import BookmergeError, ValidationError
from bookmerge.resolution.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def _error_response(
    request: Request, status_code: int, code: str, exc: BookmergeError
) -> JSONResponse:
    body = APIError(error=ErrorDetail.from_error(code, exc), path=request.url.path)
    return JSONResponse(status_code=status_code, content=body.to_json())


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(request, 400, "invalid_query", exc)


async def _bookmerge_error_handler(request: Request, exc: BookmergeError) -> JSONResponse:
    logger.warning(f"Unhandled bookmerge error on {request.url.path}: {exc}")
    return _error_response(request, 502, "upstream_error", exc)


def create_app(
    settings: BookmergeSettings | None = None,
    *,
    registry: ProviderRegistry | None = None,
    title: str = "Bookmerge API",
    description: str = "Merged book metadata from multiple providers",
    cors_origins: list[str] | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings (loaded from environment if omitted)
        registry: Pre-built provider registry, mainly for tests
        title: API title for OpenAPI docs
        description: API description for OpenAPI docs
        cors_origins: List of allowed CORS origins

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app_settings = settings or get_settings()
        logging.basicConfig(level=app_settings.log_level.upper())

        logger.info("Initializing provider registry...")
        async with BookmergeClient(app_settings, registry=registry) as client:
            app.state.client = client
            logger.info("Application startup complete")

            yield

            logger.info("Shutting down application...")
        app.state.client = None
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=title,
        description=description,
        version=__version__,
        lifespan=lifespan,
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    if cors_origins is None:
        cors_origins = ["http://localhost:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(BookmergeError, _bookmerge_error_handler)

    # Register routes
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(books_router, prefix="/api/v1")
    app.include_router(cache_router, prefix="/api/v1")

    return app
