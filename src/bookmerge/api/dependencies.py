"""FastAPI dependency injection."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from bookmerge.client import BookmergeClient


async def get_client(request: Request) -> BookmergeClient:
    """The client started by the application lifespan."""
    return request.app.state.client


Client = Annotated[BookmergeClient, Depends(get_client)]
