"""Book lookup and search endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query

from bookmerge.api.dependencies import Client
from bookmerge.api.schemas import (
    BindingVariantResponse,
    BookResponse,
    EditionGroupResponse,
    LookupResponse,
    ProviderFailureResponse,
    SearchBooksResponse,
)
from bookmerge.core.models import MAX_PAGE_SIZE, EditionGroup, MergedBookRecord
from bookmerge.core.types import ResolutionStatus, SourceName
from bookmerge.resolution.base import ProviderResult

router = APIRouter(prefix="/books", tags=["books"])


def _convert_record(record: MergedBookRecord) -> BookResponse:
    return BookResponse.model_validate(
        {**record.model_dump(), "sources": sorted(record.sources)}
    )


def _convert_editions(editions: list[EditionGroup]) -> list[EditionGroupResponse]:
    return [
        EditionGroupResponse(
            title=group.title,
            authors=group.authors,
            year=group.year,
            edition_number=group.edition_number,
            bindings=[
                BindingVariantResponse(
                    binding=variant.binding,
                    records=[_convert_record(r) for r in variant.records],
                )
                for variant in group.bindings
            ],
        )
        for group in editions
    ]


def _convert_failures(
    failures: dict[SourceName, ProviderResult],
) -> list[ProviderFailureResponse]:
    return [
        ProviderFailureResponse(
            source=source,
            status=result.status,
            error_message=result.error_message,
            duration_ms=result.duration_ms,
        )
        for source, result in failures.items()
    ]


@router.get(
    "/{identifier}",
    response_model=LookupResponse,
    operation_id="lookupBook",
    summary="Look up a book",
    description="Merged, edition-grouped metadata for an ISBN or provider ID.",
    responses={404: {"description": "No provider knows the identifier"}},
)
async def lookup_book(identifier: str, client: Client) -> LookupResponse:
    """Look up a book across all providers."""
    result = await client.lookup(identifier)

    if result.status == ResolutionStatus.NOT_FOUND:
        raise HTTPException(
            status_code=404,
            detail=f"No provider returned a record for {result.identifier}",
        )

    return LookupResponse(
        identifier=result.identifier,
        status=result.status,
        editions=_convert_editions(result.editions),
        sources=sorted(result.sources),
        failures=_convert_failures(result.failures),
        duration_ms=result.duration_ms,
    )


@router.get(
    "",
    response_model=SearchBooksResponse,
    operation_id="searchBooks",
    summary="Search books",
    description="Search by title, author, publisher and/or subject with pagination.",
)
async def search_books(
    client: Client,
    title: str | None = Query(None, max_length=500, description="Title words"),
    author: str | None = Query(None, max_length=200, description="Author name"),
    publisher: str | None = Query(None, max_length=200, description="Publisher name"),
    subject: str | None = Query(None, max_length=200, description="Subject"),
    page: int = Query(1, ge=1, le=1000, description="Page number"),
    page_size: int = Query(
        10, ge=1, le=MAX_PAGE_SIZE, alias="pageSize", description="Results per page"
    ),
) -> SearchBooksResponse:
    """Search books across all providers."""
    result = await client.search(
        title,
        author,
        publisher=publisher,
        subject=subject,
        page=page,
        page_size=page_size,
    )

    return SearchBooksResponse(
        status=result.status,
        editions=_convert_editions(result.editions),
        sources=sorted(result.sources),
        failures=_convert_failures(result.failures),
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
        duration_ms=result.duration_ms,
    )
