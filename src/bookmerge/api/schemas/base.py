"""Shared base classes for API schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from bookmerge.core.exceptions import BookmergeError


def to_camel_case(string: str) -> str:
    """Convert snake_case to camelCase."""
    head, *rest = string.split("_")
    return head + "".join(word.capitalize() for word in rest)


class APIBaseSchema(BaseModel):
    """
    Base schema for all API models.

    Fields are snake_case in Python and camelCase on the wire; either
    spelling is accepted on input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel_case,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_json(self) -> dict[str, Any]:
        """JSON-ready dict using the camelCase aliases."""
        return self.model_dump(mode="json", by_alias=True)


class PagedResponse(APIBaseSchema):
    """Pagination fields shared by list responses."""

    total: int = Field(..., ge=0, description="Total matches reported by providers")
    page: int = Field(..., ge=1, description="1-based page number")
    page_size: int = Field(..., ge=1, description="Requested page size")
    has_more: bool = Field(..., description="Whether a further page exists")


class ErrorDetail(APIBaseSchema):
    """Machine-readable error code plus the message of the raised error."""

    code: str
    message: str
    details: dict[str, Any] | None = None

    @classmethod
    def from_error(cls, code: str, error: BookmergeError) -> ErrorDetail:
        return cls(code=code, message=error.message, details=error.details or None)


class APIError(APIBaseSchema):
    """Error body returned for handled bookmerge errors."""

    error: ErrorDetail
    path: str | None = Field(default=None, description="Request path that failed")
