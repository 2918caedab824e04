"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import get_settings


def validate_url_not_blank(url: str) -> str:
    """
    Trim a user-supplied URL and reject blank values.

    URLs are otherwise stored exactly as given; normalization (adding a scheme)
    only happens when the URL is enriched.
    """
    trimmed = url.strip()
    if not trimmed:
        raise ValueError("URL cannot be empty")
    return trimmed


def validate_title(title: str) -> str:
    """Validate that a title is present and within the maximum length."""
    settings = get_settings()
    trimmed = title.strip()
    if not trimmed:
        raise ValueError("Title cannot be empty")
    if len(trimmed) > settings.max_title_length:
        raise ValueError(
            f"Title exceeds maximum length of {settings.max_title_length:,} characters "
            f"(got {len(trimmed):,} characters).",
        )
    return trimmed


def validate_description_length(description: str | None) -> str | None:
    """Validate that description doesn't exceed maximum length."""
    settings = get_settings()
    if description is not None and len(description) > settings.max_description_length:
        max_len = settings.max_description_length
        raise ValueError(
            f"Description exceeds maximum length of {max_len:,} characters "
            f"(got {len(description):,} characters).",
        )
    return description


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark."""

    # Plain string: 'example.com/page' is accepted and enriched as https://example.com/page
    url: str
    title: str
    description: str | None = None

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        """Reject blank URLs."""
        return validate_url_not_blank(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        """Validate title."""
        return validate_title(v)

    @field_validator("description")
    @classmethod
    def check_description_length(cls, v: str | None) -> str | None:
        """Validate description length."""
        return validate_description_length(v)


class BookmarkUpdate(BaseModel):
    """
    Schema for updating a bookmark.

    Only fields that are set are applied. Changing the URL re-runs enrichment;
    summary and favicon cannot be set directly.
    """

    url: str | None = None
    title: str | None = None
    description: str | None = None

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str | None) -> str | None:
        """Reject blank URLs."""
        if v is None:
            return v
        return validate_url_not_blank(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str | None) -> str | None:
        """Validate title."""
        if v is None:
            return v
        return validate_title(v)

    @field_validator("description")
    @classmethod
    def check_description_length(cls, v: str | None) -> str | None:
        """Validate description length."""
        return validate_description_length(v)


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    url: str
    title: str
    description: str | None
    summary: str
    favicon: str
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    """Page-based pagination details."""

    page: int
    limit: int
    total: int
    pages: int


class BookmarkListResponse(BaseModel):
    """Schema for paginated bookmark list responses."""

    bookmarks: list[BookmarkResponse]
    pagination: Pagination


class MetadataPreviewResponse(BaseModel):
    """Enrichment result for a URL, without saving a bookmark."""

    url: str = Field(description="The normalized URL that was enriched")
    summary: str
    favicon: str
