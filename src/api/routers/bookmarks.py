"""Bookmark CRUD endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from api.dependencies import get_async_session, get_current_user, get_session_factory
from models.user import User
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkListResponse,
    BookmarkResponse,
    BookmarkUpdate,
    MetadataPreviewResponse,
)
from services import bookmark_service
from services.metadata_enricher import normalize_url

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.post("/", response_model=BookmarkResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    session_factory: async_sessionmaker = Depends(get_session_factory),
) -> BookmarkResponse:
    """Create a new bookmark. Summary and favicon are derived from the URL."""
    bookmark = await bookmark_service.create_bookmark(
        db, current_user.id, data, session_factory,
    )
    return BookmarkResponse.model_validate(bookmark)


@router.get("/", response_model=BookmarkListResponse)
async def list_bookmarks(
    page: int = Query(default=1, ge=1, description="Page number (1-based)"),
    limit: int = Query(default=20, ge=1, le=100, description="Bookmarks per page"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """List bookmarks for the current user, newest first."""
    bookmarks, pagination = await bookmark_service.get_bookmarks(
        db, current_user.id, page=page, limit=limit,
    )
    return BookmarkListResponse(
        bookmarks=[BookmarkResponse.model_validate(b) for b in bookmarks],
        pagination=pagination,
    )


@router.get("/search", response_model=BookmarkListResponse)
async def search_bookmarks(
    q: str = Query(min_length=1, description="Search query (matches title, description, summary)"),  # noqa: E501
    page: int = Query(default=1, ge=1, description="Page number (1-based)"),
    limit: int = Query(default=20, ge=1, le=100, description="Bookmarks per page"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """Search the current user's bookmarks (case-insensitive)."""
    bookmarks, pagination = await bookmark_service.search_bookmarks(
        db, current_user.id, q, page=page, limit=limit,
    )
    return BookmarkListResponse(
        bookmarks=[BookmarkResponse.model_validate(b) for b in bookmarks],
        pagination=pagination,
    )


@router.get("/fetch-metadata", response_model=MetadataPreviewResponse)
async def fetch_metadata(
    url: str = Query(min_length=1, description="URL to preview"),
    current_user: User = Depends(get_current_user),  # noqa: ARG001
) -> MetadataPreviewResponse:
    """Preview the summary and favicon a bookmark for this URL would get."""
    metadata = await bookmark_service.fetch_url_metadata(url)
    return MetadataPreviewResponse(
        url=normalize_url(url),
        summary=metadata.summary,
        favicon=metadata.favicon,
    )


@router.get("/{bookmark_id}", response_model=BookmarkResponse)
async def get_bookmark(
    bookmark_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Get a single bookmark by ID."""
    bookmark = await bookmark_service.get_bookmark(db, current_user.id, bookmark_id)
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.api_route("/{bookmark_id}", methods=["PUT", "PATCH"], response_model=BookmarkResponse)
async def update_bookmark(
    bookmark_id: UUID,
    data: BookmarkUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkResponse:
    """Update a bookmark. Changing the URL refreshes its summary and favicon."""
    bookmark = await bookmark_service.update_bookmark(
        db, current_user.id, bookmark_id, data,
    )
    if bookmark is None:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return BookmarkResponse.model_validate(bookmark)


@router.delete("/{bookmark_id}", status_code=204)
async def delete_bookmark(
    bookmark_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> None:
    """Delete a bookmark."""
    deleted = await bookmark_service.delete_bookmark(db, current_user.id, bookmark_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Bookmark not found")
