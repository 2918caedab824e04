"""Service layer for bookmark CRUD operations and metadata enrichment."""
import asyncio
import logging
import math
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import get_settings
from models.bookmark import Bookmark
from schemas.bookmark import BookmarkCreate, BookmarkUpdate, Pagination
from services.metadata_enricher import UrlMetadata, enrich_url

logger = logging.getLogger(__name__)

# Background tasks set to prevent garbage collection
_background_tasks: set[asyncio.Task] = set()


def escape_ilike(value: str) -> str:
    r"""
    Escape special ILIKE characters for safe use in LIKE/ILIKE patterns.

    LIKE/ILIKE treats these characters specially:
    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character

    This function escapes them so they match literally.
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    """Build page-based pagination details."""
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if limit else 0,
    )


async def fetch_url_metadata(url: str) -> UrlMetadata:
    """Run the enricher with the configured service URL and timeout."""
    settings = get_settings()
    return await enrich_url(
        url,
        timeout=settings.summary_timeout,
        base_url=settings.summary_service_url,
    )


async def refresh_bookmark_metadata(
    session_factory: async_sessionmaker,
    bookmark_id: UUID,
    url: str,
) -> bool:
    """
    Re-run enrichment for a saved bookmark and write the result by id.

    Opens its own session because it runs after the request session is gone.

    Returns:
        True if the bookmark was updated, False if it no longer exists.
    """
    logger.info("Starting metadata update for bookmark %s (%s)", bookmark_id, url)
    metadata = await fetch_url_metadata(url)

    async with session_factory() as session:
        result = await session.execute(
            update(Bookmark)
            .where(Bookmark.id == bookmark_id)
            .values(summary=metadata.summary, favicon=metadata.favicon),
        )
        await session.commit()

    if result.rowcount == 0:
        logger.warning("Bookmark %s disappeared before its metadata update", bookmark_id)
        return False
    logger.info("Updated metadata for bookmark %s", bookmark_id)
    return True


async def _refresh_in_background(
    session_factory: async_sessionmaker,
    bookmark_id: UUID,
    url: str,
) -> None:
    """Background metadata refresh (fire-and-forget helper)."""
    try:
        await refresh_bookmark_metadata(session_factory, bookmark_id, url)
    except Exception:
        # Log but don't fail - the bookmark already exists with empty metadata
        logger.exception("Background metadata update failed for bookmark %s", bookmark_id)


def schedule_metadata_refresh(
    session_factory: async_sessionmaker,
    bookmark_id: UUID,
    url: str,
) -> asyncio.Task:
    """Schedule exactly one background metadata refresh for a bookmark."""
    task = asyncio.create_task(_refresh_in_background(session_factory, bookmark_id, url))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


async def wait_for_background_tasks(timeout: float | None = None) -> None:
    """
    Wait for pending background metadata refreshes.

    Returns after `timeout` seconds even if some are still running; those are
    left for cancel_background_tasks.
    """
    if _background_tasks:
        await asyncio.wait(list(_background_tasks), timeout=timeout)


def cancel_background_tasks() -> None:
    """Cancel pending background metadata refreshes (application shutdown)."""
    for task in list(_background_tasks):
        if not task.done():
            task.cancel()
    _background_tasks.clear()


async def create_bookmark(
    db: AsyncSession,
    user_id: UUID,
    data: BookmarkCreate,
    session_factory: async_sessionmaker,
) -> Bookmark:
    """
    Create a new bookmark for a user with automatic metadata enrichment.

    Flow:
    1. Enrich the URL (summary + favicon) before the first write
    2. Save the bookmark with the enrichment result
    3. If enrichment raised, save with empty metadata, commit, and schedule one
       background refresh that writes the metadata later

    Enrichment is best-effort - failures never block bookmark creation.
    Persistence errors propagate to the caller.

    Args:
        db: Database session.
        user_id: User ID to create the bookmark for.
        data: Bookmark creation data.
        session_factory: Factory used by the background refresh for its own session.

    Returns:
        The created bookmark.
    """
    needs_refresh = False
    try:
        metadata = await fetch_url_metadata(data.url)
    except Exception:
        logger.exception("Metadata enrichment failed for %s", data.url)
        metadata = UrlMetadata(summary="", favicon="")
        needs_refresh = True

    bookmark = Bookmark(
        user_id=user_id,
        url=data.url,
        title=data.title,
        description=data.description,
        summary=metadata.summary,
        favicon=metadata.favicon,
    )
    db.add(bookmark)
    await db.flush()
    await db.refresh(bookmark)

    if needs_refresh:
        # The background session must be able to see the row
        await db.commit()
        schedule_metadata_refresh(session_factory, bookmark.id, data.url)

    logger.info("Created bookmark %s for user %s", bookmark.id, user_id)
    return bookmark


async def get_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> Bookmark | None:
    """Get a bookmark by ID, scoped to user. Returns None if not found or wrong user."""
    result = await db.execute(
        select(Bookmark).where(
            Bookmark.id == bookmark_id,
            Bookmark.user_id == user_id,
        ),
    )
    return result.scalar_one_or_none()


async def get_bookmarks(
    db: AsyncSession,
    user_id: UUID,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Bookmark], Pagination]:
    """Get a page of bookmarks for a user, newest first."""
    offset = (page - 1) * limit
    result = await db.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user_id)
        .order_by(Bookmark.created_at.desc(), Bookmark.id)
        .offset(offset)
        .limit(limit),
    )
    total = await db.scalar(
        select(func.count()).select_from(Bookmark).where(Bookmark.user_id == user_id),
    )
    return list(result.scalars().all()), build_pagination(page, limit, total or 0)


async def search_bookmarks(
    db: AsyncSession,
    user_id: UUID,
    query: str,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[Bookmark], Pagination]:
    """
    Search a user's bookmarks with pagination.

    Case-insensitive substring match on title, description, and summary.
    """
    pattern = f"%{escape_ilike(query)}%"
    condition = or_(
        Bookmark.title.ilike(pattern, escape="\\"),
        Bookmark.description.ilike(pattern, escape="\\"),
        Bookmark.summary.ilike(pattern, escape="\\"),
    )
    offset = (page - 1) * limit
    result = await db.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user_id, condition)
        .order_by(Bookmark.created_at.desc(), Bookmark.id)
        .offset(offset)
        .limit(limit),
    )
    total = await db.scalar(
        select(func.count())
        .select_from(Bookmark)
        .where(Bookmark.user_id == user_id, condition),
    )
    return list(result.scalars().all()), build_pagination(page, limit, total or 0)


async def update_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
    data: BookmarkUpdate,
) -> Bookmark | None:
    """
    Update a bookmark. Returns None if not found or wrong user.

    A new URL re-runs enrichment and overwrites summary and favicon. If
    enrichment raises, the other fields are still updated and the existing
    metadata is left untouched.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    # title and url are required columns; an explicit null means "leave as is"
    for field in ("title", "url"):
        if field in update_data and update_data[field] is None:
            del update_data[field]

    if "url" in update_data:
        try:
            metadata = await fetch_url_metadata(update_data["url"])
        except Exception:
            logger.exception(
                "Metadata enrichment failed for %s, keeping existing metadata",
                update_data["url"],
            )
        else:
            update_data["summary"] = metadata.summary
            update_data["favicon"] = metadata.favicon

    for field, value in update_data.items():
        setattr(bookmark, field, value)

    await db.flush()
    await db.refresh(bookmark)
    return bookmark


async def delete_bookmark(
    db: AsyncSession,
    user_id: UUID,
    bookmark_id: UUID,
) -> bool:
    """
    Delete a bookmark. Returns True if deleted, False if not found.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        return False

    await db.delete(bookmark)
    await db.flush()
    return True
