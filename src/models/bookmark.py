"""Bookmark model for storing user bookmarks."""
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from models.user import User


class Bookmark(Base, UUIDMixin, TimestampMixin):
    """
    Bookmark model - stores a user-supplied URL with derived metadata.

    summary and favicon are owned by the metadata enricher. Empty strings are a
    valid terminal state: a bookmark exists whether or not enrichment succeeded.
    """

    __tablename__ = "bookmarks"

    # id provided by UUIDMixin
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)  # Stored as given, not normalized
    # Length is enforced by MAX_TITLE_LENGTH validation, not the column
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    favicon: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")

    user: Mapped["User"] = relationship(back_populates="bookmarks")
