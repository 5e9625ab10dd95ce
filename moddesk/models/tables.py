"""SQLAlchemy ORM table definitions."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from moddesk.models.database import Base


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime (SQLite stores no offset)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_post_id() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """A platform account that owns posts."""
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    email: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    # Relationships
    posts: Mapped[list["Post"]] = relationship(back_populates="owner")


class Category(Base):
    """A node of the two-level topic hierarchy.

    Level 1 rows are top-level topics and never have a parent. Level 2 rows
    are sub-topics whose parent is a level 1 row.
    """
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(
        Enum("active", "inactive", name="category_status"),
        default="active",
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    parent_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True, default=None, index=True
    )

    # Relationships
    parent: Mapped["Category | None"] = relationship(
        back_populates="children", remote_side="Category.id"
    )
    children: Mapped[list["Category"]] = relationship(back_populates="parent")
    posts: Mapped[list["Post"]] = relationship(back_populates="category")


class Post(Base):
    """A submitted piece of content awaiting or past moderation."""
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_post_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    # Stored as plain text; the closed set lives in services.validation.POST_STATUSES
    status: Mapped[str] = mapped_column(String(20), default="pending", index=True)
    user_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("accounts.id"), nullable=True)
    category_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, default=None)
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True, default=None)
    rejection_category: Mapped[str | None] = mapped_column(String(50), nullable=True, default=None)
    urgency: Mapped[str | None] = mapped_column(String(10), nullable=True, default=None)

    # Relationships
    owner: Mapped[Account | None] = relationship(back_populates="posts")
    category: Mapped[Category | None] = relationship(back_populates="posts")
