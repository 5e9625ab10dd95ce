"""Admin search dispatcher.

Takes a search type tag and a free-text query, picks the matching
predicate, runs it against the post table and returns one page of results
plus the full match count. Every parameter problem is detected before the
database is touched.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from moddesk.errors import (
    InvalidDateError,
    InvalidStatusError,
    InvalidTypeError,
    MissingParameterError,
)
from moddesk.models.schemas import OwnerData, PostData
from moddesk.models.tables import Account, Post
from moddesk.services.validation import POST_STATUSES, parse_date

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_OFFSET = 2**63 - 1


class SearchType(str, Enum):
    """The four mutually exclusive search modes."""

    POST_TITLE = "post_title"
    USERNAME = "username"
    STATUS = "status"
    DATE = "date"


@dataclass
class SearchResult:
    """One page of matching posts and the total number of matches."""

    posts: list[Post]
    page: int
    limit: int
    total: int


def serialize_post(post: Post) -> PostData:
    """Convert a Post row, with its owner, into the response model."""
    data = PostData.model_validate(post)
    if post.owner is not None:
        data.user = OwnerData.model_validate(post.owner)
    return data


def page_offset(page: int, limit: int) -> int:
    """Rows to skip for a 1-based page, capped at SQLite's INTEGER range."""
    return min((page - 1) * limit, MAX_OFFSET)


def day_bounds(day) -> tuple[datetime, datetime]:
    """Return [start, end) covering a whole calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


class SearchDispatcher:
    """Dispatches admin post searches to a predicate per search type.

    Args:
        db_session: SQLAlchemy database session.
    """

    def __init__(self, db_session: Session) -> None:
        self._db = db_session

    def search(
        self,
        query: Optional[str],
        search_type: Optional[str],
        page: int = DEFAULT_PAGE,
        limit: int = DEFAULT_LIMIT,
    ) -> SearchResult:
        """Search posts by title, owner username, status or creation date.

        Args:
            query: Free-text query; its meaning depends on the search type.
            search_type: One of post_title, username, status, date.
            page: 1-based page number.
            limit: Page size.

        Returns:
            SearchResult with the requested page, newest first.

        Raises:
            MissingParameterError: query or type is absent.
            InvalidTypeError: type is not a recognized search mode.
            InvalidStatusError: status query outside the status enum.
            InvalidDateError: date query is not a calendar date.
        """
        if query is None or not query.strip() or not search_type:
            raise MissingParameterError("Search query and type are required")

        try:
            mode = SearchType(search_type)
        except ValueError:
            raise InvalidTypeError(
                f"Invalid search type '{search_type}'. Must be one of: "
                + ", ".join(t.value for t in SearchType)
            )

        text = query.strip()
        base = self._build_query(mode, text)

        total = base.order_by(None).count()
        posts = (
            base.options(joinedload(Post.owner))
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(page_offset(page, limit))
            .limit(limit)
            .all()
        )
        logger.info(
            f"Admin search type={mode.value} page={page} limit={limit}: "
            f"{len(posts)} of {total} matches"
        )
        return SearchResult(posts=posts, page=page, limit=limit, total=total)

    def _build_query(self, mode: SearchType, text: str) -> Query:
        """Build the filtered (unpaginated) query for a search mode."""
        if mode is SearchType.POST_TITLE:
            return self._db.query(Post).filter(
                func.lower(Post.title).contains(text.lower(), autoescape=True)
            )

        if mode is SearchType.USERNAME:
            return (
                self._db.query(Post)
                .join(Account, Post.user_id == Account.id)
                .filter(func.lower(Account.username).contains(text.lower(), autoescape=True))
            )

        if mode is SearchType.STATUS:
            if text not in POST_STATUSES:
                raise InvalidStatusError(
                    f"Invalid status '{text}'. Must be one of: " + ", ".join(POST_STATUSES)
                )
            return self._db.query(Post).filter(Post.status == text)

        day = parse_date(text)
        if day is None:
            raise InvalidDateError(f"Invalid date '{text}'. Use the YYYY-MM-DD format.")
        start, end = day_bounds(day)
        return self._db.query(Post).filter(Post.created_at >= start, Post.created_at < end)
