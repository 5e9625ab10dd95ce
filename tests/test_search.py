"""Tests for the admin search dispatcher."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.orm import Session

from moddesk.errors import (
    InvalidDateError,
    InvalidStatusError,
    InvalidTypeError,
    MissingParameterError,
)
from moddesk.services.search import SearchDispatcher, serialize_post


@pytest.fixture
def dispatcher(test_db: Session) -> SearchDispatcher:
    return SearchDispatcher(test_db)


class TestParameterChecks:
    """Rejections that happen before the store is queried."""

    @pytest.mark.parametrize(
        "query, search_type",
        [(None, "post_title"), ("", "post_title"), ("   ", "status"), ("music", None), ("music", "")],
    )
    def test_missing_parameters(self, query, search_type) -> None:
        db = MagicMock()

        with pytest.raises(MissingParameterError):
            SearchDispatcher(db).search(query, search_type)

        db.query.assert_not_called()

    @pytest.mark.parametrize("query", ["music", "approved", "2025-01-07", "x"])
    def test_invalid_type_regardless_of_query(self, query: str) -> None:
        db = MagicMock()

        with pytest.raises(InvalidTypeError):
            SearchDispatcher(db).search(query, "invalid_type")

        db.query.assert_not_called()

    @pytest.mark.parametrize("query", ["approved_review", "APPROVED", "Pending"])
    def test_invalid_status(self, query: str) -> None:
        db = MagicMock()

        with pytest.raises(InvalidStatusError):
            SearchDispatcher(db).search(query, "status")

        db.query.assert_not_called()

    @pytest.mark.parametrize("query", ["yesterday", "2025-13-01", "2025-02-30", "07/01/2025", "9999-12-31"])
    def test_invalid_date(self, query: str) -> None:
        db = MagicMock()

        with pytest.raises(InvalidDateError):
            SearchDispatcher(db).search(query, "date")

        db.query.assert_not_called()


class TestPredicates:
    """Each search type matches the right posts."""

    def test_post_title_is_case_insensitive_substring(self, dispatcher, make_post) -> None:
        make_post(title="Best MUSIC of 2024")
        make_post(title="musical theatre")
        make_post(title="Painting basics")

        result = dispatcher.search("Music", "post_title")

        assert result.total == 2
        assert {p.title for p in result.posts} == {"Best MUSIC of 2024", "musical theatre"}

    def test_post_title_wildcards_are_literal(self, dispatcher, make_post) -> None:
        make_post(title="100% real")
        make_post(title="1000 reasons")

        result = dispatcher.search("100%", "post_title")

        assert [p.title for p in result.posts] == ["100% real"]

    def test_username_joins_owner(self, dispatcher, make_post, make_account) -> None:
        alice = make_account("AliceWonder")
        bob = make_account("bob")
        make_post(title="a1", owner=alice)
        make_post(title="a2", owner=alice)
        make_post(title="b1", owner=bob)
        make_post(title="orphan")

        result = dispatcher.search("alice", "username")

        assert result.total == 2
        assert {p.title for p in result.posts} == {"a1", "a2"}
        assert all(serialize_post(p).user.username == "AliceWonder" for p in result.posts)

    def test_status_is_exact_match(self, dispatcher, make_post) -> None:
        """'approved' never matches 'approved_review'."""
        make_post(title="yes", status="approved")
        make_post(title="wait", status="pending")
        make_post(title="almost", status="approved_review")

        result = dispatcher.search("approved", "status")

        assert [p.title for p in result.posts] == ["yes"]
        assert result.total == 1

    def test_date_matches_whole_day(self, dispatcher, make_post) -> None:
        make_post(title="midnight", created_at=datetime(2025, 1, 7, 0, 0, 0))
        make_post(title="noon", created_at=datetime(2025, 1, 7, 12, 30, 0))
        make_post(title="late", created_at=datetime(2025, 1, 7, 23, 59, 59, 999999))
        make_post(title="next day", created_at=datetime(2025, 1, 8, 0, 0, 0))
        make_post(title="day before", created_at=datetime(2025, 1, 6, 23, 59, 59))

        result = dispatcher.search("2025-01-07", "date")

        assert result.total == 3
        assert [p.title for p in result.posts] == ["late", "noon", "midnight"]

    def test_date_without_posts(self, dispatcher, make_post) -> None:
        make_post(created_at=datetime(2025, 1, 7, 9, 0, 0))

        result = dispatcher.search("2025-01-09", "date")

        assert result.total == 0
        assert result.posts == []


class TestPagination:
    """Paging over a static data set."""

    @pytest.fixture
    def twelve_posts(self, make_post) -> list:
        start = datetime(2025, 1, 1, 8, 0, 0)
        return [
            make_post(title=f"music {i:02d}", created_at=start + timedelta(hours=i))
            for i in range(12)
        ]

    def test_total_counts_all_matches(self, dispatcher, twelve_posts) -> None:
        first = dispatcher.search("music", "post_title", page=1, limit=5)
        last = dispatcher.search("music", "post_title", page=3, limit=5)

        assert len(first.posts) == 5
        assert len(last.posts) == 2
        assert first.total == last.total == 12

    def test_newest_first_and_pages_do_not_overlap(self, dispatcher, twelve_posts) -> None:
        pages = [dispatcher.search("music", "post_title", page=n, limit=5) for n in (1, 2, 3)]
        titles = [p.title for page in pages for p in page.posts]

        assert titles == [f"music {i:02d}" for i in reversed(range(12))]

    def test_page_past_end_is_empty(self, dispatcher, twelve_posts) -> None:
        result = dispatcher.search("music", "post_title", page=4, limit=5)

        assert result.posts == []
        assert result.total == 12

    def test_huge_page_is_empty(self, dispatcher, twelve_posts) -> None:
        result = dispatcher.search("music", "post_title", page=10**20, limit=5)

        assert result.posts == []
        assert result.total == 12
