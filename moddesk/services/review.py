"""Review queue service: reviewer post listing, decisions and reports.

The reviewer queue lists posts by status, title text and creation date
range, sorted on one of a few fields. Decisions move a post to approved or
rejected and record the reviewer's notes. Reports aggregate decisions over
a period.
"""

import csv
import io
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from moddesk.errors import NotFoundError, UnsupportedFormatError
from moddesk.models.schemas import ReportData
from moddesk.models.tables import Account, Category, Post, utcnow
from moddesk.services.search import SearchResult, day_bounds, page_offset
from moddesk.services.validation import DateRangeMode, ReportType, parse_date

logger = logging.getLogger(__name__)

_REPORT_PERIODS = {
    ReportType.DAILY: timedelta(days=1),
    ReportType.WEEKLY: timedelta(days=7),
    ReportType.MONTHLY: timedelta(days=30),
}

_PRESET_PERIODS = {
    DateRangeMode.WEEK: timedelta(days=7),
    DateRangeMode.MONTH: timedelta(days=30),
}


@dataclass
class QueueFilters:
    """Reviewer queue query, already validated."""

    page: int = 1
    limit: int = 10
    status: Optional[str] = None
    search: Optional[str] = None
    date: Optional[str] = None
    sort_by: str = "date"
    order: str = "desc"
    date_range: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class ReviewService:
    """Reviewer-facing operations over posts.

    Args:
        db_session: SQLAlchemy database session.
        now: Source of the current UTC time, used for relative date ranges.
    """

    def __init__(self, db_session: Session, now: Callable[[], datetime] = utcnow) -> None:
        self._db = db_session
        self._now = now

    def list_posts(self, filters: QueueFilters) -> SearchResult:
        """Return one page of the reviewer queue."""
        query = self._db.query(Post)

        if filters.status:
            query = query.filter(Post.status == filters.status)
        if filters.search and filters.search.strip():
            text = filters.search.strip().lower()
            query = query.filter(func.lower(Post.title).contains(text, autoescape=True))
        if filters.date:
            start, end = day_bounds(parse_date(filters.date))
            query = query.filter(Post.created_at >= start, Post.created_at < end)

        window = self.resolve_date_range(filters.date_range, filters.start_date, filters.end_date)
        if window is not None:
            start, end = window
            query = query.filter(Post.created_at >= start, Post.created_at < end)

        total = query.count()

        if filters.sort_by == "uploader":
            query = query.outerjoin(Account, Post.user_id == Account.id)
            sort_column = Account.username
        elif filters.sort_by == "category":
            query = query.outerjoin(Category, Post.category_id == Category.id)
            sort_column = Category.name
        elif filters.sort_by == "title":
            sort_column = Post.title
        else:
            sort_column = Post.created_at

        direction = sort_column.asc() if filters.order == "asc" else sort_column.desc()
        posts = (
            query.options(joinedload(Post.owner))
            .order_by(direction, Post.created_at.desc(), Post.id.desc())
            .offset(page_offset(filters.page, filters.limit))
            .limit(filters.limit)
            .all()
        )
        return SearchResult(posts=posts, page=filters.page, limit=filters.limit, total=total)

    def resolve_date_range(
        self,
        mode: Optional[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Optional[tuple[datetime, datetime]]:
        """Turn a date range preset into a [start, end) datetime window.

        ``today`` is the current UTC calendar day; ``week`` and ``month`` are
        the trailing 7 and 30 days; ``custom`` spans from the start of
        start_date to the end of end_date. No mode means no window.
        """
        if not mode:
            return None
        range_mode = DateRangeMode(mode)
        now = self._now()
        if range_mode is DateRangeMode.TODAY:
            return day_bounds(now.date())
        if range_mode is DateRangeMode.CUSTOM:
            start_day = parse_date(start_date)
            end_day = parse_date(end_date)
            return day_bounds(start_day)[0], day_bounds(end_day)[1]
        return now - _PRESET_PERIODS[range_mode], now + timedelta(microseconds=1)

    def review_post(
        self,
        post_id: str,
        decision: str,
        notes: Optional[str] = None,
        category: Optional[str] = None,
        urgency: Optional[str] = None,
    ) -> Post:
        """Approve or reject a post and record the review.

        Raises:
            NotFoundError: No post has this id.
        """
        post = self._db.get(Post, post_id)
        if post is None:
            raise NotFoundError(f"Post {post_id} not found.")

        post.status = decision
        post.reviewed_at = self._now()
        post.review_notes = notes.strip() if notes else None
        post.rejection_category = category if decision == "rejected" else None
        post.urgency = urgency if decision == "rejected" else None
        self._db.commit()
        self._db.refresh(post)
        logger.info(f"Post {post_id} {decision}")
        return post

    def build_report(
        self,
        report_type: str,
        metrics: list[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> ReportData:
        """Aggregate the requested metrics over the report period.

        Counts use the review timestamp for approvals and rejections and the
        creation timestamp for pending posts. response_time is the mean
        hours from creation to review.
        """
        kind = ReportType(report_type)
        now = self._now()
        if kind is ReportType.CUSTOM:
            start = day_bounds(parse_date(start_date))[0]
            end = day_bounds(parse_date(end_date))[1]
        else:
            start, end = now - _REPORT_PERIODS[kind], now

        reviewed = self._db.query(Post).filter(
            Post.reviewed_at.is_not(None),
            Post.reviewed_at >= start,
            Post.reviewed_at <= end,
        )
        values: dict[str, float] = {}
        for metric in metrics:
            if metric == "approvals":
                values[metric] = reviewed.filter(Post.status == "approved").count()
            elif metric == "rejections":
                values[metric] = reviewed.filter(Post.status == "rejected").count()
            elif metric == "pending":
                values[metric] = (
                    self._db.query(Post)
                    .filter(
                        Post.status == "pending",
                        Post.created_at >= start,
                        Post.created_at <= end,
                    )
                    .count()
                )
            elif metric == "response_time":
                values[metric] = _average_response_hours(reviewed.all())

        return ReportData(
            report_type=kind.value,
            period_start=start,
            period_end=end,
            metrics=values,
        )


def _average_response_hours(posts: list[Post]) -> float:
    """Mean hours between creation and review; 0 when nothing was reviewed."""
    durations = [
        (post.reviewed_at - post.created_at).total_seconds()
        for post in posts
        if post.reviewed_at is not None and post.created_at is not None
    ]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations) / 3600, 2)


def render_report_csv(report: ReportData) -> str:
    """Render a report as CSV with one metric per row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["report_type", "period_start", "period_end", "metric", "value"])
    for metric, value in report.metrics.items():
        writer.writerow([
            report.report_type,
            report.period_start.isoformat(),
            report.period_end.isoformat(),
            metric,
            value,
        ])
    return buffer.getvalue()


def ensure_renderable(report_format: str) -> None:
    """Reject report formats that pass validation but have no renderer."""
    if report_format in ("pdf", "excel"):
        raise UnsupportedFormatError(
            f"Report format '{report_format}' is not available yet; use csv."
        )


def report_filename(report: ReportData) -> str:
    stamp = report.period_end.date().isoformat()
    return f"moderation_{report.report_type}_{stamp}.csv"
