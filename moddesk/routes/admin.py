"""Admin routes: post search, reviewer queue, reports and category upserts.

Every handler validates its raw parameters with the operation's rule set
before doing any work, so clients get all field errors in one response.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from moddesk.models.database import get_db
from moddesk.models.schemas import CategoryData, Pagination, PostPage
from moddesk.services.categories import CategoryStore
from moddesk.services.rate_limiter import RouteClass, rate_limit
from moddesk.services.review import (
    QueueFilters,
    ReviewService,
    ensure_renderable,
    render_report_csv,
    report_filename,
)
from moddesk.services.search import (
    DEFAULT_LIMIT,
    DEFAULT_PAGE,
    SearchDispatcher,
    SearchResult,
    serialize_post,
)
from moddesk.services.validation import Operation, ensure_valid, to_int

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


def _page_payload(result: SearchResult) -> dict:
    """Wrap a page of posts in the success envelope."""
    page = PostPage(
        posts=[serialize_post(post) for post in result.posts],
        pagination=Pagination(page=result.page, limit=result.limit, total=result.total),
    )
    return {"status": "success", "data": page.model_dump(mode="json")}


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@router.get("/posts/search", dependencies=[Depends(rate_limit(RouteClass.SEARCH))])
async def search_posts(request: Request, db: Session = Depends(get_db)) -> dict:
    """Search posts by title, username, status or creation date.

    Query parameters: ``query``, ``type`` (post_title, username, status,
    date), ``page`` and ``limit``.
    """
    params = dict(request.query_params)
    ensure_valid(params, Operation.ADMIN_SEARCH)

    result = SearchDispatcher(db).search(
        query=params.get("query"),
        search_type=params.get("type"),
        page=to_int(params.get("page")) or DEFAULT_PAGE,
        limit=to_int(params.get("limit")) or DEFAULT_LIMIT,
    )
    return _page_payload(result)


# ---------------------------------------------------------------------------
# Reviewer queue
# ---------------------------------------------------------------------------

@router.get("/posts")
async def list_posts(request: Request, db: Session = Depends(get_db)) -> dict:
    """List posts for review with filters, sorting and a date range.

    Both the general and the reviewer pagination rules apply, so ``limit``
    must be within 5..50.
    """
    params = dict(request.query_params)
    ensure_valid(params, Operation.POST_QUERY, Operation.REVIEW_QUERY, Operation.DATE_RANGE)

    filters = QueueFilters(
        page=to_int(params.get("page")) or DEFAULT_PAGE,
        limit=to_int(params.get("limit")) or DEFAULT_LIMIT,
        status=params.get("status"),
        search=params.get("search"),
        date=params.get("date"),
        sort_by=params.get("sortBy", "date"),
        order=params.get("order", "desc"),
        date_range=params.get("dateRange"),
        start_date=params.get("startDate"),
        end_date=params.get("endDate"),
    )
    service = ReviewService(db, now=request.app.state.clock)
    return _page_payload(service.list_posts(filters))


@router.put("/posts/{post_id}/review")
async def review_post(
    request: Request,
    post_id: str,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
) -> dict:
    """Approve or reject a post.

    Rejections must carry substantive notes (10..500 characters, plain
    punctuation only) and may name a rejection category and urgency.
    """
    fields = {**payload, "postId": post_id}
    operations = [Operation.POST_REVIEW]
    if fields.get("decision") == "rejected":
        operations.append(Operation.POST_REJECTION)
    ensure_valid(fields, *operations)

    service = ReviewService(db, now=request.app.state.clock)
    post = service.review_post(
        post_id=post_id,
        decision=fields["decision"],
        notes=fields.get("notes"),
        category=fields.get("category"),
        urgency=fields.get("urgency"),
    )
    return {"status": "success", "data": serialize_post(post).model_dump(mode="json")}


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@router.post("/reports")
async def generate_report(
    request: Request,
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
) -> Response:
    """Generate a moderation report as a CSV download."""
    ensure_valid(payload, Operation.REPORT)
    ensure_renderable(payload["format"])

    service = ReviewService(db, now=request.app.state.clock)
    report = service.build_report(
        report_type=payload["reportType"],
        metrics=payload["metrics"],
        start_date=payload.get("startDate"),
        end_date=payload.get("endDate"),
    )
    logger.info(f"Generated {report.report_type} report with {len(report.metrics)} metric(s)")
    return Response(
        content=render_report_csv(report),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(report)}"'},
    )


# ---------------------------------------------------------------------------
# Category administration
# ---------------------------------------------------------------------------

@router.put("/categories")
async def upsert_category(payload: dict[str, Any] = Body(...), db: Session = Depends(get_db)) -> dict:
    """Create a category, or update the one with the same name."""
    ensure_valid(payload, Operation.CATEGORY_UPSERT)

    parent_id = payload.get("parent_id")
    category = CategoryStore(db).upsert_category(
        name=payload["name"],
        description=(payload.get("description") or "").strip(),
        level=to_int(payload["level"]),
        sort_order=to_int(payload.get("sort_order")) or 0,
        parent_id=to_int(parent_id) if parent_id is not None else None,
        status=payload.get("status") or "active",
    )
    return {"status": "success", "data": CategoryData.model_validate(category).model_dump()}
