"""Pydantic v2 schemas for serialization."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CategoryData(BaseModel):
    """A single category row."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    status: str
    level: int
    sort_order: int
    parent_id: Optional[int] = None


class CategoryNode(CategoryData):
    """A level-1 category with its sub-topics."""
    children: list[CategoryData] = []


class OwnerData(BaseModel):
    """Owning account summary embedded in post results."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str


class PostData(BaseModel):
    """A post as returned to moderators."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    status: str
    category_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    reviewed_at: Optional[datetime] = None
    review_notes: Optional[str] = None
    rejection_category: Optional[str] = None
    urgency: Optional[str] = None
    user: Optional[OwnerData] = None


class Pagination(BaseModel):
    """Page window plus the full match count."""
    page: int
    limit: int
    total: int


class PostPage(BaseModel):
    """One page of posts."""
    posts: list[PostData]
    pagination: Pagination


class ReportData(BaseModel):
    """Moderation metrics over a report period."""
    report_type: str
    period_start: datetime
    period_end: datetime
    metrics: dict[str, float]
