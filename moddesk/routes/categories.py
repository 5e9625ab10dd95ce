"""Category routes: read access to the topic hierarchy."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from moddesk.config import get_settings
from moddesk.models.database import get_db
from moddesk.models.schemas import CategoryData, CategoryNode
from moddesk.services.categories import CategoryStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/categories")


@router.get("")
async def list_categories(db: Session = Depends(get_db)) -> dict:
    """Return top-level categories, each with its ordered sub-categories."""
    tree = CategoryStore(db).list_hierarchy()
    data = [
        CategoryNode(
            **CategoryData.model_validate(parent).model_dump(),
            children=[CategoryData.model_validate(child) for child in children],
        ).model_dump()
        for parent, children in tree
    ]
    return {"status": "success", "data": data}


@router.get("/popular")
async def popular_categories(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Max categories"),
    db: Session = Depends(get_db),
) -> dict:
    """Return categories ranked by post count, with `_count.posts`."""
    limit = limit or get_settings().MODDESK_POPULAR_LIMIT
    ranked = CategoryStore(db).get_popular(limit)
    data = [
        {**CategoryData.model_validate(category).model_dump(), "_count": {"posts": count}}
        for category, count in ranked
    ]
    return {"status": "success", "data": data}


@router.get("/{parent_id}/subcategories")
async def list_subcategories(parent_id: int, db: Session = Depends(get_db)) -> dict:
    """Return the sub-categories of one top-level category."""
    children = CategoryStore(db).get_subcategories(parent_id)
    return {
        "status": "success",
        "data": [CategoryData.model_validate(child).model_dump() for child in children],
    }


@router.get("/{category_id}")
async def get_category(category_id: int, db: Session = Depends(get_db)) -> dict:
    """Return a single category."""
    category = CategoryStore(db).get_by_id(category_id)
    return {"status": "success", "data": CategoryData.model_validate(category).model_dump()}
