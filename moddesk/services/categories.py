"""Category hierarchy store: the fixed two-level topic tree.

Categories are flat rows with a level discriminant: level 1 rows are
top-level topics, level 2 rows are sub-topics pointing at a level 1 parent.
There is no deeper nesting, so every hierarchy lookup is a single indexed
query rather than a tree walk.

Upserts are keyed on the globally unique category name. The name column
carries a UNIQUE constraint, so a concurrent duplicate insert fails at the
database and is retried as an update.
"""

import logging
import threading
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from moddesk.errors import ConflictError, NotFoundError
from moddesk.models.tables import Category, Post

logger = logging.getLogger(__name__)

TOP_LEVEL = 1
SUB_LEVEL = 2

# Coarse in-process serialization for writes; reads never take it.
_WRITE_LOCK = threading.Lock()

# Built-in topic tree, seeded by seed_hierarchy(). Names are global, so the
# catch-all sub-topic is qualified by its parent.
DEFAULT_HIERARCHY: list[dict] = [
    {
        "name": "Music",
        "description": "Music-related content",
        "sort_order": 1,
        "children": [
            "Rock", "Pop", "Hip Hop / Rap", "R&B / Soul", "Gospel", "Jazz",
            "Classical", "Reggae", "Country", "Traditional", "Electronic/Dance",
            "Afrobeats", "Blues", "Folk", "Latin", "K-Pop", "Other Music",
        ],
    },
    {
        "name": "Arts",
        "description": "Arts-related content",
        "sort_order": 2,
        "children": [
            "Drawing", "Painting", "Sculpture", "Photography", "Graphic design",
            "Fashion design", "Interior design", "Ceramics", "Architecture",
            "Calligraphy", "Crafts", "Other Arts",
        ],
    },
    {
        "name": "Communication",
        "description": "Communication-related content",
        "sort_order": 3,
        "children": [
            "Preaching", "Public speaking", "Motivational speaking",
            "Storytelling", "Poetry", "Teaching & Training", "Other Communication",
        ],
    },
    {
        "name": "Physical Appearance",
        "description": "Physical appearance related content",
        "sort_order": 4,
        "children": ["Women Beauty", "Men"],
    },
]


class CategoryStore:
    """Reads and idempotent writes over the category hierarchy.

    Args:
        db_session: SQLAlchemy database session.
    """

    def __init__(self, db_session: Session) -> None:
        self._db = db_session

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_category(
        self,
        name: str,
        description: str = "",
        level: int = TOP_LEVEL,
        sort_order: int = 0,
        parent_id: Optional[int] = None,
        status: str = "active",
    ) -> Category:
        """Create the named category, or update it in place if it exists.

        Identity and existing child links are preserved on update. The call
        either commits fully or rolls back.

        Raises:
            ConflictError: The result would break the two-level invariants,
                e.g. demoting a topic that still has sub-topics.
            NotFoundError: A level 2 parent id does not exist.
        """
        name = name.strip()
        with _WRITE_LOCK:
            existing = self._find_by_name(name)
            self._check_placement(existing, name, level, parent_id)

            if existing is None:
                category = self._insert(name, description, level, sort_order, parent_id, status)
                if category is not None:
                    logger.info(f"Created category '{name}' (id={category.id}, level={level})")
                    return category
                # Lost a race with another writer: the row exists now.
                existing = self._find_by_name(name)
                if existing is None:
                    raise ConflictError(f"Category '{name}' could not be created.")
                self._check_placement(existing, name, level, parent_id)

            existing.description = description
            existing.status = status
            existing.level = level
            existing.sort_order = sort_order
            existing.parent_id = parent_id
            try:
                self._db.commit()
            except Exception:
                self._db.rollback()
                raise
            self._db.refresh(existing)
            logger.info(f"Updated category '{name}' (id={existing.id}, level={level})")
            return existing

    def _insert(
        self,
        name: str,
        description: str,
        level: int,
        sort_order: int,
        parent_id: Optional[int],
        status: str,
    ) -> Optional[Category]:
        """Insert a new row; None if the name was taken concurrently."""
        category = Category(
            name=name,
            description=description,
            status=status,
            level=level,
            sort_order=sort_order,
            parent_id=parent_id,
        )
        self._db.add(category)
        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            logger.warning(f"Concurrent insert of category '{name}', retrying as update")
            return None
        self._db.refresh(category)
        return category

    def _check_placement(
        self,
        existing: Optional[Category],
        name: str,
        level: int,
        parent_id: Optional[int],
    ) -> None:
        """Reject writes that would break the level/parent invariants."""
        if level not in (TOP_LEVEL, SUB_LEVEL):
            raise ConflictError(f"Category '{name}' has invalid level {level}; must be 1 or 2.")

        if level == TOP_LEVEL:
            if parent_id is not None:
                raise ConflictError(f"Top-level category '{name}' cannot have a parent.")
            return

        if parent_id is None:
            raise ConflictError(f"Sub-category '{name}' requires a parent.")
        if existing is not None and existing.id == parent_id:
            raise ConflictError(f"Category '{name}' cannot be its own parent.")

        parent = self._db.get(Category, parent_id)
        if parent is None:
            raise NotFoundError(f"Parent category {parent_id} not found.")
        if parent.level != TOP_LEVEL:
            raise ConflictError(
                f"Parent category '{parent.name}' is a sub-category; "
                f"categories nest only two levels deep."
            )

        if existing is not None and existing.level == TOP_LEVEL:
            child_count = (
                self._db.query(func.count(Category.id))
                .filter(Category.parent_id == existing.id)
                .scalar()
            )
            if child_count:
                logger.warning(f"Refused to demote '{name}' with {child_count} sub-categories")
                raise ConflictError(
                    f"Category '{name}' still has {child_count} sub-categories "
                    f"and cannot become a sub-category."
                )

    def seed_hierarchy(self, hierarchy: Optional[list[dict]] = None) -> int:
        """Upsert the built-in topic tree. Safe to run repeatedly.

        Returns:
            Number of categories upserted.
        """
        hierarchy = hierarchy if hierarchy is not None else DEFAULT_HIERARCHY
        logger.info("Seeding category hierarchy")
        count = 0
        for top in hierarchy:
            parent = self.upsert_category(
                name=top["name"],
                description=top["description"],
                level=TOP_LEVEL,
                sort_order=top["sort_order"],
            )
            count += 1
            for order, child_name in enumerate(top["children"], start=1):
                self.upsert_category(
                    name=child_name,
                    description=f"{child_name} under {top['name']}",
                    level=SUB_LEVEL,
                    sort_order=order,
                    parent_id=parent.id,
                )
                count += 1
        logger.info(f"Category hierarchy seeded: {count} categories")
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _find_by_name(self, name: str) -> Optional[Category]:
        return self._db.query(Category).filter(Category.name == name).first()

    def list_hierarchy(self) -> list[tuple[Category, list[Category]]]:
        """Return every top-level category paired with its ordered sub-categories."""
        rows = (
            self._db.query(Category)
            .order_by(Category.sort_order.asc(), Category.name.asc())
            .all()
        )
        children: dict[int, list[Category]] = {}
        for row in rows:
            if row.level == SUB_LEVEL and row.parent_id is not None:
                children.setdefault(row.parent_id, []).append(row)
        return [
            (row, children.get(row.id, []))
            for row in rows
            if row.level == TOP_LEVEL
        ]

    def get_subcategories(self, parent_id: int) -> list[Category]:
        """Return the sub-categories of a top-level category.

        Raises:
            NotFoundError: parent_id is not a top-level category.
        """
        parent = self._db.get(Category, parent_id)
        if parent is None or parent.level != TOP_LEVEL:
            raise NotFoundError(f"Parent category {parent_id} not found.")
        return (
            self._db.query(Category)
            .filter(Category.parent_id == parent_id, Category.level == SUB_LEVEL)
            .order_by(Category.sort_order.asc(), Category.name.asc())
            .all()
        )

    def get_by_id(self, category_id: int) -> Category:
        """Return one category or raise NotFoundError."""
        category = self._db.get(Category, category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found.")
        return category

    def get_popular(self, limit: int = 10) -> list[tuple[Category, int]]:
        """Rank categories by number of posts, most first, ties by name."""
        post_count = func.count(Post.id).label("post_count")
        rows = (
            self._db.query(Category, post_count)
            .outerjoin(Post, Post.category_id == Category.id)
            .group_by(Category.id)
            .order_by(post_count.desc(), Category.name.asc())
            .limit(limit)
            .all()
        )
        return [(category, count) for category, count in rows]
