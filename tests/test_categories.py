"""Tests for the category hierarchy store."""

import pytest
from sqlalchemy.orm import Session

from moddesk.errors import ConflictError, NotFoundError
from moddesk.models.tables import Category
from moddesk.services.categories import DEFAULT_HIERARCHY, CategoryStore


@pytest.fixture
def store(test_db: Session) -> CategoryStore:
    return CategoryStore(test_db)


def _snapshot(db: Session) -> list[tuple]:
    rows = db.query(Category).order_by(Category.id).all()
    return [
        (c.id, c.name, c.description, c.status, c.level, c.sort_order, c.parent_id)
        for c in rows
    ]


class TestUpsert:
    """Tests for upsert_category."""

    def test_creates_top_level_category(self, store: CategoryStore) -> None:
        """A new name creates a level-1 row with no parent."""
        music = store.upsert_category("Music", "Music-related content", level=1, sort_order=1)

        assert music.id is not None
        assert music.level == 1
        assert music.parent_id is None
        assert music.status == "active"

    def test_upsert_is_idempotent(self, store: CategoryStore, test_db: Session) -> None:
        """Repeating an identical upsert leaves the store unchanged."""
        music = store.upsert_category("Music", "Music", level=1, sort_order=1)
        store.upsert_category("Rock", "Rock music", level=2, sort_order=1, parent_id=music.id)
        before = _snapshot(test_db)

        store.upsert_category("Music", "Music", level=1, sort_order=1)
        store.upsert_category("Rock", "Rock music", level=2, sort_order=1, parent_id=music.id)

        assert _snapshot(test_db) == before

    def test_update_keeps_identity_and_children(self, store: CategoryStore) -> None:
        """Updating a parent preserves its id and its sub-categories."""
        music = store.upsert_category("Music", "old", level=1, sort_order=1)
        store.upsert_category("Jazz", "Jazz", level=2, sort_order=1, parent_id=music.id)

        updated = store.upsert_category("Music", "new", level=1, sort_order=5, status="inactive")

        assert updated.id == music.id
        assert updated.description == "new"
        assert updated.sort_order == 5
        assert updated.status == "inactive"
        assert [c.name for c in store.get_subcategories(music.id)] == ["Jazz"]

    def test_sub_category_can_move_parent(self, store: CategoryStore) -> None:
        """A level-2 upsert may point an existing sub-category at a new parent."""
        music = store.upsert_category("Music", level=1)
        arts = store.upsert_category("Arts", level=1)
        first = store.upsert_category("Crafts", level=2, parent_id=music.id)

        moved = store.upsert_category("Crafts", level=2, parent_id=arts.id)

        assert moved.id == first.id
        assert moved.parent_id == arts.id

    def test_level_one_with_parent_conflicts(self, store: CategoryStore) -> None:
        """Top-level categories never carry a parent."""
        music = store.upsert_category("Music", level=1)

        with pytest.raises(ConflictError):
            store.upsert_category("Arts", level=1, parent_id=music.id)

    def test_level_two_without_parent_conflicts(self, store: CategoryStore) -> None:
        with pytest.raises(ConflictError):
            store.upsert_category("Rock", level=2)

    def test_unknown_parent_not_found(self, store: CategoryStore, test_db: Session) -> None:
        """A level-2 parent must exist, and nothing is written otherwise."""
        with pytest.raises(NotFoundError):
            store.upsert_category("Rock", level=2, parent_id=999)

        assert test_db.query(Category).count() == 0

    def test_parent_must_be_top_level(self, store: CategoryStore) -> None:
        """Categories nest only two levels deep."""
        music = store.upsert_category("Music", level=1)
        rock = store.upsert_category("Rock", level=2, parent_id=music.id)

        with pytest.raises(ConflictError):
            store.upsert_category("Punk", level=2, parent_id=rock.id)

    def test_demoting_parent_with_children_conflicts(self, store: CategoryStore) -> None:
        """Upsert never orphans sub-categories by demoting their parent."""
        music = store.upsert_category("Music", level=1)
        arts = store.upsert_category("Arts", level=1)
        store.upsert_category("Rock", level=2, parent_id=music.id)

        with pytest.raises(ConflictError):
            store.upsert_category("Music", level=2, parent_id=arts.id)

        assert store.get_by_id(music.id).level == 1

    def test_demoting_childless_parent_allowed(self, store: CategoryStore) -> None:
        music = store.upsert_category("Music", level=1)
        arts = store.upsert_category("Arts", level=1)

        demoted = store.upsert_category("Arts", level=2, parent_id=music.id)

        assert demoted.id == arts.id
        assert demoted.level == 2

    def test_self_parent_conflicts(self, store: CategoryStore) -> None:
        music = store.upsert_category("Music", level=1)

        with pytest.raises(ConflictError):
            store.upsert_category("Music", level=2, parent_id=music.id)


class TestHierarchy:
    """Tests for hierarchy reads."""

    def test_list_hierarchy_ordering(self, store: CategoryStore) -> None:
        """Parents and children sort by sort_order, ties broken by name."""
        arts = store.upsert_category("Arts", level=1, sort_order=2)
        music = store.upsert_category("Music", level=1, sort_order=1)
        comms = store.upsert_category("Communication", level=1, sort_order=2)
        store.upsert_category("Pop", level=2, sort_order=2, parent_id=music.id)
        store.upsert_category("Jazz", level=2, sort_order=2, parent_id=music.id)
        store.upsert_category("Rock", level=2, sort_order=1, parent_id=music.id)

        tree = store.list_hierarchy()

        assert [parent.name for parent, _ in tree] == ["Music", "Arts", "Communication"]
        assert [child.name for child in tree[0][1]] == ["Rock", "Jazz", "Pop"]
        assert tree[1][0].id == arts.id and tree[1][1] == []
        assert tree[2][0].id == comms.id

    def test_every_row_satisfies_level_invariant(self, store: CategoryStore, test_db: Session) -> None:
        store.seed_hierarchy()

        for category in test_db.query(Category).all():
            if category.level == 1:
                assert category.parent_id is None
            else:
                parent = test_db.get(Category, category.parent_id)
                assert parent is not None and parent.level == 1

    def test_get_subcategories(self, store: CategoryStore) -> None:
        music = store.upsert_category("Music", level=1)
        store.upsert_category("Rock", level=2, sort_order=2, parent_id=music.id)
        store.upsert_category("Blues", level=2, sort_order=1, parent_id=music.id)

        children = store.get_subcategories(music.id)

        assert [c.name for c in children] == ["Blues", "Rock"]
        assert all(c.parent_id == music.id for c in children)

    def test_get_subcategories_of_sub_category_not_found(self, store: CategoryStore) -> None:
        """Only top-level ids resolve as parents."""
        music = store.upsert_category("Music", level=1)
        rock = store.upsert_category("Rock", level=2, parent_id=music.id)

        with pytest.raises(NotFoundError):
            store.get_subcategories(rock.id)

    def test_get_subcategories_unknown_parent(self, store: CategoryStore) -> None:
        with pytest.raises(NotFoundError):
            store.get_subcategories(12345)

    def test_get_by_id(self, store: CategoryStore) -> None:
        music = store.upsert_category("Music", level=1)

        assert store.get_by_id(music.id).name == "Music"
        with pytest.raises(NotFoundError):
            store.get_by_id(music.id + 100)


class TestPopular:
    """Tests for get_popular."""

    def test_ranked_by_post_count_then_name(self, store: CategoryStore, make_post) -> None:
        music = store.upsert_category("Music", level=1)
        arts = store.upsert_category("Arts", level=1)
        comms = store.upsert_category("Communication", level=1)
        for _ in range(3):
            make_post(category=comms)
        make_post(category=arts)
        make_post(category=music)

        ranked = store.get_popular(limit=10)

        assert [(c.name, n) for c, n in ranked] == [
            ("Communication", 3),
            ("Arts", 1),
            ("Music", 1),
        ]

    def test_includes_empty_categories_and_respects_limit(self, store: CategoryStore, make_post) -> None:
        music = store.upsert_category("Music", level=1)
        store.upsert_category("Arts", level=1)
        store.upsert_category("Zydeco", level=1)
        make_post(category=music)

        ranked = store.get_popular(limit=2)

        assert [(c.name, n) for c, n in ranked] == [("Music", 1), ("Arts", 0)]


class TestSeed:
    """Tests for seed_hierarchy."""

    def test_seed_builds_default_tree(self, store: CategoryStore) -> None:
        count = store.seed_hierarchy()

        expected = sum(1 + len(top["children"]) for top in DEFAULT_HIERARCHY)
        assert count == expected
        tree = store.list_hierarchy()
        assert [parent.name for parent, _ in tree] == [
            "Music", "Arts", "Communication", "Physical Appearance",
        ]
        assert len(tree[0][1]) == 17
        assert tree[0][1][0].name == "Rock"

    def test_seed_twice_is_idempotent(self, store: CategoryStore, test_db: Session) -> None:
        store.seed_hierarchy()
        before = _snapshot(test_db)

        store.seed_hierarchy()

        assert _snapshot(test_db) == before
