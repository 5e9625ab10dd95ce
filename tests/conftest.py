"""Shared test fixtures for Moderation Desk."""

import os

# In-memory database shared across sessions; must be set before importing moddesk
os.environ["MODDESK_DATABASE_URL"] = "sqlite://"
os.environ["MODDESK_SEED_CATEGORIES"] = "false"

from datetime import datetime  # noqa: E402
from typing import Callable, Optional  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from moddesk import create_app  # noqa: E402
from moddesk.models.database import Base, SessionLocal, engine  # noqa: E402
from moddesk.models.tables import Account, Category, Post  # noqa: E402
from tests.fixtures.clock import FIXED_NOW  # noqa: E402


@pytest.fixture
def test_db():
    """Fresh schema in the shared in-memory SQLite database."""
    # Import tables so metadata is populated
    import moddesk.models.tables  # noqa: F401
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_app(test_db: Session):
    """Create a fresh application with its own rate limiter and a fixed clock."""
    application = create_app()
    application.state.clock = lambda: FIXED_NOW
    return application


@pytest.fixture
async def test_client(test_app):
    """Async HTTP test client backed by the test app."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def make_account(test_db: Session) -> Callable[..., Account]:
    """Factory that stores an account."""

    def _make(username: str, email: Optional[str] = None) -> Account:
        account = Account(username=username, email=email or f"{username}@example.com")
        test_db.add(account)
        test_db.commit()
        return account

    return _make


@pytest.fixture
def make_category(test_db: Session) -> Callable[..., Category]:
    """Factory that stores a category row directly, bypassing the store."""

    def _make(name: str, level: int = 1, sort_order: int = 0, parent: Optional[Category] = None) -> Category:
        category = Category(
            name=name,
            description=f"{name} content",
            level=level,
            sort_order=sort_order,
            parent_id=parent.id if parent is not None else None,
        )
        test_db.add(category)
        test_db.commit()
        return category

    return _make


@pytest.fixture
def make_post(test_db: Session) -> Callable[..., Post]:
    """Factory that stores a post."""

    def _make(
        title: str = "Test post",
        status: str = "pending",
        created_at: datetime = FIXED_NOW,
        owner: Optional[Account] = None,
        category: Optional[Category] = None,
        reviewed_at: Optional[datetime] = None,
    ) -> Post:
        post = Post(
            title=title,
            description="",
            status=status,
            created_at=created_at,
            updated_at=created_at,
            reviewed_at=reviewed_at,
            user_id=owner.id if owner is not None else None,
            category_id=category.id if category is not None else None,
        )
        test_db.add(post)
        test_db.commit()
        return post

    return _make
