"""SQLAlchemy 2.0 database setup."""

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from moddesk.config import get_settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


def build_engine(db_url: str, echo: bool = False):
    """Create a SQLAlchemy engine for the given URL.

    SQLite connections are shared across threads. An in-memory SQLite URL
    gets a StaticPool so every session sees the same database.
    """
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, echo=echo, pool_pre_ping=True)

    kwargs: dict = {"connect_args": {"check_same_thread": False}, "echo": echo}
    if url.database in (None, "", ":memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def _get_engine():
    """Create the SQLAlchemy engine from settings."""
    settings = get_settings()
    return build_engine(settings.MODDESK_DATABASE_URL, echo=settings.MODDESK_DEBUG)


engine = _get_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create all tables defined by ORM models."""
    # Import tables so they register with Base.metadata
    import moddesk.models.tables  # noqa: F401
    Base.metadata.create_all(bind=engine)


def get_db():
    """FastAPI dependency that yields a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
