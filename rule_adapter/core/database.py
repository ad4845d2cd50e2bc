"""Database connection and session management."""
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from rule_adapter.core.config import (
    GROUPING_DATABASE_URL,
    SQLALCHEMY_DATABASE_URL,
)


def _make_engine(url: str):
    # SQLite needs special connect_args; others don't
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


engine = _make_engine(SQLALCHEMY_DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Second store for non-primary rule types, only when configured
grouping_engine = _make_engine(GROUPING_DATABASE_URL) if GROUPING_DATABASE_URL else None
GroupingSessionLocal = (
    sessionmaker(autocommit=False, autoflush=False, bind=grouping_engine)
    if grouping_engine is not None else None
)

# Base class for SQLAlchemy models
Base = declarative_base()


def make_async_engine(url: str):
    """Engine for an async driver URL (e.g. ``sqlite+aiosqlite:///./policies.db``)."""
    return create_async_engine(url)


def create_async_session_factory(async_engine) -> async_sessionmaker:
    """Build an ``AsyncSession`` factory bound to ``async_engine``."""
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


def get_db():
    """Generator function for FastAPI dependency injection.
    Creates a session, yields it, and closes it after usage to ensure proper cleanup.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_grouping_db():
    """Like get_db, for the grouping store. Yields None when no second store is configured."""
    if GroupingSessionLocal is None:
        yield None
        return
    db = GroupingSessionLocal()
    try:
        yield db
    finally:
        db.close()

