"""
Database Session Management

This module handles async database connections using SQLAlchemy's async engine.
Uses the database adapter to build the engine.

Key Features:
- Database abstraction: switch backends by changing the adapter
- Async session factory shared by request handlers and the telemetry aggregator
- Table creation helper for development setups without Alembic
"""

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession as SQLModelAsyncSession

from urlshortener.core.setting import settings
from urlshortener.db.sqlite_adapter import get_database_adapter

# Imported for its side effect: registers the tables on SQLModel.metadata
from urlshortener.db.models import ShortenedUrl  # noqa: F401

db_adapter = get_database_adapter()

engine = db_adapter.create_engine(settings.DATABASE_URL)


def make_session_maker(bind: AsyncEngine) -> async_sessionmaker:
    """
    Build a session factory for `bind`.

    expire_on_commit=False keeps row attributes readable after the store
    commits, which the service relies on when it returns inserted rows.
    """
    return async_sessionmaker(
        bind,
        class_=SQLModelAsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async_session_maker = make_session_maker(engine)


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI to get database session.

    The row store commits its own writes, so this only guarantees that a
    half-finished transaction is rolled back and the session is closed.

    Usage in FastAPI:
        @router.get("/endpoint")
        async def endpoint(session: AsyncSession = Depends(get_session)):
            pass
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
