"""Async SQLAlchemy engine and session factory.

Learn: create_async_engine pools connections; each request gets its own
AsyncSession through the get_db dependency. Tests override get_db with
a session bound to an in-memory SQLite engine.
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from purposelog.config import settings
from purposelog.db.models import Base


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine; pool sizing only applies to server databases."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=echo)
    return create_async_engine(
        database_url,
        echo=echo,
        pool_size=5,
        max_overflow=15,
        pool_pre_ping=True,
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory — each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        yield session


async def create_all(bind: AsyncEngine) -> None:
    """Create every table (dev bootstrap and tests; prod uses Alembic)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
