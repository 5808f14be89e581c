"""Database session management using SQLModel + async SQLAlchemy."""

from __future__ import annotations

from typing import Any, AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from osfit.config import get_settings


settings = get_settings()


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL.

    Pool sizing only applies to server databases; SQLite (used in tests and
    local runs) gets foreign keys switched on so session deletes cascade.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite and (":memory:" in database_url or database_url.endswith("://")):
        # One shared connection, otherwise every checkout sees an empty database
        kwargs["poolclass"] = StaticPool
        kwargs["connect_args"] = {"check_same_thread": False}
    elif not is_sqlite:
        kwargs["pool_size"] = settings.database_pool_size
        kwargs["max_overflow"] = settings.database_max_overflow

    new_engine = create_async_engine(database_url, **kwargs)

    if is_sqlite:
        @event.listens_for(new_engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# Create async engine
engine = build_engine(str(settings.database_url), echo=settings.debug)

# Session factory
async_session_maker = build_session_maker(engine)


async def init_db() -> None:
    """Initialize database tables.

    Note: In production, use migrations instead.
    This is here for development convenience.
    """
    # Register tables on the metadata
    import osfit.database.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI routes."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
