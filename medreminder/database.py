"""Database engine management.

Uses lazy initialization to ensure the engine is created within
the correct event loop context, avoiding asyncpg event loop issues.
"""

from typing import Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from medreminder.config import settings

# Engine - lazily initialized
_engine: Optional[AsyncEngine] = None


def _enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on FK enforcement so user deletes cascade under SQLite too."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        try:
            cursor.execute("PRAGMA foreign_keys=ON")
        finally:
            cursor.close()


def build_engine(database_url: str, testing: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL.

    When testing=True, uses NullPool to avoid event loop issues
    with connection pooling across different test event loops.
    """
    if testing or database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=NullPool,
        )
    else:
        engine = create_async_engine(
            database_url,
            echo=settings.log_format == "text" and settings.log_level == "DEBUG",
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )

    if engine.dialect.name == "sqlite":
        _enable_sqlite_foreign_keys(engine)

    return engine


def get_engine() -> AsyncEngine:
    """Get or create the process-wide database engine."""
    global _engine
    if _engine is None:
        _engine = build_engine(settings.database_url, testing=settings.testing)
    return _engine


async def check_database_connection(engine: AsyncEngine | None = None) -> bool:
    """
    Check if the database is reachable.

    Returns:
        True if database is connected, False otherwise.
    """
    try:
        async with (engine or get_engine()).connect() as conn:
            await conn.execute(text("SELECT 1"))
            return True
    except Exception:
        return False


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
