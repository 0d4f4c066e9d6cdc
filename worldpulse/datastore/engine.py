"""
Database engine setup.
Async SQLAlchemy engine, SQLite through aiosqlite by default.
"""

from typing import AsyncGenerator

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from worldpulse.datastore.models import Base
from worldpulse.settings import global_settings

# Global engine instance
engine = None
AsyncSessionLocal = None


async def init_db(database_url: str | None = None, echo: bool | None = None) -> None:
    """
    Create the engine and session factory, then create missing tables.

    Snapshot and signal log tables are created on first start; an existing
    database keeps its rows, so a restart resumes from the stored snapshot.
    """
    global engine, AsyncSessionLocal

    url = database_url or global_settings.database_url
    engine = create_async_engine(
        url,
        echo=global_settings.database_echo if echo is None else echo,
        future=True,
    )

    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug(f"Datastore ready: {engine.url.render_as_string(hide_password=True)}")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session that commits on success and rolls back on error."""
    if AsyncSessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def close_db() -> None:
    """Dispose of the engine."""
    global engine, AsyncSessionLocal
    if engine:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


def get_session_factory():
    """Session factory for schedulers and other direct callers."""
    if AsyncSessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return AsyncSessionLocal
