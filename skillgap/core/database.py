"""
Async SQLAlchemy engine and session factory construction.

Nothing here is instantiated at import time: the FastAPI lifespan and the
Celery task entry point each build their own engine + session maker and
dispose of it when they are done.
"""
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from skillgap.core.config import settings


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


def create_engine(database_url: Optional[str] = None, **kwargs: Any) -> AsyncEngine:
    """
    Create an async engine.

    Pool sizing from settings applies only when the caller does not choose a
    pool class (workers pass NullPool because each task runs in a fresh loop).
    """
    url = database_url or settings.database_url
    if "poolclass" not in kwargs and not url.startswith("sqlite"):
        kwargs.setdefault("pool_size", settings.db_pool_size)
        kwargs.setdefault("max_overflow", settings.db_max_overflow)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=False, **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory; objects stay readable after commit."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_db(engine: AsyncEngine, create_tables: bool = False) -> None:
    """
    Verify connectivity. Schema is owned by Alembic; create_tables is for
    local development and tests only.
    """
    async with engine.begin() as conn:
        if create_tables:
            # Import models so every table is registered on the metadata
            import skillgap.models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)
        await conn.execute(text("SELECT 1"))


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
