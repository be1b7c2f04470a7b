"""
Database Base Configuration

Declarative base plus factories for the async SQLAlchemy engine and
session maker. Nothing connects at import time; the dependency container
builds an engine from settings when the durable store is selected.

Usage:
    from sprint_engine.db.base import create_engine_from_settings, create_session_maker

    engine = create_engine_from_settings()
    session_maker = create_session_maker(engine)
    async with session_maker() as session:
        result = await session.execute(...)
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from sprint_engine.config import Settings, settings, yaml_config


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def create_engine_from_settings(
    app_settings: Optional[Settings] = None, url: Optional[str] = None
) -> AsyncEngine:
    """
    Create the async engine using pool sizing from config/default.yaml.

    Args:
        app_settings: Settings to read the database URL from (defaults to global)
        url: Explicit database URL, overriding settings

    Returns:
        Configured AsyncEngine
    """
    app_settings = app_settings or settings
    db_config: dict[str, Any] = yaml_config.get("database", {})
    database_url = url or app_settings.POSTGRES_URL

    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=app_settings.DEBUG)

    return create_async_engine(
        database_url,
        pool_size=db_config.get("pool_size", 5),
        max_overflow=db_config.get("max_overflow", 10),
        pool_timeout=db_config.get("pool_timeout", 30),
        echo=app_settings.DEBUG,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create tables that don't exist.

    For production, use Alembic migrations instead.
    """
    # Register models on Base.metadata
    from sprint_engine.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
