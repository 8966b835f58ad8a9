"""SQLAlchemy async engine and session factory for the quota ledger store."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from recipehub.config import Settings


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    kwargs: dict[str, Any] = {"echo": echo}
    if not url.startswith("sqlite"):
        # SQLite drivers pick their own pool class
        kwargs.update(pool_size=5, max_overflow=5, pool_pre_ping=True)
    return create_async_engine(url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


def engine_from_settings(settings: Settings) -> AsyncEngine:
    return create_engine(settings.metrics_database_url, echo=settings.app_debug)
