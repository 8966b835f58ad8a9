"""MetricsStorePort implementations."""

from __future__ import annotations

import asyncio

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine

from recipehub.adapters.outbound.persistence.database import create_session_factory
from recipehub.adapters.outbound.persistence.models import Base, ProviderMetricsModel
from recipehub.ports.outbound import MetricsStorePort

logger = structlog.get_logger(__name__)


class SQLAlchemyMetricsStore(MetricsStorePort):
    """Stores one row per provider in ``api_metrics``; creates the table on first use."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._factory = create_session_factory(engine)
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._schema_ready = True
            logger.debug("metrics_schema_ready")

    async def load_all(self) -> dict[str, str]:
        await self._ensure_schema()
        async with self._factory() as session:
            rows = (await session.execute(select(ProviderMetricsModel))).scalars().all()
            return {row.provider_name: row.metrics for row in rows}

    async def save(self, provider_name: str, blob: str) -> None:
        await self.save_many({provider_name: blob})

    async def save_many(self, blobs: dict[str, str]) -> None:
        if not blobs:
            return
        await self._ensure_schema()
        async with self._factory() as session:
            try:
                for name, blob in blobs.items():
                    await session.merge(ProviderMetricsModel(provider_name=name, metrics=blob))
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await self._engine.dispose()
