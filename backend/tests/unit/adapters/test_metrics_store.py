"""Unit tests for the SQLAlchemy-backed quota ledger store."""

from __future__ import annotations

from datetime import timedelta

import pytest

from recipehub.adapters.outbound.persistence.database import create_engine
from recipehub.adapters.outbound.persistence.repositories import SQLAlchemyMetricsStore
from recipehub.shared.providers import QuotaLedger


@pytest.fixture
def store() -> SQLAlchemyMetricsStore:
    return SQLAlchemyMetricsStore(create_engine("sqlite+aiosqlite:///:memory:"))


class TestSQLAlchemyMetricsStore:
    @pytest.mark.asyncio
    async def test_empty_store(self, store) -> None:
        assert await store.load_all() == {}
        await store.close()

    @pytest.mark.asyncio
    async def test_save_is_an_upsert(self, store) -> None:
        await store.save("TheMealDB", '{"v": 1}')
        await store.save("TheMealDB", '{"v": 2}')
        await store.save_many({"Spoonacular": '{"v": 3}'})
        assert await store.load_all() == {"TheMealDB": '{"v": 2}', "Spoonacular": '{"v": 3}'}
        await store.close()

    @pytest.mark.asyncio
    async def test_ledger_survives_restart(self, store, today) -> None:
        ledger = QuotaLedger(store, today=today)
        await ledger.register("Spoonacular", 150)
        await ledger.increment_usage("Spoonacular", 12)

        restarted = QuotaLedger(store, today=today)
        assert await restarted.load_all() == 1
        assert await restarted.remaining_calls("Spoonacular") == 138

        today.value += timedelta(days=1)
        next_day = QuotaLedger(store, today=today)
        await next_day.load_all()
        assert await next_day.remaining_calls("Spoonacular") == 150
        await store.close()
