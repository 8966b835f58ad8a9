"""Shared test fixtures."""

from __future__ import annotations

from datetime import date

import pytest

from recipehub.adapters.outbound.cache import MemoryCacheAdapter
from recipehub.domain.entities import Category, Recipe
from recipehub.domain.exceptions import ProviderError
from recipehub.ports.outbound import MetricsStorePort, RecipeProviderPort
from recipehub.shared.providers import QuotaLedger, RequestOptimizer


# ═══════════════════════════════════════════════════════════════
#  Time doubles
# ═══════════════════════════════════════════════════════════════
class FakeToday:
    """Callable calendar date that tests can move forward."""

    def __init__(self, start: date = date(2024, 3, 1)) -> None:
        self.value = start

    def __call__(self) -> date:
        return self.value


class FakeClock:
    """Monotonic clock whose ``sleep`` advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ═══════════════════════════════════════════════════════════════
#  In-memory metrics store
# ═══════════════════════════════════════════════════════════════
class InMemoryMetricsStore(MetricsStorePort):
    """Dict-backed store; ``rows`` is exposed for assertions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.rows: dict[str, str] = dict(initial or {})

    async def load_all(self) -> dict[str, str]:
        return dict(self.rows)

    async def save(self, provider_name: str, blob: str) -> None:
        self.rows[provider_name] = blob

    async def save_many(self, blobs: dict[str, str]) -> None:
        self.rows.update(blobs)


# ═══════════════════════════════════════════════════════════════
#  In-memory provider
# ═══════════════════════════════════════════════════════════════
class FakeProvider(RecipeProviderPort):
    """Deterministic provider; every method counts its invocations."""

    def __init__(
        self,
        name: str,
        ledger: QuotaLedger,
        *,
        quota: int = 100,
        recipes: list[Recipe] | None = None,
        categories: list[Category] | None = None,
        cuisines: list[str] | None = None,
        ingredients: list[str] | None = None,
        fail: bool = False,
        random_base: int = 0,
    ) -> None:
        self._name = name
        self._ledger = ledger
        self._quota = quota
        self.recipes = recipes or []
        self.categories = categories or []
        self.cuisines = cuisines or []
        self.ingredients = ingredients or []
        self.fail = fail
        self.random_base = random_base
        self.calls: list[tuple[str, object]] = []

    def _guard(self, op: str, arg: object = None) -> None:
        self.calls.append((op, arg))
        if self.fail:
            raise ProviderError(self._name, f"{op} failed")

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def daily_quota(self) -> int:
        return self._quota

    async def register_quota(self) -> None:
        await self._ledger.register(self._name, self._quota)

    async def get_remaining_calls(self) -> int:
        return await self._ledger.remaining_calls(self._name)

    async def increment_usage(self, count: int = 1) -> None:
        await self._ledger.increment_usage(self._name, count)

    async def reset_daily_counter(self) -> None:
        await self._ledger.reset_counter(self._name)

    async def get_by_id(self, recipe_id: int) -> Recipe | None:
        self._guard("get_by_id", recipe_id)
        return next((r for r in self.recipes if r.id == recipe_id), None)

    async def search_by_name(self, name: str, limit: int = 10) -> list[Recipe]:
        self._guard("search_by_name", name)
        return [r for r in self.recipes if name.casefold() in r.name.casefold()][:limit]

    async def get_random(self, count: int = 1) -> list[Recipe]:
        self._guard("get_random", count)
        return [
            Recipe(id=self.random_base + i, name=f"{self._name} random {i}", source=self._name)
            for i in range(count)
        ]

    async def get_categories(self) -> list[Category]:
        self._guard("get_categories")
        return list(self.categories)

    async def get_by_category(self, category: str, limit: int = 20) -> list[Recipe]:
        self._guard("get_by_category", category)
        return [r for r in self.recipes if r.category.casefold() == category.casefold()][:limit]

    async def get_cuisines(self) -> list[str]:
        self._guard("get_cuisines")
        return list(self.cuisines)

    async def get_by_cuisine(self, cuisine: str, limit: int = 20) -> list[Recipe]:
        self._guard("get_by_cuisine", cuisine)
        return [r for r in self.recipes if r.area.casefold() == cuisine.casefold()][:limit]

    async def get_ingredients(self) -> list[str]:
        self._guard("get_ingredients")
        return list(self.ingredients)

    async def get_by_ingredient(self, ingredient: str, limit: int = 20) -> list[Recipe]:
        self._guard("get_by_ingredient", ingredient)
        return [
            r for r in self.recipes
            if any(i.name.casefold() == ingredient.casefold() for i in r.ingredients)
        ][:limit]


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def today() -> FakeToday:
    return FakeToday()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics_store() -> InMemoryMetricsStore:
    return InMemoryMetricsStore()


@pytest.fixture
def ledger(metrics_store: InMemoryMetricsStore, today: FakeToday) -> QuotaLedger:
    return QuotaLedger(metrics_store, today=today)


@pytest.fixture
def cache() -> MemoryCacheAdapter:
    return MemoryCacheAdapter()


@pytest.fixture
def optimizer(ledger: QuotaLedger, cache: MemoryCacheAdapter, clock: FakeClock) -> RequestOptimizer:
    return RequestOptimizer(ledger, cache, clock=clock, sleep=clock.sleep)
