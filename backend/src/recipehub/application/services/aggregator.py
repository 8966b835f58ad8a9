"""Recipe aggregator: one query, many providers, one answer.

Every provider call is routed through the ``RequestOptimizer``.  List
queries fan out to all providers concurrently; each provider's failure or
quota refusal is discarded on its own, and the surviving results are merged
walking the priority order so the higher-priority copy of a recipe id wins.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar

import structlog

from recipehub.domain.entities import Category, ProviderUsage, Recipe
from recipehub.domain.enums import OptimizationStrategy
from recipehub.domain.exceptions import InvalidArgumentError
from recipehub.ports.outbound import CachePort, RecipeProviderPort
from recipehub.shared import cache_keys
from recipehub.shared.providers.optimizer import RequestOptimizer
from recipehub.shared.providers.router import ProviderPriority
from recipehub.shared.providers.types import CacheDurations, OutcomeKind

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class RecipeAggregator:
    """Orchestrates recipe queries across all registered providers."""

    def __init__(
        self,
        providers: Sequence[RecipeProviderPort],
        optimizer: RequestOptimizer,
        *,
        cache: CachePort | None = None,
        durations: CacheDurations | None = None,
        priority: Iterable[str] | None = None,
    ) -> None:
        if not providers:
            raise InvalidArgumentError("at least one recipe provider is required")
        self._providers: dict[str, RecipeProviderPort] = {p.provider_name: p for p in providers}
        self._optimizer = optimizer
        self._cache = cache or optimizer.cache
        self._ttl = durations or CacheDurations()
        self._priority = ProviderPriority(list(self._providers), priority)
        logger.info("aggregator_initialized", providers=self._priority.get())

    @property
    def providers(self) -> list[RecipeProviderPort]:
        return [self._providers[name] for name in self._priority.get()]

    # ═══════════════════════════════════════════════════════════
    #  Priority & strategies
    # ═══════════════════════════════════════════════════════════
    def get_priority(self) -> list[str]:
        return self._priority.get()

    def set_priority(
        self,
        order: Iterable[str],
        strategies: dict[str, OptimizationStrategy] | None = None,
    ) -> list[str]:
        """Reorder providers; omitted names keep their registration order at the end.

        Every strategy key is resolved before anything changes, so a rejected
        call leaves both the order and the strategies as they were.
        """
        resolved: dict[str, OptimizationStrategy] = {}
        for name, strategy in (strategies or {}).items():
            canonical = self._priority.resolve(name)
            if canonical is None:
                raise InvalidArgumentError(f"Unknown provider: {name!r}")
            resolved[canonical] = OptimizationStrategy(strategy)

        normalised = self._priority.set(order)
        for name, strategy in resolved.items():
            self._optimizer.set_strategy(name, strategy)
        return normalised

    def get_strategies(self) -> dict[str, OptimizationStrategy]:
        return {name: self._optimizer.get_strategy(name) for name in self._priority.get()}

    def set_strategy(self, provider_name: str, strategy: OptimizationStrategy) -> None:
        canonical = self._priority.resolve(provider_name)
        if canonical is None:
            raise InvalidArgumentError(f"Unknown provider: {provider_name!r}")
        self._optimizer.set_strategy(canonical, strategy)

    # ═══════════════════════════════════════════════════════════
    #  Single recipe
    # ═══════════════════════════════════════════════════════════
    async def get_by_id(self, recipe_id: int, preferred_provider: str | None = None) -> Recipe | None:
        """First provider (preferred, then priority order) that knows the id wins."""
        key = cache_keys.recipe(recipe_id)
        cached = await self._cache.get(key, Recipe)
        if cached is not None:
            return cached

        for name in self._priority.chain(preferred_provider):
            provider = self._providers[name]
            outcome = await self._optimizer.try_optimize(
                name,
                lambda provider=provider: provider.get_by_id(recipe_id),
                cache_key=cache_keys.for_provider(name, f"recipe_{recipe_id}"),
                cache_ttl=self._ttl.recipe,
                result_type=Recipe,
            )
            if outcome.kind == OutcomeKind.FALLBACK:
                logger.info("recipe_lookup_fallback", provider=name, alternative=outcome.alternative)
                continue
            if not outcome.ok or outcome.value is None:
                continue
            await self._cache.set(key, outcome.value, ttl_seconds=self._ttl.recipe)
            return outcome.value

        logger.info("recipe_not_found", recipe_id=recipe_id)
        return None

    # ═══════════════════════════════════════════════════════════
    #  Filtered lists
    # ═══════════════════════════════════════════════════════════
    async def search_by_name(self, name: str, limit: int = 10) -> list[Recipe]:
        if not name or not name.strip():
            return []
        term = name.strip()
        return await self._fan_out_recipes(
            cache_keys.search(term, limit),
            lambda p: p.search_by_name(term, limit),
        )

    async def get_by_category(self, category: str, limit: int = 20) -> list[Recipe]:
        if not category or not category.strip():
            return []
        term = category.strip()
        return await self._fan_out_recipes(
            cache_keys.category(term, limit),
            lambda p: p.get_by_category(term, limit),
        )

    async def get_by_cuisine(self, cuisine: str, limit: int = 20) -> list[Recipe]:
        if not cuisine or not cuisine.strip():
            return []
        term = cuisine.strip()
        return await self._fan_out_recipes(
            cache_keys.cuisine(term, limit),
            lambda p: p.get_by_cuisine(term, limit),
        )

    async def get_by_ingredient(self, ingredient: str, limit: int = 20) -> list[Recipe]:
        if not ingredient or not ingredient.strip():
            return []
        term = ingredient.strip()
        return await self._fan_out_recipes(
            cache_keys.ingredient(term, limit),
            lambda p: p.get_by_ingredient(term, limit),
        )

    async def get_random(self, count: int) -> list[Recipe]:
        """Split ``count`` evenly across providers; never cached."""
        if count <= 0:
            return []
        order = self._priority.get()
        share, remainder = divmod(count, len(order))
        requests = [
            (name, share + (1 if i < remainder else 0)) for i, name in enumerate(order)
        ]
        requests = [(name, n) for name, n in requests if n > 0]

        batches = await asyncio.gather(
            *(
                self._call_provider(name, lambda p, n=n: p.get_random(n))
                for name, n in requests
            ),
            return_exceptions=True,
        )
        recipes: list[Recipe] = []
        for (name, _), batch in zip(requests, batches):
            if isinstance(batch, BaseException):
                logger.warning("provider_fanout_error", provider=name, error=str(batch))
                continue
            recipes.extend(batch or [])
        return recipes[:count]

    # ═══════════════════════════════════════════════════════════
    #  Taxonomy
    # ═══════════════════════════════════════════════════════════
    async def get_categories(self) -> list[Category]:
        key = cache_keys.CONSOLIDATED_CATEGORIES
        cached = await self._cache.get(key, list[Category])
        if cached is not None:
            return cached

        per_provider = await self._fan_out(
            lambda p: p.get_categories(),
            cache_key=key,
            cache_ttl=self._ttl.taxonomy,
            result_type=list[Category],
        )
        merged: dict[str, Category] = {}
        for categories in per_provider:
            for category in categories:
                merged.setdefault(category.name.strip().casefold(), category)
        result = sorted(merged.values(), key=lambda c: c.name.casefold())
        if result:
            await self._cache.set(key, result, ttl_seconds=self._ttl.taxonomy)
        return result

    async def get_cuisines(self) -> list[str]:
        return await self._consolidated_names(cache_keys.CONSOLIDATED_CUISINES, lambda p: p.get_cuisines())

    async def get_ingredients(self) -> list[str]:
        return await self._consolidated_names(
            cache_keys.CONSOLIDATED_INGREDIENTS, lambda p: p.get_ingredients()
        )

    # ═══════════════════════════════════════════════════════════
    #  Usage
    # ═══════════════════════════════════════════════════════════
    async def get_usage_statistics(self) -> dict[str, ProviderUsage]:
        key = cache_keys.USAGE_STATISTICS
        cached = await self._cache.get(key, dict[str, ProviderUsage])
        if cached is not None:
            return cached

        providers = self.providers
        remaining = await asyncio.gather(*(p.get_remaining_calls() for p in providers))
        stats = {
            p.provider_name: ProviderUsage(used=max(0, p.daily_quota - left), total=p.daily_quota)
            for p, left in zip(providers, remaining)
        }
        await self._cache.set(key, stats, ttl_seconds=self._ttl.usage_stats)
        return stats

    async def reset_usage(self, provider_name: str) -> None:
        canonical = self._priority.resolve(provider_name)
        if canonical is None:
            raise InvalidArgumentError(f"Unknown provider: {provider_name!r}")
        await self._providers[canonical].reset_daily_counter()
        await self._cache.remove(cache_keys.USAGE_STATISTICS)

    # ── Internals ────────────────────────────────────────────
    async def _call_provider(
        self,
        name: str,
        call: Callable[[RecipeProviderPort], Awaitable[list[T]]],
        *,
        cache_key: str | None = None,
        cache_ttl: float | None = None,
        result_type: Any = Any,
    ) -> list[T]:
        """One optimizer call; refusals and failures become an empty list."""
        provider = self._providers[name]
        outcome = await self._optimizer.try_optimize(
            name,
            lambda: call(provider),
            cache_key=cache_keys.for_provider(name, cache_key) if cache_key else None,
            cache_ttl=cache_ttl,
            result_type=result_type,
        )
        if not outcome.ok:
            logger.info(
                "provider_fanout_skipped",
                provider=name,
                kind=outcome.kind.value,
                error=str(outcome.error) if outcome.error else None,
            )
            return []
        return list(outcome.value or [])

    async def _fan_out(
        self,
        call: Callable[[RecipeProviderPort], Awaitable[list[T]]],
        *,
        cache_key: str | None = None,
        cache_ttl: float | None = None,
        result_type: Any = Any,
    ) -> list[list[T]]:
        """Call every provider concurrently; results come back in priority order."""
        order = self._priority.get()
        results = await asyncio.gather(
            *(
                self._call_provider(
                    name, call, cache_key=cache_key, cache_ttl=cache_ttl, result_type=result_type
                )
                for name in order
            ),
            return_exceptions=True,
        )
        collected: list[list[T]] = []
        for name, result in zip(order, results):
            if isinstance(result, BaseException):
                logger.warning("provider_fanout_error", provider=name, error=str(result))
                continue
            collected.append(result)
        return collected

    async def _fan_out_recipes(
        self,
        key: str,
        call: Callable[[RecipeProviderPort], Awaitable[list[Recipe]]],
    ) -> list[Recipe]:
        cached = await self._cache.get(key, list[Recipe])
        if cached is not None:
            return cached

        per_provider = await self._fan_out(
            call,
            cache_key=key,
            cache_ttl=self._ttl.filtered,
            result_type=list[Recipe],
        )
        merged: list[Recipe] = []
        seen: set[int] = set()
        for recipes in per_provider:
            for recipe in recipes:
                if recipe.id in seen:
                    continue
                seen.add(recipe.id)
                merged.append(recipe)

        if merged:
            await self._cache.set(key, merged, ttl_seconds=self._ttl.filtered)
        logger.debug("recipes_aggregated", cache_key=key, count=len(merged))
        return merged

    async def _consolidated_names(
        self,
        key: str,
        call: Callable[[RecipeProviderPort], Awaitable[list[str]]],
    ) -> list[str]:
        cached = await self._cache.get(key, list[str])
        if cached is not None:
            return cached

        per_provider = await self._fan_out(
            call,
            cache_key=key,
            cache_ttl=self._ttl.taxonomy,
            result_type=list[str],
        )
        merged: dict[str, str] = {}
        for names in per_provider:
            for name in names:
                if name and name.strip():
                    merged.setdefault(name.strip().casefold(), name.strip())
        result = sorted(merged.values(), key=str.casefold)
        if result:
            await self._cache.set(key, result, ttl_seconds=self._ttl.taxonomy)
        return result
