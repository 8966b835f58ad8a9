"""Dependency injection container: wires adapters to ports.

FastAPI's ``Depends()`` system uses these factories to inject the
aggregator into route handlers.  Everything is built once per process: the
quota ledger is loaded from its store, providers register their quotas,
and configured priority and strategies are applied before the first
request is served.
"""

from __future__ import annotations

import asyncio
from functools import lru_cache

import structlog

from recipehub.adapters.outbound.cache import RedisCacheAdapter
from recipehub.adapters.outbound.persistence.database import engine_from_settings
from recipehub.adapters.outbound.persistence.repositories import SQLAlchemyMetricsStore
from recipehub.adapters.outbound.providers import MealDbProvider, SpoonacularProvider
from recipehub.application.services import RecipeAggregator
from recipehub.config import Settings, get_settings
from recipehub.ports.outbound import CachePort, MetricsStorePort, RecipeProviderPort
from recipehub.shared.providers import QuotaLedger, RequestOptimizer

logger = structlog.get_logger(__name__)


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


# ── Singletons ───────────────────────────────────────────────
_cache: CachePort | None = None
_metrics_store: MetricsStorePort | None = None
_ledger: QuotaLedger | None = None
_optimizer: RequestOptimizer | None = None
_providers: list[RecipeProviderPort] = []
_aggregator: RecipeAggregator | None = None

_init_lock = asyncio.Lock()


def get_cache(settings: Settings | None = None) -> CachePort:
    global _cache
    if _cache is None:
        s = settings or get_cached_settings()
        _cache = RedisCacheAdapter(
            s.redis_url,
            s.redis_max_connections,
            key_prefix=s.cache_key_prefix,
        )
    return _cache


def get_metrics_store(settings: Settings | None = None) -> MetricsStorePort:
    global _metrics_store
    if _metrics_store is None:
        s = settings or get_cached_settings()
        _metrics_store = SQLAlchemyMetricsStore(engine_from_settings(s))
    return _metrics_store


def get_ledger(settings: Settings | None = None) -> QuotaLedger:
    global _ledger
    if _ledger is None:
        s = settings or get_cached_settings()
        _ledger = QuotaLedger(
            get_metrics_store(s),
            warning_threshold=s.conservative_threshold_pct / 100.0,
        )
    return _ledger


def get_optimizer(settings: Settings | None = None) -> RequestOptimizer:
    global _optimizer
    if _optimizer is None:
        s = settings or get_cached_settings()
        _optimizer = RequestOptimizer(
            get_ledger(s),
            get_cache(s),
            min_interval_ms=s.optimizer_min_interval_ms,
            lock_scope=s.optimizer_lock_scope,
            conservative_threshold_pct=s.conservative_threshold_pct,
        )
    return _optimizer


def build_providers(settings: Settings, ledger: QuotaLedger, cache: CachePort) -> list[RecipeProviderPort]:
    """TheMealDB always; Spoonacular only when an API key is configured."""
    providers: list[RecipeProviderPort] = [
        MealDbProvider(
            ledger=ledger,
            cache=cache,
            api_key=settings.mealdb_api_key,
            base_url=settings.mealdb_base_url,
            daily_quota=settings.mealdb_daily_quota,
            timeout=settings.provider_timeout_seconds,
            cache_durations=settings.cache_durations,
        )
    ]
    if settings.spoonacular_api_key:
        providers.append(
            SpoonacularProvider(
                api_key=settings.spoonacular_api_key,
                ledger=ledger,
                cache=cache,
                base_url=settings.spoonacular_base_url,
                daily_quota=settings.spoonacular_daily_quota,
                timeout=settings.provider_timeout_seconds,
                cache_durations=settings.cache_durations,
            )
        )
    else:
        logger.warning("spoonacular_disabled_no_api_key")
    return providers


async def get_aggregator(settings: Settings | None = None) -> RecipeAggregator:
    """Create or return the singleton aggregator.

    Uses asyncio.Lock to prevent double-initialization under concurrent access.
    """
    global _aggregator, _providers
    if _aggregator is not None:
        return _aggregator
    async with _init_lock:
        if _aggregator is not None:
            return _aggregator  # another coroutine won the race
        s = settings or get_cached_settings()
        ledger = get_ledger(s)
        cache = get_cache(s)
        optimizer = get_optimizer(s)

        await ledger.load_all()
        providers = build_providers(s, ledger, cache)
        for provider in providers:
            await provider.register_quota()

        registered = {p.provider_name.casefold() for p in providers}
        priority = [n for n in s.priority_list if n.casefold() in registered]
        skipped = [n for n in s.priority_list if n.casefold() not in registered]
        if skipped:
            logger.warning("priority_names_not_registered", names=skipped)

        aggregator = RecipeAggregator(
            providers,
            optimizer,
            cache=cache,
            durations=s.cache_durations,
            priority=priority or None,
        )
        for name, strategy in s.strategy_map.items():
            if name.casefold() in registered:
                aggregator.set_strategy(name, strategy)
            else:
                logger.warning("strategy_provider_not_registered", provider=name)

        _providers = providers
        _aggregator = aggregator
        logger.info(
            "container_ready",
            providers=aggregator.get_priority(),
            lock_scope=optimizer.lock_scope.value,
        )
    return _aggregator


async def shutdown() -> None:
    """Close HTTP clients, the cache and the ledger store, then drop singletons."""
    global _cache, _metrics_store, _ledger, _optimizer, _providers, _aggregator
    if _ledger is not None:
        await _ledger.save_all()
    for provider in _providers:
        try:
            await provider.close()
        except Exception as exc:
            logger.warning("provider_close_failed", provider=provider.provider_name, error=str(exc))
    if _cache is not None:
        try:
            await _cache.close()
        except Exception as exc:
            logger.warning("cache_close_failed", error=str(exc))
    if _metrics_store is not None:
        try:
            await _metrics_store.close()
        except Exception as exc:
            logger.warning("metrics_store_close_failed", error=str(exc))
    _cache = _metrics_store = _ledger = _optimizer = _aggregator = None
    _providers = []


# ── Route dependencies ───────────────────────────────────────
async def get_recipe_aggregator() -> RecipeAggregator:
    return await get_aggregator()
