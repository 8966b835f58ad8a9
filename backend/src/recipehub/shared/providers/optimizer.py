"""Request optimizer: the single chokepoint for outbound provider calls.

Every provider call goes through :meth:`RequestOptimizer.try_optimize`
(or one of the wrappers built on it), which in order:

1. answers from the cache when a key is given and the entry is live,
2. enters the critical section (one global lock by default),
3. applies the provider's quota strategy,
4. spaces calls so consecutive starts are at least ``min_interval_ms`` apart,
5. runs the action and charges its cost to the quota ledger,
6. stores a non-None result in the cache.

Refusals come back as a tagged ``OptimizeOutcome``; :meth:`optimize`
unwraps it and raises the structured error instead.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable, Hashable, Iterable, TypeVar

import structlog

from recipehub.domain.enums import OptimizationStrategy
from recipehub.domain.exceptions import InvalidArgumentError
from recipehub.ports.outbound import CachePort
from recipehub.shared.observability.metrics import (
    PROVIDER_CALL_LATENCY,
    PROVIDER_CALLS,
    QUOTA_REFUSALS,
)
from recipehub.shared.providers.quota import QuotaLedger
from recipehub.shared.providers.types import LockScope, OptimizeOutcome

logger = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")
K = TypeVar("K", bound=Hashable)


class RequestOptimizer:
    """Cache-first, quota-aware, rate-spaced executor for provider calls."""

    def __init__(
        self,
        ledger: QuotaLedger,
        cache: CachePort,
        *,
        min_interval_ms: int = 100,
        lock_scope: LockScope = LockScope.GLOBAL,
        conservative_threshold_pct: float = 90.0,
        strategies: dict[str, OptimizationStrategy] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._cache = cache
        self._min_interval = min_interval_ms / 1000.0
        self._lock_scope = lock_scope
        self._conservative_pct = conservative_threshold_pct
        self._clock = clock
        self._sleep = sleep

        self._strategies: dict[str, OptimizationStrategy] = {}
        self._last_call: dict[str, float] = {}
        self._global_lock = asyncio.Lock()
        self._provider_locks: dict[str, asyncio.Lock] = {}

        for name, strategy in (strategies or {}).items():
            self.set_strategy(name, strategy)

    @property
    def ledger(self) -> QuotaLedger:
        return self._ledger

    @property
    def cache(self) -> CachePort:
        return self._cache

    @property
    def lock_scope(self) -> LockScope:
        return self._lock_scope

    # ── Strategies ───────────────────────────────────────────
    def set_strategy(self, provider_name: str, strategy: OptimizationStrategy) -> None:
        name = (provider_name or "").strip()
        if not name:
            raise InvalidArgumentError("provider_name must not be empty")
        parsed = OptimizationStrategy(strategy)
        self._strategies[name.casefold()] = parsed
        logger.info("optimization_strategy_set", provider=name, strategy=parsed.value)

    def get_strategy(self, provider_name: str) -> OptimizationStrategy:
        return self._strategies.get(
            (provider_name or "").casefold(), OptimizationStrategy.BALANCED
        )

    # ── Core operation ───────────────────────────────────────
    async def try_optimize(
        self,
        provider_name: str,
        action: Callable[[], Awaitable[T]],
        *,
        cache_key: str | None = None,
        cache_ttl: float | None = None,
        api_cost: int = 1,
        result_type: Any = Any,
    ) -> OptimizeOutcome[T]:
        """Run ``action`` under the optimizer's rules and report what happened.

        Never raises for refusals or action failures; those are returned as
        the outcome's ``kind`` with the structured error attached.
        """
        if cache_key:
            cached = await self._cache.get(cache_key, result_type)
            if cached is not None:
                logger.debug("optimizer_cache_hit", provider=provider_name, cache_key=cache_key)
                return OptimizeOutcome.success(provider_name, cached, from_cache=True)

        async with self._lock_for(provider_name):
            refusal: OptimizeOutcome[T] | None = await self._apply_policy(provider_name)
            if refusal is not None:
                QUOTA_REFUSALS.labels(
                    provider=provider_name,
                    strategy=self.get_strategy(provider_name).value,
                ).inc()
                logger.info(
                    "optimizer_call_refused",
                    provider=provider_name,
                    kind=refusal.kind.value,
                    alternative=refusal.alternative,
                )
                return refusal

            await self._respect_interval(provider_name)

            started = self._clock()
            self._last_call[provider_name.casefold()] = started
            try:
                result = await action()
            except Exception as exc:
                latency_ms = (self._clock() - started) * 1000
                PROVIDER_CALLS.labels(provider=provider_name, outcome="error").inc()
                logger.warning(
                    "provider_request_failed",
                    provider=provider_name,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    latency_ms=float(f"{latency_ms:.1f}"),
                )
                return OptimizeOutcome.failed(provider_name, exc)

            elapsed = self._clock() - started
            PROVIDER_CALLS.labels(provider=provider_name, outcome="ok").inc()
            PROVIDER_CALL_LATENCY.labels(provider=provider_name).observe(max(elapsed, 0.0))
            logger.debug(
                "provider_request_success",
                provider=provider_name,
                latency_ms=float(f"{elapsed * 1000:.1f}"),
            )

            await self._ledger.increment_usage(provider_name, api_cost)

            if cache_key and cache_ttl and result is not None:
                await self._cache.set(cache_key, result, ttl_seconds=cache_ttl)

            return OptimizeOutcome.success(provider_name, result)

    async def optimize(
        self,
        provider_name: str,
        action: Callable[[], Awaitable[T]],
        *,
        cache_key: str | None = None,
        cache_ttl: float | None = None,
        api_cost: int = 1,
        result_type: Any = Any,
    ) -> T | None:
        """Like :meth:`try_optimize` but raises refusals and action errors.

        Raises:
            QuotaNearExhaustedError: ``CONSERVATIVE_QUOTA`` refused the call.
            QuotaExceededError: ``QUOTA_PROTECTION`` refused the call.
            ProviderFallbackError: ``FALLBACK`` suggests another provider.
        """
        outcome = await self.try_optimize(
            provider_name,
            action,
            cache_key=cache_key,
            cache_ttl=cache_ttl,
            api_cost=api_cost,
            result_type=result_type,
        )
        return outcome.unwrap()

    async def optimize_collection(
        self,
        provider_name: str,
        action: Callable[[], Awaitable[list[T] | None]],
        *,
        cache_key: str | None = None,
        cache_ttl: float | None = None,
        api_cost: int = 1,
        result_type: Any = list[Any],
    ) -> list[T]:
        result = await self.optimize(
            provider_name,
            action,
            cache_key=cache_key,
            cache_ttl=cache_ttl,
            api_cost=api_cost,
            result_type=result_type,
        )
        return list(result) if result is not None else []

    # ── Batching ─────────────────────────────────────────────
    async def batch_process(
        self,
        provider_name: str,
        items: Iterable[K],
        batch_action: Callable[[list[K]], Awaitable[dict[K, R]]],
        *,
        batch_size: int = 10,
        key_fn: Callable[[K], str] | None = None,
        cache_ttl: float | None = None,
        api_cost_per_batch: int = 1,
        result_type: Any = Any,
    ) -> dict[K, R]:
        """Resolve many items with one charged call per chunk.

        Items already cached under ``key_fn(item)`` are answered from the
        cache; the rest are sent to ``batch_action`` in chunks of
        ``batch_size`` and each returned value is cached under its own key.
        """
        if batch_size <= 0:
            raise InvalidArgumentError(f"batch_size must be positive, got {batch_size}")

        results: dict[K, R] = {}
        pending: list[K] = []
        for item in items:
            if key_fn is not None:
                cached = await self._cache.get(key_fn(item), result_type)
                if cached is not None:
                    results[item] = cached
                    continue
            pending.append(item)

        for start in range(0, len(pending), batch_size):
            chunk = pending[start:start + batch_size]
            chunk_results = await self.optimize(
                provider_name,
                lambda chunk=chunk: batch_action(chunk),
                api_cost=api_cost_per_batch,
            )
            for item, value in (chunk_results or {}).items():
                results[item] = value
                if key_fn is not None and cache_ttl and value is not None:
                    await self._cache.set(key_fn(item), value, ttl_seconds=cache_ttl)

        logger.debug(
            "batch_processed",
            provider=provider_name,
            total=len(results),
            fetched=len(pending),
            batches=(len(pending) + batch_size - 1) // batch_size,
        )
        return results

    # ── Multi-provider ───────────────────────────────────────
    async def execute_multi(
        self,
        actions_by_provider: dict[str, Callable[[], Awaitable[T]]],
        aggregator_fn: Callable[[dict[str, T]], R],
        *,
        cache_prefix: str | None = None,
        cache_ttl: float | None = None,
        result_type: Any = Any,
        aggregate_type: Any = Any,
    ) -> R:
        """Run one action per provider concurrently and combine the results.

        Providers whose call was refused, failed or returned None are
        absent from the dict handed to ``aggregator_fn``.
        """
        aggregate_key = f"{cache_prefix}_aggregated" if cache_prefix else None
        if aggregate_key:
            cached = await self._cache.get(aggregate_key, aggregate_type)
            if cached is not None:
                return cached

        names = list(actions_by_provider)
        outcomes = await asyncio.gather(
            *(
                self.try_optimize(
                    name,
                    actions_by_provider[name],
                    cache_key=f"{cache_prefix}_{name}" if cache_prefix else None,
                    cache_ttl=cache_ttl,
                    result_type=result_type,
                )
                for name in names
            )
        )

        collected: dict[str, T] = {}
        for name, outcome in zip(names, outcomes):
            if outcome.ok and outcome.value is not None:
                collected[name] = outcome.value
            elif not outcome.ok:
                logger.info("multi_provider_skipped", provider=name, kind=outcome.kind.value)

        aggregate = aggregator_fn(collected)
        if aggregate_key and cache_ttl and aggregate is not None:
            await self._cache.set(aggregate_key, aggregate, ttl_seconds=cache_ttl)
        return aggregate

    # ── Internals ────────────────────────────────────────────
    def _lock_for(self, provider_name: str) -> asyncio.Lock:
        if self._lock_scope == LockScope.GLOBAL:
            return self._global_lock
        key = provider_name.casefold()
        lock = self._provider_locks.get(key)
        if lock is None:
            lock = self._provider_locks[key] = asyncio.Lock()
        return lock

    async def _apply_policy(self, provider_name: str) -> OptimizeOutcome[Any] | None:
        """Return a refusal outcome, or None to proceed. Caller holds lock."""
        strategy = self.get_strategy(provider_name)

        if strategy == OptimizationStrategy.CONSERVATIVE_QUOTA:
            usage_pct = await self._ledger.usage_percentage(provider_name)
            if usage_pct >= self._conservative_pct:
                return OptimizeOutcome.near_exhausted(provider_name, usage_pct)
            return None

        if not await self._ledger.is_quota_exceeded(provider_name):
            return None

        if strategy == OptimizationStrategy.QUOTA_PROTECTION:
            return OptimizeOutcome.quota_exceeded(provider_name)

        if strategy == OptimizationStrategy.FALLBACK:
            alternative = await self._ledger.recommend_provider()
            if alternative and alternative.casefold() != provider_name.casefold():
                return OptimizeOutcome.fallback(provider_name, alternative)

        # BALANCED, or FALLBACK with nowhere better to go: over-count is accepted
        return None

    async def _respect_interval(self, provider_name: str) -> None:
        last = self._last_call.get(provider_name.casefold())
        if last is None:
            return
        wait = self._min_interval - (self._clock() - last)
        if wait > 0:
            await self._sleep(wait)
