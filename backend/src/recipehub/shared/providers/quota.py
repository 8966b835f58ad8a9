"""Quota ledger: per-provider daily call budgets.

Counters reset lazily: every read or write first checks whether the
record's ``last_reset_date`` is before today and, if so, zeroes it.  There
is no background timer.  Records are persisted as JSON blobs through a
``MetricsStorePort``; persistence failures are logged and the in-memory
state keeps serving.
"""

from __future__ import annotations

import asyncio
import dataclasses
from datetime import date
from typing import Callable, Iterable

import structlog
from pydantic import TypeAdapter
from pydantic_core import to_json

from recipehub.domain.entities import UsageMetrics
from recipehub.domain.exceptions import InvalidArgumentError
from recipehub.ports.outbound import MetricsStorePort
from recipehub.shared.observability.metrics import PROVIDER_QUOTA_REMAINING

logger = structlog.get_logger(__name__)

_METRICS_ADAPTER: TypeAdapter[UsageMetrics] = TypeAdapter(UsageMetrics)


class QuotaLedger:
    """Durable map of provider name -> ``UsageMetrics``.

    Lookups are case-insensitive; the name given at registration is kept
    for display.  Only :meth:`register` raises, every other method degrades
    to a safe answer for unknown providers.
    """

    def __init__(
        self,
        store: MetricsStorePort | None = None,
        *,
        today: Callable[[], date] = date.today,
        warning_threshold: float = 0.90,
    ) -> None:
        self._store = store
        self._today = today
        self._warning_thr = warning_threshold

        self._metrics: dict[str, UsageMetrics] = {}
        self._lock = asyncio.Lock()
        self._warned: set[str] = set()

    # ── Registration ─────────────────────────────────────────
    async def register(self, provider_name: str, daily_quota: int) -> None:
        """Create the provider's record, or update its quota if it changed."""
        name = (provider_name or "").strip()
        if not name:
            raise InvalidArgumentError("provider_name must not be empty")
        if daily_quota <= 0:
            raise InvalidArgumentError(f"daily_quota must be positive, got {daily_quota}")

        async with self._lock:
            key = name.casefold()
            existing = self._metrics.get(key)
            if existing is None:
                record = UsageMetrics(name, daily_quota, 0, self._today())
                self._metrics[key] = record
                logger.info("provider_quota_registered", provider=name, daily_quota=daily_quota)
                await self._persist(record)
                return

            changed = existing.refresh(self._today())
            if existing.daily_quota != daily_quota:
                logger.info(
                    "provider_quota_updated",
                    provider=existing.provider_name,
                    old_quota=existing.daily_quota,
                    new_quota=daily_quota,
                )
                existing.daily_quota = daily_quota
                changed = True
            if changed:
                await self._persist(existing)

    # ── Reads ────────────────────────────────────────────────
    async def get_metrics(self, provider_name: str) -> UsageMetrics | None:
        async with self._lock:
            record = await self._current(provider_name)
            return dataclasses.replace(record) if record else None

    async def get_all_metrics(self) -> dict[str, UsageMetrics]:
        async with self._lock:
            result: dict[str, UsageMetrics] = {}
            for key in list(self._metrics):
                record = await self._current(key)
                if record is not None:
                    result[record.provider_name] = dataclasses.replace(record)
            return result

    async def is_quota_exceeded(self, provider_name: str) -> bool:
        async with self._lock:
            record = await self._current(provider_name)
            return True if record is None else record.is_quota_exceeded

    async def remaining_calls(self, provider_name: str) -> int:
        async with self._lock:
            record = await self._current(provider_name)
            return 0 if record is None else record.remaining_calls

    async def usage_percentage(self, provider_name: str) -> float:
        async with self._lock:
            record = await self._current(provider_name)
            return 100.0 if record is None else record.usage_percentage

    async def recommend_provider(self, preferred_order: Iterable[str] | None = None) -> str | None:
        """Pick a provider that can still take calls.

        With ``preferred_order`` the first listed provider under quota wins.
        Otherwise (or when none of them qualifies) the provider with the most
        remaining calls is returned, or None when every budget is spent.
        """
        async with self._lock:
            for name in preferred_order or ():
                record = await self._current(name)
                if record is not None and not record.is_quota_exceeded:
                    return record.provider_name

            best: UsageMetrics | None = None
            for key in list(self._metrics):
                record = await self._current(key)
                if record is None:
                    continue
                if best is None or record.remaining_calls > best.remaining_calls:
                    best = record
            if best is None or best.remaining_calls <= 0:
                return None
            return best.provider_name

    # ── Writes ───────────────────────────────────────────────
    async def increment_usage(self, provider_name: str, count: int = 1) -> None:
        if count <= 0:
            return
        async with self._lock:
            record = self._metrics.get((provider_name or "").casefold())
            if record is None:
                logger.debug("increment_unknown_provider", provider=provider_name)
                return
            record.refresh(self._today())
            record.increment(count)
            self._check_warning(record)
            await self._persist(record)

    async def reset_counter(self, provider_name: str) -> None:
        async with self._lock:
            record = self._metrics.get((provider_name or "").casefold())
            if record is None:
                return
            record.reset(self._today())
            self._warned.discard(record.provider_name.casefold())
            logger.info("provider_quota_reset", provider=record.provider_name)
            await self._persist(record)

    # ── Bulk persistence ─────────────────────────────────────
    async def save_all(self) -> None:
        if self._store is None:
            return
        async with self._lock:
            blobs = {m.provider_name: _encode(m) for m in self._metrics.values()}
        try:
            await self._store.save_many(blobs)
        except Exception as exc:
            logger.error("metrics_save_all_failed", error=str(exc))

    async def load_all(self) -> int:
        """Load persisted records, applying the lazy reset. Returns the count loaded."""
        if self._store is None:
            return 0
        try:
            rows = await self._store.load_all()
        except Exception as exc:
            logger.error("metrics_load_failed", error=str(exc))
            return 0

        today = self._today()
        loaded = 0
        async with self._lock:
            for name, blob in rows.items():
                try:
                    record = _METRICS_ADAPTER.validate_json(blob)
                except ValueError as exc:
                    logger.warning("metrics_record_invalid", provider=name, error=str(exc))
                    continue
                record.refresh(today)
                self._metrics[record.provider_name.casefold()] = record
                self._publish_gauge(record)
                loaded += 1
        logger.info("metrics_loaded", count=loaded)
        return loaded

    # ── Internals ────────────────────────────────────────────
    async def _current(self, provider_name: str) -> UsageMetrics | None:
        """Look up a record and apply the lazy reset. Caller holds lock."""
        record = self._metrics.get((provider_name or "").casefold())
        if record is None:
            return None
        if record.refresh(self._today()):
            self._warned.discard(record.provider_name.casefold())
            logger.info("provider_quota_daily_reset", provider=record.provider_name)
            await self._persist(record)
        return record

    async def _persist(self, record: UsageMetrics) -> None:
        """Write one record through the store. Caller holds lock."""
        self._publish_gauge(record)
        if self._store is None:
            return
        try:
            await self._store.save(record.provider_name, _encode(record))
        except Exception as exc:
            logger.error("metrics_persist_failed", provider=record.provider_name, error=str(exc))

    def _check_warning(self, record: UsageMetrics) -> None:
        """Emit early warning when approaching the daily limit. Caller holds lock."""
        key = record.provider_name.casefold()
        usage = record.usage_percentage / 100.0
        if usage < self._warning_thr:
            self._warned.discard(key)
            return
        if key in self._warned:
            return
        self._warned.add(key)
        logger.warning(
            "quota_warning",
            provider=record.provider_name,
            usage_pct=float(f"{record.usage_percentage:.1f}"),
            used_today=record.used_today,
            daily_quota=record.daily_quota,
        )

    @staticmethod
    def _publish_gauge(record: UsageMetrics) -> None:
        PROVIDER_QUOTA_REMAINING.labels(provider=record.provider_name).set(record.remaining_calls)


def _encode(record: UsageMetrics) -> str:
    return to_json(record).decode()
