"""Core types for quota-aware provider calls."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Generic, TypeVar

from recipehub.domain.exceptions import (
    DomainError,
    ProviderFallbackError,
    QuotaExceededError,
    QuotaNearExhaustedError,
)

T = TypeVar("T")

_DAY = 24 * 60 * 60


class LockScope(str, enum.Enum):
    """Granularity of the request optimizer's critical section."""

    GLOBAL = "global"
    PROVIDER = "provider"


class OutcomeKind(str, enum.Enum):
    """Result tag of a single optimizer call."""

    OK = "ok"
    QUOTA_EXCEEDED = "quota_exceeded"
    QUOTA_NEAR_EXHAUSTED = "quota_near_exhausted"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass(frozen=True)
class OptimizeOutcome(Generic[T]):
    """What happened to one call routed through the request optimizer.

    Attributes:
        kind:        OK, one of the quota refusals, or FAILED.
        provider:    Provider the call was addressed to.
        value:       The action's result (OK only; may be None).
        error:       The structured refusal or the action's own exception.
        alternative: Provider suggested by the ledger (FALLBACK only).
        from_cache:  True when the value came from the cache without a call.
    """

    kind: OutcomeKind
    provider: str
    value: T | None = None
    error: BaseException | None = None
    alternative: str | None = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.kind == OutcomeKind.OK

    @property
    def refused(self) -> bool:
        return self.kind in (
            OutcomeKind.QUOTA_EXCEEDED,
            OutcomeKind.QUOTA_NEAR_EXHAUSTED,
            OutcomeKind.FALLBACK,
        )

    def unwrap(self) -> T | None:
        """Return the value or raise the structured error."""
        if self.kind == OutcomeKind.OK:
            return self.value
        if self.error is not None:
            raise self.error
        raise DomainError(f"{self.provider}: {self.kind.value}")

    # ── Constructors ─────────────────────────────────────────
    @classmethod
    def success(cls, provider: str, value: T | None, *, from_cache: bool = False) -> OptimizeOutcome[T]:
        return cls(OutcomeKind.OK, provider, value=value, from_cache=from_cache)

    @classmethod
    def quota_exceeded(cls, provider: str) -> OptimizeOutcome[T]:
        return cls(OutcomeKind.QUOTA_EXCEEDED, provider, error=QuotaExceededError(provider))

    @classmethod
    def near_exhausted(cls, provider: str, usage_pct: float) -> OptimizeOutcome[T]:
        return cls(
            OutcomeKind.QUOTA_NEAR_EXHAUSTED,
            provider,
            error=QuotaNearExhaustedError(provider, usage_pct),
        )

    @classmethod
    def fallback(cls, provider: str, alternative: str) -> OptimizeOutcome[T]:
        return cls(
            OutcomeKind.FALLBACK,
            provider,
            error=ProviderFallbackError(provider, alternative),
            alternative=alternative,
        )

    @classmethod
    def failed(cls, provider: str, error: BaseException) -> OptimizeOutcome[T]:
        return cls(OutcomeKind.FAILED, provider, error=error)


@dataclass(frozen=True)
class CacheDurations:
    """TTLs in seconds for the aggregator's cache entries."""

    recipe: float = 7 * _DAY
    taxonomy: float = 30 * _DAY
    filtered: float = _DAY
    usage_stats: float = 120
