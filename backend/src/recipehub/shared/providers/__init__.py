"""Quota-aware provider access.

Daily quota accounting, the request optimizer that every outbound call
goes through, and the provider priority order used by the aggregator.
"""

from recipehub.shared.providers.types import (
    CacheDurations,
    LockScope,
    OptimizeOutcome,
    OutcomeKind,
)
from recipehub.shared.providers.quota import QuotaLedger
from recipehub.shared.providers.router import ProviderPriority
from recipehub.shared.providers.optimizer import RequestOptimizer

__all__ = [
    "CacheDurations",
    "LockScope",
    "OptimizeOutcome",
    "OutcomeKind",
    "ProviderPriority",
    "QuotaLedger",
    "RequestOptimizer",
]
