"""Domain enumerations for recipe aggregation."""

from __future__ import annotations

import enum


class OptimizationStrategy(str, enum.Enum):
    """How the request optimizer treats a provider whose quota is exhausted."""

    BALANCED = "BALANCED"
    CONSERVATIVE_QUOTA = "CONSERVATIVE_QUOTA"
    QUOTA_PROTECTION = "QUOTA_PROTECTION"
    FALLBACK = "FALLBACK"

    @classmethod
    def parse(cls, value: str) -> OptimizationStrategy:
        """Accept ``conservative_quota``, ``ConservativeQuota`` or ``CONSERVATIVE-QUOTA``."""
        raw = value.strip()
        candidates = {raw.upper().replace("-", "_")}
        # CamelCase -> SNAKE_CASE
        snake = "".join(f"_{c}" if c.isupper() and i else c for i, c in enumerate(raw))
        candidates.add(snake.upper())
        for member in cls:
            if member.value in candidates:
                return member
        raise ValueError(f"Unknown optimization strategy: {value!r}")
