"""Outbound ports: interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The aggregator and
the request optimizer depend only on these abstractions, never on concrete
implementations (Redis, SQLite, HTTP clients, etc.).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from recipehub.domain.entities import Category, Recipe


# ═══════════════════════════════════════════════════════════════
#  Cache port
# ═══════════════════════════════════════════════════════════════
class CachePort(ABC):
    """Typed key/value store with per-entry expiry.

    Values are serialised on ``set`` and validated back into ``result_type``
    on ``get``, so callers always receive the type they asked for.
    """

    @abstractmethod
    async def get(self, key: str, result_type: Any = Any) -> Any | None: ...

    @abstractmethod
    async def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None: ...

    @abstractmethod
    async def remove(self, key: str) -> bool: ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def clear(self) -> None: ...

    async def close(self) -> None:
        """Release connections. No-op for in-process stores."""

    async def health_check(self) -> bool:
        return True


# ═══════════════════════════════════════════════════════════════
#  Quota ledger persistence port
# ═══════════════════════════════════════════════════════════════
class MetricsStorePort(ABC):
    """Durable name -> JSON blob storage for usage metrics."""

    @abstractmethod
    async def load_all(self) -> dict[str, str]: ...

    @abstractmethod
    async def save(self, provider_name: str, blob: str) -> None: ...

    @abstractmethod
    async def save_many(self, blobs: dict[str, str]) -> None: ...

    async def close(self) -> None:
        """Release connections. No-op for in-process stores."""


# ═══════════════════════════════════════════════════════════════
#  Recipe provider port
# ═══════════════════════════════════════════════════════════════
class RecipeProviderPort(ABC):
    """One external recipe data source with its own daily quota.

    Implementations return ``None`` or empty lists for "nothing found" and
    raise ``ProviderError`` for transport or protocol failures.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str: ...

    @property
    @abstractmethod
    def daily_quota(self) -> int: ...

    @abstractmethod
    async def register_quota(self) -> None:
        """Register this provider's daily quota with the quota ledger."""

    @abstractmethod
    async def get_remaining_calls(self) -> int: ...

    @abstractmethod
    async def increment_usage(self, count: int = 1) -> None: ...

    @abstractmethod
    async def reset_daily_counter(self) -> None: ...

    @abstractmethod
    async def get_by_id(self, recipe_id: int) -> Recipe | None: ...

    @abstractmethod
    async def search_by_name(self, name: str, limit: int = 10) -> list[Recipe]: ...

    @abstractmethod
    async def get_random(self, count: int = 1) -> list[Recipe]: ...

    @abstractmethod
    async def get_categories(self) -> list[Category]: ...

    @abstractmethod
    async def get_by_category(self, category: str, limit: int = 20) -> list[Recipe]: ...

    @abstractmethod
    async def get_cuisines(self) -> list[str]: ...

    @abstractmethod
    async def get_by_cuisine(self, cuisine: str, limit: int = 20) -> list[Recipe]: ...

    @abstractmethod
    async def get_ingredients(self) -> list[str]: ...

    @abstractmethod
    async def get_by_ingredient(self, ingredient: str, limit: int = 20) -> list[Recipe]: ...

    async def close(self) -> None:
        """Release the provider's HTTP client."""
