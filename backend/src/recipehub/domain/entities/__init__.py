"""Domain entities for recipe aggregation.

Recipes and categories are plain data carried between providers, caches and
callers. ``UsageMetrics`` is the one mutable entity: it owns the daily-reset
rule and the arithmetic derived from a provider's quota.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date


# ═══════════════════════════════════════════════════════════════
#  Recipe
# ═══════════════════════════════════════════════════════════════
_MIXED_FRACTION = re.compile(r"^(\d+)\s+(\d+)/(\d+)")
_FRACTION = re.compile(r"^(\d+)/(\d+)")
_DECIMAL = re.compile(r"^(\d+(?:[.,]\d+)?)")


def _parse_quantity(text: str) -> tuple[float, str] | None:
    """Return ``(quantity, rest)`` when ``text`` starts with a number."""
    if m := _MIXED_FRACTION.match(text):
        whole, num, den = (int(g) for g in m.groups())
        if den:
            return whole + num / den, text[m.end():]
    if m := _FRACTION.match(text):
        num, den = (int(g) for g in m.groups())
        if den:
            return num / den, text[m.end():]
    if m := _DECIMAL.match(text):
        return float(m.group(1).replace(",", ".")), text[m.end():]
    return None


@dataclass(slots=True)
class Ingredient:
    name: str
    measure: str = ""
    quantity: float = 1.0
    unit: str = ""

    @classmethod
    def from_measure(cls, name: str, measure: str) -> Ingredient:
        """Split a free-text measure ("200g", "1 cup", "2 1/2 tbsp") into quantity and unit.

        Measures without a leading number ("pinch", "to taste") keep the
        default quantity of 1 and use the whole text as the unit.
        """
        ingredient = cls(name=name, measure=measure)
        text = (measure or "").strip()
        if not text:
            return ingredient
        parsed = _parse_quantity(text)
        if parsed is None:
            ingredient.unit = text
            return ingredient
        ingredient.quantity, rest = parsed
        ingredient.unit = rest.strip()
        return ingredient


@dataclass(slots=True)
class Recipe:
    """A recipe as normalised from any provider.

    ``id`` is only unique within the provider that produced it; ``source``
    records that provider's name.
    """

    id: int
    name: str
    category: str = ""
    area: str = ""
    instructions: str = ""
    thumbnail: str = ""
    ingredients: list[Ingredient] = field(default_factory=list)
    video_url: str = ""
    tags: list[str] = field(default_factory=list)
    source: str = ""


@dataclass(slots=True)
class Category:
    id: int
    name: str
    description: str = ""
    thumbnail: str = ""


# ═══════════════════════════════════════════════════════════════
#  Quota accounting
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class UsageMetrics:
    """Daily call budget for one provider.

    A record whose ``last_reset_date`` is before today is stale and must be
    brought current with :meth:`refresh` before it is read or written.
    """

    provider_name: str
    daily_quota: int
    used_today: int = 0
    last_reset_date: date = field(default_factory=date.today)

    def should_reset(self, today: date) -> bool:
        return today > self.last_reset_date

    def reset(self, today: date) -> None:
        self.used_today = 0
        self.last_reset_date = today

    def refresh(self, today: date) -> bool:
        """Apply the lazy midnight reset. Returns True if the record changed."""
        if self.should_reset(today):
            self.reset(today)
            return True
        return False

    def increment(self, count: int = 1) -> None:
        if count > 0:
            self.used_today += count

    @property
    def is_quota_exceeded(self) -> bool:
        return self.used_today >= self.daily_quota

    @property
    def remaining_calls(self) -> int:
        return max(0, self.daily_quota - self.used_today)

    @property
    def usage_percentage(self) -> float:
        if self.daily_quota <= 0:
            return 100.0
        return self.used_today * 100.0 / self.daily_quota


@dataclass(frozen=True, slots=True)
class ProviderUsage:
    """Read-only usage summary exposed to callers."""

    used: int
    total: int

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.used)
