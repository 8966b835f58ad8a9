"""Deterministic cache keys.

Equivalent logical queries must land on the same entry, so every free-text
argument is trimmed and case-folded before it becomes part of a key.
"""

from __future__ import annotations


def normalize(value: str) -> str:
    return " ".join((value or "").split()).casefold()


# ── Aggregated (cross-provider) entries ──────────────────────
def recipe(recipe_id: int) -> str:
    return f"aggregate_recipe_{recipe_id}"


def search(name: str, limit: int) -> str:
    return f"search_{normalize(name)}_limit_{limit}"


def category(name: str, limit: int) -> str:
    return f"category_{normalize(name)}_limit_{limit}"


def cuisine(name: str, limit: int) -> str:
    return f"cuisine_{normalize(name)}_limit_{limit}"


def ingredient(name: str, limit: int) -> str:
    return f"ingredient_{normalize(name)}_limit_{limit}"


CONSOLIDATED_CATEGORIES = "consolidated_categories"
CONSOLIDATED_CUISINES = "consolidated_cuisines"
CONSOLIDATED_INGREDIENTS = "consolidated_ingredients"
USAGE_STATISTICS = "api_usage_statistics"


# ── Per-provider entries ─────────────────────────────────────
def for_provider(provider_name: str, key: str) -> str:
    """Scope an aggregated key to one provider's contribution."""
    return f"provider_{normalize(provider_name)}_{key}"
