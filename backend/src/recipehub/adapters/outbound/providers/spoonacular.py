"""Spoonacular provider: paid, detailed recipe API.

https://spoonacular.com/food-api/docs.  The API key travels as the
``apiKey`` query parameter.  The daily budget is small, so this provider
checks the quota ledger before touching the network and remembers the
recipe ids behind each filtered query.
"""

from __future__ import annotations

import re
from typing import Any

from recipehub.adapters.outbound.providers.base import HttpRecipeProvider
from recipehub.domain.entities import Category, Ingredient, Recipe
from recipehub.ports.outbound import CachePort
from recipehub.shared.cache_keys import normalize
from recipehub.shared.providers.quota import QuotaLedger
from recipehub.shared.providers.types import CacheDurations

_BASE_URL = "https://api.spoonacular.com/"
_IMAGE_BASE = "https://spoonacular.com/recipeImages"
_HTML_TAG = re.compile(r"<.*?>", re.DOTALL)


# ═══════════════════════════════════════════════════════════════
#  Fixed vocabularies
# ═══════════════════════════════════════════════════════════════
CATEGORIES: tuple[Category, ...] = tuple(
    Category(id=i, name=name, description=desc, thumbnail=f"{_IMAGE_BASE}/{slug}.jpg")
    for i, (name, slug, desc) in enumerate(
        [
            ("Main Course", "main-course", "Main dishes"),
            ("Side Dish", "side-dish", "Side dishes"),
            ("Dessert", "dessert", "Sweet dishes served after the main course"),
            ("Appetizer", "appetizer", "Small dishes served before the main course"),
            ("Salad", "salad", "Dishes with mixed vegetables, often served cold"),
            ("Bread", "bread", "Bread and bread-based dishes"),
            ("Breakfast", "breakfast", "Morning meals"),
            ("Soup", "soup", "Liquid food typically made by boiling ingredients"),
            ("Beverage", "beverage", "Drinks of various types"),
            ("Sauce", "sauce", "Condiments to accompany other dishes"),
            ("Drink", "drink", "Alcoholic and non-alcoholic drinks"),
        ],
        start=1,
    )
)

CUISINES: tuple[str, ...] = (
    "African", "American", "British", "Cajun", "Caribbean", "Chinese",
    "Eastern European", "European", "French", "German", "Greek", "Indian",
    "Irish", "Italian", "Japanese", "Jewish", "Korean", "Latin American",
    "Mediterranean", "Mexican", "Middle Eastern", "Nordic", "Southern",
    "Spanish", "Thai", "Vietnamese",
)

INGREDIENTS: tuple[str, ...] = (
    "chicken", "beef", "pork", "fish", "shrimp", "tofu", "eggs", "milk",
    "cheese", "butter", "flour", "sugar", "salt", "pepper", "olive oil",
    "garlic", "onion", "tomato", "potato", "carrot", "broccoli", "spinach",
    "rice", "pasta", "bread", "apple", "banana", "orange", "lemon",
    "strawberry", "blueberry", "chocolate", "vanilla", "cinnamon", "mint",
    "basil", "oregano", "thyme", "rosemary",
)

# Spoonacular "type" values keyed by the names other providers use
_CATEGORY_ALIASES: dict[str, str] = {
    "main course": "main course",
    "main dish": "main course",
    "side dish": "side dish",
    "side": "side dish",
    "dessert": "dessert",
    "sweets": "dessert",
    "appetizer": "appetizer",
    "starter": "appetizer",
    "salad": "salad",
    "bread": "bread",
    "breakfast": "breakfast",
    "morning meal": "breakfast",
    "brunch": "breakfast",
    "soup": "soup",
    "beverage": "beverage",
    "drink": "drink",
    "sauce": "sauce",
    "condiment": "sauce",
}


def normalize_category(category: str) -> str:
    key = normalize(category)
    return _CATEGORY_ALIASES.get(key, key)


def _format_amount(amount: float) -> str:
    if amount % 1 == 0:
        return str(int(amount))
    return f"{amount:.2f}".rstrip("0").rstrip(".")


def spoonacular_to_recipe(data: dict[str, Any], source: str = "Spoonacular") -> Recipe:
    """Translate a Spoonacular recipe object into a ``Recipe``."""
    cuisines = list(data.get("cuisines") or [])
    dish_types = list(data.get("dishTypes") or [])

    tags = [*cuisines, *dish_types, *(data.get("diets") or []), *(data.get("occasions") or [])]
    for flag, label in (
        ("vegetarian", "Vegetarian"),
        ("vegan", "Vegan"),
        ("glutenFree", "Gluten-Free"),
        ("dairyFree", "Dairy-Free"),
        ("veryHealthy", "Healthy"),
    ):
        if data.get(flag):
            tags.append(label)

    ingredients: list[Ingredient] = []
    for item in data.get("extendedIngredients") or []:
        amount = float(item.get("amount") or 0)
        unit = (item.get("unit") or "").strip()
        measure = ""
        if amount > 0:
            measure = f"{_format_amount(amount)} {unit}".strip()
        name = item.get("name") or item.get("originalName") or ""
        ingredients.append(Ingredient(name=name, measure=measure, quantity=amount or 1.0, unit=unit))

    return Recipe(
        id=int(data["id"]),
        name=data.get("title") or "",
        category=dish_types[0] if dish_types else "",
        area=cuisines[0] if cuisines else "",
        instructions=_HTML_TAG.sub("", data.get("instructions") or ""),
        thumbnail=data.get("image") or "",
        ingredients=ingredients,
        video_url=data.get("spoonacularSourceUrl") or "",
        tags=sorted(set(tags)),
        source=source,
    )


class SpoonacularProvider(HttpRecipeProvider):
    """RecipeProviderPort over the Spoonacular Food API."""

    NAME = "Spoonacular"

    def __init__(
        self,
        *,
        api_key: str,
        ledger: QuotaLedger,
        cache: CachePort,
        base_url: str = _BASE_URL,
        daily_quota: int = 150,
        timeout: float = 30.0,
        cache_durations: CacheDurations | None = None,
    ) -> None:
        super().__init__(
            base_url=base_url,
            ledger=ledger,
            cache=cache,
            daily_quota=daily_quota,
            timeout=timeout,
            params={"apiKey": api_key},
            cache_durations=cache_durations,
        )

    # ── Recipes ──────────────────────────────────────────────
    async def get_by_id(self, recipe_id: int) -> Recipe | None:
        cached = await self._cached_recipe(recipe_id)
        if cached is not None:
            return cached
        if await self._exhausted():
            return None
        data = await self._get_json(
            f"recipes/{recipe_id}/information",
            {"includeNutrition": "false"},
            not_found_ok=True,
        )
        if not data:
            return None
        recipe = spoonacular_to_recipe(data, self.NAME)
        await self._remember_recipes([recipe])
        return recipe

    async def search_by_name(self, name: str, limit: int = 10) -> list[Recipe]:
        if not name or not name.strip():
            return []
        return await self._complex_search(
            f"spoonacular_search_{normalize(name)}_{limit}",
            {"query": name.strip()},
            limit,
        )

    async def get_random(self, count: int = 1) -> list[Recipe]:
        if count <= 0 or await self._exhausted():
            return []
        data = await self._get_json("recipes/random", {"number": count})
        recipes = [spoonacular_to_recipe(r, self.NAME) for r in (data or {}).get("recipes") or []]
        await self._remember_recipes(recipes)
        return recipes[:count]

    async def get_by_category(self, category: str, limit: int = 20) -> list[Recipe]:
        if not category or not category.strip():
            return []
        dish_type = normalize_category(category)
        return await self._complex_search(
            f"spoonacular_category_{dish_type}_{limit}",
            {"type": dish_type},
            limit,
        )

    async def get_by_cuisine(self, cuisine: str, limit: int = 20) -> list[Recipe]:
        if not cuisine or not cuisine.strip():
            return []
        return await self._complex_search(
            f"spoonacular_cuisine_{normalize(cuisine)}_{limit}",
            {"cuisine": cuisine.strip()},
            limit,
        )

    async def get_by_ingredient(self, ingredient: str, limit: int = 20) -> list[Recipe]:
        if not ingredient or not ingredient.strip():
            return []
        key = f"spoonacular_ingredient_{normalize(ingredient)}_{limit}"
        cached = await self._from_cached_ids(key)
        if cached is not None:
            return cached
        if await self._exhausted():
            return []

        matches = await self._get_json(
            "recipes/findByIngredients",
            {"ingredients": ingredient.strip(), "number": limit},
        )
        ids = [int(m["id"]) for m in matches or [] if m.get("id") is not None][:limit]
        if not ids:
            return []
        details = await self._get_json(
            "recipes/informationBulk",
            {"ids": ",".join(str(i) for i in ids), "includeNutrition": "false"},
        )
        recipes = [spoonacular_to_recipe(r, self.NAME) for r in details or []]
        await self._remember_ids(key, recipes)
        return recipes

    # ── Taxonomy (fixed vocabularies) ────────────────────────
    async def get_categories(self) -> list[Category]:
        return list(CATEGORIES)

    async def get_cuisines(self) -> list[str]:
        return list(CUISINES)

    async def get_ingredients(self) -> list[str]:
        return list(INGREDIENTS)

    # ── Internals ────────────────────────────────────────────
    async def _exhausted(self) -> bool:
        if await self._ledger.is_quota_exceeded(self.NAME):
            self._log.info("spoonacular_quota_early_exit")
            return True
        return False

    async def _complex_search(self, key: str, params: dict[str, Any], limit: int) -> list[Recipe]:
        cached = await self._from_cached_ids(key)
        if cached is not None:
            return cached
        if await self._exhausted():
            return []
        data = await self._get_json(
            "recipes/complexSearch",
            {
                **params,
                "number": limit,
                "addRecipeInformation": "true",
                "fillIngredients": "true",
            },
        )
        results = (data or {}).get("results") or []
        recipes = [spoonacular_to_recipe(r, self.NAME) for r in results][:limit]
        await self._remember_ids(key, recipes)
        return recipes

    async def _from_cached_ids(self, key: str) -> list[Recipe] | None:
        ids = await self._cache.get(key, list[int])
        if ids is None:
            return None
        recipes: list[Recipe] = []
        for recipe_id in ids:
            recipe = await self.get_by_id(recipe_id)
            if recipe is not None:
                recipes.append(recipe)
        return recipes

    async def _remember_ids(self, key: str, recipes: list[Recipe]) -> None:
        await self._cache.set(key, [r.id for r in recipes], ttl_seconds=self._ttl.filtered)
        await self._remember_recipes(recipes)
