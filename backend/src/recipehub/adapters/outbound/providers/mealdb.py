"""TheMealDB provider: free, low-detail recipe API.

https://www.themealdb.com/api.php.  The free tier uses API key ``1`` as a
path segment.  Filter endpoints return only summaries (id, name, thumb),
so recipes are completed with one ``lookup.php`` per id, served from the
provider-local cache when possible.
"""

from __future__ import annotations

import asyncio
from typing import Any

from recipehub.adapters.outbound.providers.base import HttpRecipeProvider
from recipehub.domain.entities import Category, Ingredient, Recipe
from recipehub.ports.outbound import CachePort
from recipehub.shared.providers.quota import QuotaLedger
from recipehub.shared.providers.types import CacheDurations

_BASE_URL = "https://www.themealdb.com/api/json/v1/"
_MAX_INGREDIENTS = 20


def meal_to_recipe(meal: dict[str, Any], source: str = "TheMealDB") -> Recipe:
    """Translate a TheMealDB ``meal`` object into a ``Recipe``."""
    ingredients: list[Ingredient] = []
    for i in range(1, _MAX_INGREDIENTS + 1):
        name = (meal.get(f"strIngredient{i}") or "").strip()
        if not name:
            continue
        measure = (meal.get(f"strMeasure{i}") or "").strip()
        ingredients.append(Ingredient.from_measure(name, measure))

    tags = [t.strip() for t in (meal.get("strTags") or "").split(",") if t.strip()]

    return Recipe(
        id=int(meal["idMeal"]),
        name=meal.get("strMeal") or "",
        category=meal.get("strCategory") or "",
        area=meal.get("strArea") or "",
        instructions=meal.get("strInstructions") or "",
        thumbnail=meal.get("strMealThumb") or "",
        ingredients=ingredients,
        video_url=meal.get("strYoutube") or "",
        tags=tags,
        source=source,
    )


class MealDbProvider(HttpRecipeProvider):
    """RecipeProviderPort over TheMealDB v1 JSON API."""

    NAME = "TheMealDB"

    def __init__(
        self,
        *,
        ledger: QuotaLedger,
        cache: CachePort,
        api_key: str = "1",
        base_url: str = _BASE_URL,
        daily_quota: int = 1000,
        timeout: float = 30.0,
        cache_durations: CacheDurations | None = None,
    ) -> None:
        super().__init__(
            base_url=f"{base_url.rstrip('/')}/{api_key}/",
            ledger=ledger,
            cache=cache,
            daily_quota=daily_quota,
            timeout=timeout,
            cache_durations=cache_durations,
        )

    # ── Recipes ──────────────────────────────────────────────
    async def get_by_id(self, recipe_id: int) -> Recipe | None:
        cached = await self._cached_recipe(recipe_id)
        if cached is not None:
            return cached
        meals = await self._meals("lookup.php", {"i": recipe_id})
        if not meals:
            return None
        recipe = meal_to_recipe(meals[0], self.NAME)
        await self._remember_recipes([recipe])
        return recipe

    async def search_by_name(self, name: str, limit: int = 10) -> list[Recipe]:
        if not name or not name.strip():
            return []
        meals = await self._meals("search.php", {"s": name.strip()})
        recipes = [meal_to_recipe(m, self.NAME) for m in meals[:limit]]
        await self._remember_recipes(recipes)
        return recipes

    async def get_random(self, count: int = 1) -> list[Recipe]:
        # random.php returns exactly one meal per call
        recipes: list[Recipe] = []
        seen: set[int] = set()
        for _ in range(max(0, count)):
            meals = await self._meals("random.php")
            if not meals:
                continue
            recipe = meal_to_recipe(meals[0], self.NAME)
            if recipe.id in seen:
                continue
            seen.add(recipe.id)
            recipes.append(recipe)
        await self._remember_recipes(recipes)
        return recipes

    async def get_by_category(self, category: str, limit: int = 20) -> list[Recipe]:
        return await self._filter("c", category, limit)

    async def get_by_cuisine(self, cuisine: str, limit: int = 20) -> list[Recipe]:
        return await self._filter("a", cuisine, limit)

    async def get_by_ingredient(self, ingredient: str, limit: int = 20) -> list[Recipe]:
        # The API expects underscores in multi-word ingredients
        value = "_".join((ingredient or "").split())
        return await self._filter("i", value, limit)

    # ── Taxonomy ─────────────────────────────────────────────
    async def get_categories(self) -> list[Category]:
        data = await self._get_json("categories.php")
        return [
            Category(
                id=int(c.get("idCategory") or 0),
                name=c.get("strCategory") or "",
                description=c.get("strCategoryDescription") or "",
                thumbnail=c.get("strCategoryThumb") or "",
            )
            for c in (data or {}).get("categories") or []
            if c.get("strCategory")
        ]

    async def get_cuisines(self) -> list[str]:
        meals = await self._meals("list.php", {"a": "list"})
        return [m["strArea"] for m in meals if m.get("strArea")]

    async def get_ingredients(self) -> list[str]:
        meals = await self._meals("list.php", {"i": "list"})
        return [m["strIngredient"] for m in meals if m.get("strIngredient")]

    # ── Internals ────────────────────────────────────────────
    async def _meals(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        data = await self._get_json(path, params)
        # "meals": null when nothing matched
        return list((data or {}).get("meals") or [])

    async def _filter(self, field: str, value: str, limit: int) -> list[Recipe]:
        if not value or not value.strip():
            return []
        summaries = await self._meals("filter.php", {field: value.strip()})
        ids = [int(s["idMeal"]) for s in summaries[:limit] if s.get("idMeal")]
        details = await asyncio.gather(*(self.get_by_id(i) for i in ids))
        return [r for r in details if r is not None]
