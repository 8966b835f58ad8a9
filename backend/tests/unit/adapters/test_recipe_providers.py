"""Unit tests for the TheMealDB and Spoonacular adapters (mocked HTTP)."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from recipehub.adapters.outbound.providers import MealDbProvider, SpoonacularProvider
from recipehub.adapters.outbound.providers.mealdb import meal_to_recipe
from recipehub.adapters.outbound.providers.spoonacular import (
    CATEGORIES,
    CUISINES,
    normalize_category,
    spoonacular_to_recipe,
)
from recipehub.domain.exceptions import ProviderError


def _resp(payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, json=payload, request=httpx.Request("GET", "https://test.local/x"))


def _meal(meal_id: str, name: str, **extra: Any) -> dict[str, Any]:
    meal = {
        "idMeal": meal_id,
        "strMeal": name,
        "strCategory": "Chicken",
        "strArea": "Japanese",
        "strInstructions": "Preheat oven.",
        "strMealThumb": "https://img/x.jpg",
        "strYoutube": "https://youtube.com/watch?v=1",
        "strTags": "Meat,Casserole",
        "strIngredient1": "soy sauce",
        "strMeasure1": "3/4 cup",
        "strIngredient2": "water",
        "strMeasure2": "1/2 cup",
        "strIngredient3": "",
        "strMeasure3": " ",
        "strIngredient4": None,
    }
    meal.update(extra)
    return meal


def _spoon(recipe_id: int, title: str, **extra: Any) -> dict[str, Any]:
    data = {
        "id": recipe_id,
        "title": title,
        "image": "https://spoonacular.com/recipeImages/1.jpg",
        "instructions": "<ol><li>Boil water.</li><li>Add pasta.</li></ol>",
        "cuisines": ["Italian"],
        "dishTypes": ["main course", "dinner"],
        "diets": ["vegetarian"],
        "occasions": [],
        "vegetarian": True,
        "vegan": False,
        "glutenFree": False,
        "dairyFree": False,
        "veryHealthy": True,
        "spoonacularSourceUrl": "https://spoonacular.com/x",
        "extendedIngredients": [
            {"name": "spaghetti", "amount": 200, "unit": "g"},
            {"name": "olive oil", "amount": 1.5, "unit": "tbsp"},
            {"name": "salt", "amount": 0, "unit": ""},
        ],
    }
    data.update(extra)
    return data


# ═══════════════════════════════════════════════════════════════
#  TheMealDB
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def mealdb(ledger, cache) -> MealDbProvider:
    return MealDbProvider(ledger=ledger, cache=cache, base_url="https://mealdb.test/api/json/v1/")


class TestMealToRecipe:
    def test_conversion(self) -> None:
        recipe = meal_to_recipe(_meal("52772", "Teriyaki Chicken"))
        assert recipe.id == 52772
        assert recipe.area == "Japanese"
        assert recipe.video_url.startswith("https://youtube.com")
        assert recipe.tags == ["Meat", "Casserole"]
        assert [i.name for i in recipe.ingredients] == ["soy sauce", "water"]
        assert recipe.ingredients[0].quantity == pytest.approx(0.75)
        assert recipe.ingredients[0].unit == "cup"
        assert recipe.source == "TheMealDB"

    def test_missing_tags(self) -> None:
        assert meal_to_recipe(_meal("1", "X", strTags=None)).tags == []


class TestMealDbProvider:
    def test_base_url_includes_api_key(self, mealdb) -> None:
        assert str(mealdb._client.base_url) == "https://mealdb.test/api/json/v1/1/"

    @pytest.mark.asyncio
    async def test_get_by_id_and_local_cache(self, mealdb) -> None:
        with patch.object(
            mealdb._client, "get", new_callable=AsyncMock,
            return_value=_resp({"meals": [_meal("52772", "Teriyaki Chicken")]}),
        ) as mock_get:
            first = await mealdb.get_by_id(52772)
            second = await mealdb.get_by_id(52772)

        assert first.name == "Teriyaki Chicken"
        assert second == first
        mock_get.assert_awaited_once_with("lookup.php", params={"i": 52772})
        await mealdb.close()

    @pytest.mark.asyncio
    async def test_null_meals_is_empty(self, mealdb) -> None:
        with patch.object(mealdb._client, "get", new_callable=AsyncMock, return_value=_resp({"meals": None})):
            assert await mealdb.search_by_name("zzz") == []
            assert await mealdb.get_by_id(1) is None
        await mealdb.close()

    @pytest.mark.asyncio
    async def test_search_respects_limit(self, mealdb) -> None:
        meals = [_meal(str(i), f"Meal {i}") for i in range(1, 6)]
        with patch.object(mealdb._client, "get", new_callable=AsyncMock, return_value=_resp({"meals": meals})):
            recipes = await mealdb.search_by_name("meal", limit=3)
        assert [r.id for r in recipes] == [1, 2, 3]
        await mealdb.close()

    @pytest.mark.asyncio
    async def test_filter_completes_summaries(self, mealdb) -> None:
        async def route(path: str, params: dict | None = None) -> httpx.Response:
            if path == "filter.php":
                assert params == {"i": "chicken_breast"}
                return _resp({"meals": [{"idMeal": "10", "strMeal": "A"}, {"idMeal": "11", "strMeal": "B"}]})
            return _resp({"meals": [_meal(str(params["i"]), f"Full {params['i']}")]})

        with patch.object(mealdb._client, "get", new_callable=AsyncMock, side_effect=route):
            recipes = await mealdb.get_by_ingredient("chicken  breast")

        assert [r.name for r in recipes] == ["Full 10", "Full 11"]
        await mealdb.close()

    @pytest.mark.asyncio
    async def test_taxonomy(self, mealdb) -> None:
        async def route(path: str, params: dict | None = None) -> httpx.Response:
            if path == "categories.php":
                return _resp({"categories": [
                    {"idCategory": "1", "strCategory": "Beef", "strCategoryDescription": "Cow"},
                ]})
            if params == {"a": "list"}:
                return _resp({"meals": [{"strArea": "British"}, {"strArea": "Thai"}]})
            return _resp({"meals": [{"strIngredient": "Chicken"}]})

        with patch.object(mealdb._client, "get", new_callable=AsyncMock, side_effect=route):
            categories = await mealdb.get_categories()
            cuisines = await mealdb.get_cuisines()
            ingredients = await mealdb.get_ingredients()

        assert [(c.id, c.name, c.description) for c in categories] == [(1, "Beef", "Cow")]
        assert cuisines == ["British", "Thai"]
        assert ingredients == ["Chicken"]
        await mealdb.close()

    @pytest.mark.asyncio
    async def test_http_error_becomes_provider_error(self, mealdb) -> None:
        with patch.object(mealdb._client, "get", new_callable=AsyncMock, return_value=_resp({}, 500)):
            with pytest.raises(ProviderError):
                await mealdb.search_by_name("chicken")
        await mealdb.close()

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, mealdb) -> None:
        mock_get = AsyncMock(side_effect=[httpx.ConnectError("boom"), _resp({"meals": None})])
        with patch.object(mealdb._client, "get", mock_get):
            assert await mealdb.search_by_name("chicken") == []
        assert mock_get.await_count == 2
        await mealdb.close()

    @pytest.mark.asyncio
    async def test_quota_hooks_delegate_to_ledger(self, mealdb, ledger) -> None:
        await mealdb.register_quota()
        await mealdb.increment_usage(5)
        assert await mealdb.get_remaining_calls() == 995
        await mealdb.reset_daily_counter()
        assert await ledger.remaining_calls("TheMealDB") == 1000
        await mealdb.close()


# ═══════════════════════════════════════════════════════════════
#  Spoonacular
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def spoon(ledger, cache) -> SpoonacularProvider:
    return SpoonacularProvider(api_key="secret", ledger=ledger, cache=cache, base_url="https://spoon.test/")


class TestSpoonacularConversion:
    def test_conversion(self) -> None:
        recipe = spoonacular_to_recipe(_spoon(715538, "Pasta"))
        assert recipe.id == 715538
        assert recipe.category == "main course"
        assert recipe.area == "Italian"
        assert recipe.instructions == "Boil water.Add pasta."
        assert recipe.video_url == "https://spoonacular.com/x"
        assert recipe.tags == sorted(
            {"Italian", "main course", "dinner", "vegetarian", "Vegetarian", "Healthy"}
        )
        assert [(i.measure, i.quantity, i.unit) for i in recipe.ingredients] == [
            ("200 g", 200.0, "g"),
            ("1.5 tbsp", 1.5, "tbsp"),
            ("", 1.0, ""),
        ]

    def test_category_aliases(self) -> None:
        assert normalize_category("Main Dish") == "main course"
        assert normalize_category("Starter") == "appetizer"
        assert normalize_category("Fingerfood") == "fingerfood"


class TestSpoonacularProvider:
    def test_api_key_is_a_query_param(self, spoon) -> None:
        assert spoon._client.params["apiKey"] == "secret"

    @pytest.mark.asyncio
    async def test_get_by_id(self, spoon) -> None:
        await spoon.register_quota()
        with patch.object(
            spoon._client, "get", new_callable=AsyncMock, return_value=_resp(_spoon(5, "Soup")),
        ) as mock_get:
            recipe = await spoon.get_by_id(5)
        assert recipe.name == "Soup"
        assert mock_get.await_args.args[0] == "recipes/5/information"
        await spoon.close()

    @pytest.mark.asyncio
    async def test_not_found_is_none(self, spoon) -> None:
        await spoon.register_quota()
        with patch.object(spoon._client, "get", new_callable=AsyncMock, return_value=_resp({}, 404)):
            assert await spoon.get_by_id(5) is None
        await spoon.close()

    @pytest.mark.asyncio
    async def test_server_error_raises(self, spoon) -> None:
        await spoon.register_quota()
        with patch.object(spoon._client, "get", new_callable=AsyncMock, return_value=_resp({}, 500)):
            with pytest.raises(ProviderError):
                await spoon.get_by_id(5)
        await spoon.close()

    @pytest.mark.asyncio
    async def test_exhausted_quota_skips_network(self, spoon, ledger) -> None:
        await spoon.register_quota()
        await ledger.increment_usage("Spoonacular", 150)
        with patch.object(spoon._client, "get", new_callable=AsyncMock) as mock_get:
            assert await spoon.get_by_id(5) is None
            assert await spoon.search_by_name("pasta") == []
            assert await spoon.get_random(3) == []
            assert await spoon.get_by_ingredient("garlic") == []
        mock_get.assert_not_awaited()
        await spoon.close()

    @pytest.mark.asyncio
    async def test_search_remembers_ids(self, spoon) -> None:
        await spoon.register_quota()
        payload = {"results": [_spoon(1, "Pasta One"), _spoon(2, "Pasta Two")]}
        with patch.object(
            spoon._client, "get", new_callable=AsyncMock, return_value=_resp(payload),
        ) as mock_get:
            first = await spoon.search_by_name("Pasta", limit=5)
            second = await spoon.search_by_name(" pasta ", limit=5)

        assert [r.id for r in first] == [1, 2]
        assert second == first
        mock_get.assert_awaited_once()
        params = mock_get.await_args.kwargs["params"]
        assert params["query"] == "Pasta"
        assert params["number"] == 5
        await spoon.close()

    @pytest.mark.asyncio
    async def test_category_uses_dish_type(self, spoon) -> None:
        await spoon.register_quota()
        with patch.object(
            spoon._client, "get", new_callable=AsyncMock, return_value=_resp({"results": []}),
        ) as mock_get:
            assert await spoon.get_by_category("Main Dish") == []
        assert mock_get.await_args.kwargs["params"]["type"] == "main course"
        await spoon.close()

    @pytest.mark.asyncio
    async def test_by_ingredient_uses_bulk_information(self, spoon) -> None:
        await spoon.register_quota()

        async def route(path: str, params: dict | None = None) -> httpx.Response:
            if path == "recipes/findByIngredients":
                return _resp([{"id": 3}, {"id": 4}])
            assert path == "recipes/informationBulk"
            assert params["ids"] == "3,4"
            return _resp([_spoon(3, "Garlic Bread"), _spoon(4, "Aglio e Olio")])

        with patch.object(spoon._client, "get", new_callable=AsyncMock, side_effect=route):
            recipes = await spoon.get_by_ingredient("garlic")

        assert [r.name for r in recipes] == ["Garlic Bread", "Aglio e Olio"]
        await spoon.close()

    @pytest.mark.asyncio
    async def test_random(self, spoon) -> None:
        await spoon.register_quota()
        payload = {"recipes": [_spoon(1, "A"), _spoon(2, "B")]}
        with patch.object(spoon._client, "get", new_callable=AsyncMock, return_value=_resp(payload)):
            recipes = await spoon.get_random(2)
        assert [r.id for r in recipes] == [1, 2]
        await spoon.close()

    @pytest.mark.asyncio
    async def test_static_taxonomy(self, spoon) -> None:
        with patch.object(spoon._client, "get", new_callable=AsyncMock) as mock_get:
            categories = await spoon.get_categories()
            cuisines = await spoon.get_cuisines()
            ingredients = await spoon.get_ingredients()
        mock_get.assert_not_awaited()
        assert len(categories) == len(CATEGORIES) == 11
        assert categories[0].name == "Main Course"
        assert cuisines == list(CUISINES)
        assert "garlic" in ingredients
        await spoon.close()
