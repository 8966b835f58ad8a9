"""Recipe provider adapters."""

from recipehub.adapters.outbound.providers.base import HttpRecipeProvider
from recipehub.adapters.outbound.providers.mealdb import MealDbProvider
from recipehub.adapters.outbound.providers.spoonacular import SpoonacularProvider

__all__ = ["HttpRecipeProvider", "MealDbProvider", "SpoonacularProvider"]
