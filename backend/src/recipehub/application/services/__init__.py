"""Application services."""

from recipehub.application.services.aggregator import RecipeAggregator

__all__ = ["RecipeAggregator"]
