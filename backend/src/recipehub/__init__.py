"""RecipeHub: multi-provider recipe aggregation."""

__version__ = "0.1.0"
