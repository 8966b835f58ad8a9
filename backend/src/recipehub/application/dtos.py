"""Data Transfer Objects: Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects; they adapt between
the external world and the domain.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from recipehub.domain.enums import OptimizationStrategy


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None  # type: ignore[type-arg]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"
    services: dict[str, str] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Recipes
# ═══════════════════════════════════════════════════════════════
class IngredientResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    measure: str = ""
    quantity: float = 1.0
    unit: str = ""


class RecipeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: str = ""
    area: str = ""
    instructions: str = ""
    thumbnail: str = ""
    ingredients: list[IngredientResponse] = Field(default_factory=list)
    video_url: str = ""
    tags: list[str] = Field(default_factory=list)
    source: str = ""


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str = ""
    thumbnail: str = ""


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
class ProviderUsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    used: int
    total: int
    remaining: int


class PriorityRequest(BaseModel):
    order: list[str] = Field(..., min_length=1)
    strategies: dict[str, OptimizationStrategy] | None = None


class PriorityResponse(BaseModel):
    order: list[str]


class StrategyRequest(BaseModel):
    strategy: OptimizationStrategy
