"""Health, Recipes, Taxonomy, Providers: REST routers."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from recipehub.application.dtos import (
    CategoryResponse,
    HealthResponse,
    PriorityRequest,
    PriorityResponse,
    ProviderUsageResponse,
    RecipeResponse,
    StrategyRequest,
)
from recipehub.application.services import RecipeAggregator
from recipehub.config import Settings
from recipehub.dependencies import get_cache, get_cached_settings, get_recipe_aggregator
from recipehub.domain.enums import OptimizationStrategy


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> HealthResponse:
    settings: Settings = getattr(request.app.state, "settings", None) or get_cached_settings()

    cache_status = "connected"
    try:
        if not await get_cache().health_check():
            cache_status = "disconnected"
    except Exception:
        cache_status = "disconnected"

    services = {"cache": cache_status}
    for name in aggregator.get_priority():
        services[f"provider:{name}"] = "registered"

    return HealthResponse(
        status="ok" if cache_status == "connected" else "degraded",
        version="0.1.0",
        environment=settings.app_env.value,
        services=services,
    )


@health_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ═══════════════════════════════════════════════════════════════
#  Recipes
# ═══════════════════════════════════════════════════════════════
recipes_router = APIRouter(prefix="/recipes", tags=["Recipes"])


@recipes_router.get("/search", response_model=list[RecipeResponse])
async def search_recipes(
    q: str = Query(..., description="Recipe name to search for"),
    limit: int = Query(10, ge=1, le=100),
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> list[RecipeResponse]:
    recipes = await aggregator.search_by_name(q, limit)
    return [RecipeResponse.model_validate(r) for r in recipes]


@recipes_router.get("/random", response_model=list[RecipeResponse])
async def random_recipes(
    count: int = Query(1, ge=1, le=50),
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> list[RecipeResponse]:
    recipes = await aggregator.get_random(count)
    return [RecipeResponse.model_validate(r) for r in recipes]


@recipes_router.get("/by-category/{name}", response_model=list[RecipeResponse])
async def recipes_by_category(
    name: str,
    limit: int = Query(20, ge=1, le=100),
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> list[RecipeResponse]:
    recipes = await aggregator.get_by_category(name, limit)
    return [RecipeResponse.model_validate(r) for r in recipes]


@recipes_router.get("/by-cuisine/{name}", response_model=list[RecipeResponse])
async def recipes_by_cuisine(
    name: str,
    limit: int = Query(20, ge=1, le=100),
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> list[RecipeResponse]:
    recipes = await aggregator.get_by_cuisine(name, limit)
    return [RecipeResponse.model_validate(r) for r in recipes]


@recipes_router.get("/by-ingredient/{name}", response_model=list[RecipeResponse])
async def recipes_by_ingredient(
    name: str,
    limit: int = Query(20, ge=1, le=100),
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> list[RecipeResponse]:
    recipes = await aggregator.get_by_ingredient(name, limit)
    return [RecipeResponse.model_validate(r) for r in recipes]


@recipes_router.get("/{recipe_id}", response_model=RecipeResponse)
async def get_recipe(
    recipe_id: int,
    provider: str | None = Query(None, description="Provider to try first"),
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> RecipeResponse:
    recipe = await aggregator.get_by_id(recipe_id, provider)
    if recipe is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Recipe {recipe_id} not found",
        )
    return RecipeResponse.model_validate(recipe)


# ═══════════════════════════════════════════════════════════════
#  Taxonomy
# ═══════════════════════════════════════════════════════════════
taxonomy_router = APIRouter(tags=["Taxonomy"])


@taxonomy_router.get("/categories", response_model=list[CategoryResponse])
async def list_categories(
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> list[CategoryResponse]:
    return [CategoryResponse.model_validate(c) for c in await aggregator.get_categories()]


@taxonomy_router.get("/cuisines", response_model=list[str])
async def list_cuisines(aggregator: RecipeAggregator = Depends(get_recipe_aggregator)) -> list[str]:
    return await aggregator.get_cuisines()


@taxonomy_router.get("/ingredients", response_model=list[str])
async def list_ingredients(aggregator: RecipeAggregator = Depends(get_recipe_aggregator)) -> list[str]:
    return await aggregator.get_ingredients()


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Providers"])


@providers_router.get("/usage", response_model=dict[str, ProviderUsageResponse])
async def provider_usage(
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> dict[str, ProviderUsageResponse]:
    stats = await aggregator.get_usage_statistics()
    return {name: ProviderUsageResponse.model_validate(u) for name, u in stats.items()}


@providers_router.get("/priority", response_model=PriorityResponse)
async def get_priority(aggregator: RecipeAggregator = Depends(get_recipe_aggregator)) -> PriorityResponse:
    return PriorityResponse(order=aggregator.get_priority())


@providers_router.put("/priority", response_model=PriorityResponse)
async def set_priority(
    body: PriorityRequest,
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> PriorityResponse:
    return PriorityResponse(order=aggregator.set_priority(body.order, body.strategies))


@providers_router.get("/strategies", response_model=dict[str, OptimizationStrategy])
async def get_strategies(
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> dict[str, OptimizationStrategy]:
    return aggregator.get_strategies()


@providers_router.put("/{name}/strategy", response_model=dict[str, OptimizationStrategy])
async def set_strategy(
    name: str,
    body: StrategyRequest,
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> dict[str, OptimizationStrategy]:
    aggregator.set_strategy(name, body.strategy)
    return aggregator.get_strategies()


@providers_router.post("/{name}/reset", status_code=status.HTTP_204_NO_CONTENT)
async def reset_usage(
    name: str,
    aggregator: RecipeAggregator = Depends(get_recipe_aggregator),
) -> Response:
    await aggregator.reset_usage(name)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
