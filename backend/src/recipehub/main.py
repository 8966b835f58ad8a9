"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.responses import ORJSONResponse

from recipehub.adapters.inbound.rest.routers import (
    health_router,
    providers_router,
    recipes_router,
    taxonomy_router,
)
from recipehub.config import Settings, get_settings
from recipehub.shared.errors import register_exception_handlers
from recipehub.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from recipehub.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle: startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    logger.info(
        "application_starting",
        env=settings.app_env.value,
        lock_scope=settings.optimizer_lock_scope.value,
    )

    from recipehub.dependencies import get_aggregator, shutdown

    # Build the container with this app's settings before serving
    await get_aggregator(settings)

    yield

    await shutdown()
    logger.info("application_shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory: creates a fully configured FastAPI instance."""
    settings = settings or get_settings()

    app = FastAPI(
        title="RecipeHub",
        description=(
            "Multi-provider recipe aggregation. Queries TheMealDB and Spoonacular "
            "concurrently, deduplicates by provider priority and caches consolidated "
            "results while respecting each provider's daily quota."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Store settings in app state for lifecycle access
    app.state.settings = settings

    # ── Middleware (order matters: first added = outermost) ───
    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(recipes_router, prefix=api_v1)
    app.include_router(taxonomy_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)

    return app


def run() -> None:
    """Console entry-point: serve with uvicorn using configured host/port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "recipehub.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )
