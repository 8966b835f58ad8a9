"""Global exception handlers: map domain errors to HTTP responses."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

from recipehub.domain.exceptions import (
    DomainError,
    InvalidArgumentError,
    ProviderError,
    ProviderFallbackError,
    QuotaExceededError,
)

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(InvalidArgumentError)
    async def handle_invalid_argument(request: Request, exc: InvalidArgumentError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(QuotaExceededError)
    async def handle_quota(request: Request, exc: QuotaExceededError) -> ORJSONResponse:
        logger.warning("quota_refusal_http", provider=exc.provider, code=exc.code)
        return ORJSONResponse(
            status_code=429,
            content={"code": exc.code, "message": exc.message, "details": {"provider": exc.provider}},
        )

    @app.exception_handler(ProviderFallbackError)
    async def handle_fallback(request: Request, exc: ProviderFallbackError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=503,
            content={
                "code": exc.code,
                "message": exc.message,
                "details": {"original": exc.original, "alternative": exc.alternative},
            },
        )

    @app.exception_handler(ProviderError)
    async def handle_provider(request: Request, exc: ProviderError) -> ORJSONResponse:
        logger.error("provider_error_http", provider=exc.provider, message=exc.message)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
