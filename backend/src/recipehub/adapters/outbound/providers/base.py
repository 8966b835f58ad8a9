"""Shared plumbing for HTTP recipe providers.

Owns the ``httpx.AsyncClient``, the retry policy, error translation and the
quota hooks that delegate to the quota ledger.  Concrete providers only
deal with endpoints and wire formats.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from recipehub.domain.entities import Recipe
from recipehub.domain.exceptions import ProviderError
from recipehub.ports.outbound import CachePort, RecipeProviderPort
from recipehub.shared.providers.quota import QuotaLedger
from recipehub.shared.providers.types import CacheDurations

logger = structlog.get_logger(__name__)


# Transport failures only; an HTTP error status is an answer, not a glitch
_provider_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
    retry=retry_if_exception_type(httpx.TransportError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class HttpRecipeProvider(RecipeProviderPort):
    """Base for providers backed by a JSON-over-HTTP API."""

    NAME: str = ""

    def __init__(
        self,
        *,
        base_url: str,
        ledger: QuotaLedger,
        cache: CachePort,
        daily_quota: int,
        timeout: float = 30.0,
        params: dict[str, str] | None = None,
        cache_durations: CacheDurations | None = None,
    ) -> None:
        self._ledger = ledger
        self._cache = cache
        self._daily_quota = daily_quota
        self._ttl = cache_durations or CacheDurations()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            params=params,
            headers={"Accept": "application/json"},
            timeout=timeout,
        )
        self._log = logger.bind(provider=self.NAME)
        self._log.info("recipe_provider_initialized", base_url=base_url, daily_quota=daily_quota)

    # ── Identity & quota hooks ───────────────────────────────
    @property
    def provider_name(self) -> str:
        return self.NAME

    @property
    def daily_quota(self) -> int:
        return self._daily_quota

    async def register_quota(self) -> None:
        await self._ledger.register(self.NAME, self._daily_quota)

    async def get_remaining_calls(self) -> int:
        return await self._ledger.remaining_calls(self.NAME)

    async def increment_usage(self, count: int = 1) -> None:
        await self._ledger.increment_usage(self.NAME, count)

    async def reset_daily_counter(self) -> None:
        await self._ledger.reset_counter(self.NAME)

    async def close(self) -> None:
        await self._client.aclose()

    # ── HTTP ─────────────────────────────────────────────────
    @_provider_retry
    async def _fetch(self, path: str, params: dict[str, Any] | None) -> httpx.Response:
        resp = await self._client.get(path, params=params)
        resp.raise_for_status()
        return resp

    async def _get_json(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        *,
        not_found_ok: bool = False,
    ) -> Any:
        """GET ``path`` and decode JSON, translating failures to ``ProviderError``.

        Returns None for a 404 when ``not_found_ok`` is set.
        """
        try:
            resp = await self._fetch(path, params)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 404 and not_found_ok:
                return None
            self._log.warning("provider_http_status_error", path=path, status=status)
            raise ProviderError(self.NAME, f"GET {path} returned {status}") from exc
        except httpx.HTTPError as exc:
            self._log.warning("provider_transport_error", path=path, error=str(exc))
            raise ProviderError(self.NAME, f"GET {path} failed: {exc}") from exc

        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(self.NAME, f"GET {path} returned invalid JSON") from exc

    # ── Provider-local cache ─────────────────────────────────
    def _recipe_key(self, recipe_id: int) -> str:
        return f"{self.NAME.lower()}_recipe_{recipe_id}"

    async def _cached_recipe(self, recipe_id: int) -> Recipe | None:
        return await self._cache.get(self._recipe_key(recipe_id), Recipe)

    async def _remember_recipes(self, recipes: list[Recipe]) -> None:
        for recipe in recipes:
            await self._cache.set(self._recipe_key(recipe.id), recipe, ttl_seconds=self._ttl.recipe)
