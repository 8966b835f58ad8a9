"""RecipeHub: Application Configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from recipehub.domain.enums import OptimizationStrategy
from recipehub.shared.providers.types import CacheDurations, LockScope


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


_DAY = 24 * 60 * 60


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "recipehub"
    app_env: Environment = Environment.DEVELOPMENT
    app_debug: bool = False
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "INFO"

    # ── Redis ────────────────────────────────────────────────
    redis_url: str = ""
    redis_max_connections: int = 50
    cache_key_prefix: str = "recipehub:"

    # ── Quota ledger storage ─────────────────────────────────
    metrics_database_url: str = "sqlite+aiosqlite:///./recipehub_metrics.db"

    # ── Providers ────────────────────────────────────────────
    mealdb_base_url: str = "https://www.themealdb.com/api/json/v1/"
    mealdb_api_key: str = "1"
    mealdb_daily_quota: int = 1000

    spoonacular_base_url: str = "https://api.spoonacular.com/"
    spoonacular_api_key: str = ""
    spoonacular_daily_quota: int = 150

    provider_timeout_seconds: float = 30.0
    # Comma-separated provider names, highest priority first
    provider_priority: str = "TheMealDB,Spoonacular"
    # Comma-separated ``name=strategy`` pairs
    provider_strategies: str = ""

    # ── Request optimizer ────────────────────────────────────
    optimizer_min_interval_ms: int = 100
    optimizer_lock_scope: LockScope = LockScope.GLOBAL
    conservative_threshold_pct: float = 90.0

    # ── Cache TTLs (seconds) ─────────────────────────────────
    recipe_cache_ttl: int = 7 * _DAY
    taxonomy_cache_ttl: int = 30 * _DAY
    filtered_cache_ttl: int = _DAY
    usage_stats_cache_ttl: int = 120

    # ── Observability ────────────────────────────────────────
    prometheus_enabled: bool = True

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def cache_durations(self) -> CacheDurations:
        return CacheDurations(
            recipe=self.recipe_cache_ttl,
            taxonomy=self.taxonomy_cache_ttl,
            filtered=self.filtered_cache_ttl,
            usage_stats=self.usage_stats_cache_ttl,
        )

    @property
    def priority_list(self) -> list[str]:
        return [p.strip() for p in self.provider_priority.split(",") if p.strip()]

    @property
    def strategy_map(self) -> dict[str, OptimizationStrategy]:
        result: dict[str, OptimizationStrategy] = {}
        for pair in self.provider_strategies.split(","):
            if "=" not in pair:
                continue
            name, _, value = pair.partition("=")
            result[name.strip()] = OptimizationStrategy.parse(value)
        return result

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("metrics_database_url")
    @classmethod
    def _validate_database_url(cls, v: str) -> str:
        if not v.startswith(("postgresql", "sqlite")):
            raise ValueError("metrics_database_url must start with 'postgresql' or 'sqlite'")
        return v

    @field_validator("provider_strategies")
    @classmethod
    def _validate_strategies(cls, v: str) -> str:
        for pair in v.split(","):
            if "=" in pair:
                OptimizationStrategy.parse(pair.partition("=")[2])
        return v

    @field_validator("mealdb_daily_quota", "spoonacular_daily_quota")
    @classmethod
    def _positive_quota(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("daily quotas must be positive")
        return v

    @model_validator(mode="after")
    def _guard_production_providers(self) -> Settings:
        """Warn when production would run on the free provider alone."""
        if self.app_env == Environment.PRODUCTION and not self.spoonacular_api_key:
            import warnings
            warnings.warn(
                "spoonacular_api_key is empty in production, only TheMealDB will be queried",
                UserWarning,
                stacklevel=2,
            )
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
