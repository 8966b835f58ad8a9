"""Cache adapters implementing CachePort.

Values are stored as JSON text.  ``pydantic_core.to_json`` serialises
dataclasses, lists and primitives; a cached ``TypeAdapter`` validates the
text back into whatever type the caller asks for.
"""

from __future__ import annotations

import math
import time
from functools import lru_cache
from typing import Any, Callable

import redis.asyncio as redis
import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import to_json

from recipehub.ports.outbound import CachePort
from recipehub.shared.observability.metrics import CACHE_LOOKUPS

logger = structlog.get_logger(__name__)


@lru_cache(maxsize=128)
def _adapter_for(result_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(result_type)


def encode(value: Any) -> str:
    return to_json(value).decode()


def decode(raw: str, result_type: Any) -> Any:
    return _adapter_for(result_type).validate_json(raw)


class MemoryCacheAdapter(CachePort):
    """In-process cache; expired entries are dropped when touched."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._data: dict[str, str] = {}
        self._expiry: dict[str, float] = {}
        self._clock = clock
        logger.info("cache_initialized_memory")

    def _live(self, key: str) -> bool:
        deadline = self._expiry.get(key)
        if deadline is not None and deadline <= self._clock():
            self._data.pop(key, None)
            self._expiry.pop(key, None)
            return False
        return key in self._data

    async def get(self, key: str, result_type: Any = Any) -> Any | None:
        if not self._live(key):
            CACHE_LOOKUPS.labels(layer="memory", result="miss").inc()
            return None
        try:
            value = decode(self._data[key], result_type)
        except PydanticValidationError as exc:
            logger.warning("cache_decode_error", key=key, error=str(exc))
            CACHE_LOOKUPS.labels(layer="memory", result="miss").inc()
            return None
        CACHE_LOOKUPS.labels(layer="memory", result="hit").inc()
        return value

    async def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        self._data[key] = encode(value)
        if ttl_seconds:
            self._expiry[key] = self._clock() + ttl_seconds
        else:
            self._expiry.pop(key, None)

    async def remove(self, key: str) -> bool:
        present = self._live(key)
        self._data.pop(key, None)
        self._expiry.pop(key, None)
        return present

    async def exists(self, key: str) -> bool:
        return self._live(key)

    async def clear(self) -> None:
        self._data.clear()
        self._expiry.clear()


class RedisCacheAdapter(CachePort):
    """Async Redis cache, falling back to memory for local or missing URLs.

    Redis errors are logged and treated as cache misses so a broken cache
    never takes the aggregator down with it.
    """

    def __init__(self, url: str, max_connections: int = 50, *, key_prefix: str = "recipehub:") -> None:
        self._prefix = key_prefix
        is_local = "localhost" in url or "127.0.0.1" in url
        self._use_memory = not url or is_local

        if self._use_memory:
            logger.warning("redis_url_missing_or_local_falling_back_to_memory", url=url)
            self._memory = MemoryCacheAdapter()
            return

        try:
            self._pool = redis.ConnectionPool.from_url(
                url,
                max_connections=max_connections,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)
        except Exception as e:
            logger.error("redis_init_failed", error=str(e))
            self._use_memory = True
            self._memory = MemoryCacheAdapter()

    def _k(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str, result_type: Any = Any) -> Any | None:
        if self._use_memory:
            return await self._memory.get(key, result_type)
        try:
            raw = await self._client.get(self._k(key))
        except redis.RedisError as exc:
            logger.error("redis_get_error", key=key, error=str(exc))
            return None
        if raw is None:
            CACHE_LOOKUPS.labels(layer="redis", result="miss").inc()
            return None
        try:
            value = decode(raw, result_type)
        except PydanticValidationError as exc:
            logger.warning("cache_decode_error", key=key, error=str(exc))
            return None
        CACHE_LOOKUPS.labels(layer="redis", result="hit").inc()
        return value

    async def set(self, key: str, value: Any, *, ttl_seconds: float | None = None) -> None:
        if self._use_memory:
            return await self._memory.set(key, value, ttl_seconds=ttl_seconds)
        try:
            payload = encode(value)
            if ttl_seconds:
                await self._client.setex(self._k(key), max(1, math.ceil(ttl_seconds)), payload)
            else:
                await self._client.set(self._k(key), payload)
        except redis.RedisError as exc:
            logger.error("redis_set_error", key=key, error=str(exc))

    async def remove(self, key: str) -> bool:
        if self._use_memory:
            return await self._memory.remove(key)
        try:
            return bool(await self._client.delete(self._k(key)))
        except redis.RedisError as exc:
            logger.error("redis_delete_error", key=key, error=str(exc))
            return False

    async def exists(self, key: str) -> bool:
        if self._use_memory:
            return await self._memory.exists(key)
        try:
            return bool(await self._client.exists(self._k(key)))
        except redis.RedisError as exc:
            logger.error("redis_exists_error", key=key, error=str(exc))
            return False

    async def clear(self) -> None:
        if self._use_memory:
            return await self._memory.clear()
        try:
            keys = [k async for k in self._client.scan_iter(match=f"{self._prefix}*")]
            if keys:
                await self._client.delete(*keys)
        except redis.RedisError as exc:
            logger.error("redis_clear_error", error=str(exc))

    async def close(self) -> None:
        if not self._use_memory:
            await self._client.aclose()
            await self._pool.aclose()

    async def health_check(self) -> bool:
        if self._use_memory:
            return True
        try:
            return await self._client.ping()
        except redis.RedisError:
            return False
