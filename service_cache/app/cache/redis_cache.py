"""
Redis-backed cache provider.

Same contract as ``MemoryCache`` but shared across processes. Redis expires
keys natively (``SET ... PX``), so there is no lazy-expiry bookkeeping here.
Failures are surfaced to the caller as ``CacheTransportError``; this layer
never retries or reconnects on its own.
"""

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import RedisError

from shared.errors import CacheConfigurationError, CacheLayerException, CacheTransportError
from shared.logging import get_logger

from .provider import WILDCARD, resolve_ttl

DEFAULT_TTL = 300.0
DEFAULT_KEY_PREFIX = "cache:"
DELETE_BATCH_SIZE = 500

_GLOB_SPECIAL = {"\\", "?", "[", "]"}


def escape_glob(text: str) -> str:
    """Escape Redis glob metacharacters so text matches literally."""
    return "".join(f"\\{char}" if char in _GLOB_SPECIAL else char for char in text)


def wildcard_to_glob(pattern: str) -> str:
    """Translate a ``*`` wildcard pattern into an equivalent Redis glob."""
    return WILDCARD.join(escape_glob(part) for part in pattern.split(WILDCARD))


class RedisCache:
    """Networked cache backend."""

    name = "redis"

    def __init__(
        self,
        redis_url: Optional[str],
        default_ttl: float = DEFAULT_TTL,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        socket_timeout: float = 5.0,
    ):
        resolve_ttl(default_ttl, default_ttl)

        self.redis_url = redis_url
        self.default_ttl = float(default_ttl)
        self.key_prefix = key_prefix
        self.socket_timeout = socket_timeout
        self.logger = get_logger("cache.redis")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection, creating the client on first use."""
        if self._redis is None:
            if not self.redis_url:
                raise CacheConfigurationError(
                    "Redis cache backend has no connection target; set CACHE_REDIS_URL",
                    details={"setting": "CACHE_REDIS_URL"},
                )
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.socket_timeout,
                socket_timeout=self.socket_timeout,
                retry_on_timeout=False,
                retry=Retry(NoBackoff(), 0),
            )
            self.logger.info("Redis cache client created", key_prefix=self.key_prefix)
        return self._redis

    def _make_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _strip_prefix(self, full_key: str) -> str:
        return full_key[len(self.key_prefix):] if full_key.startswith(self.key_prefix) else full_key

    @asynccontextmanager
    async def _transport(self, operation: str, key: Optional[str] = None) -> AsyncIterator[None]:
        """Translate client failures into CacheTransportError."""
        try:
            yield
        except (RedisError, OSError) as exc:
            self.logger.error("Redis cache operation failed", operation=operation, key=key, error=str(exc))
            raise CacheTransportError(operation, str(exc) or type(exc).__name__, key=key, original_error=exc) from exc

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        client = await self._get_redis()
        async with self._transport("get", key):
            raw = await client.get(self._make_key(key))

        if raw is None:
            return None

        try:
            return json.loads(raw)
        except (TypeError, ValueError) as exc:
            self.logger.error("Malformed cached payload", key=key, error=str(exc))
            raise CacheTransportError("get", "malformed cached payload", key=key, original_error=exc) from exc

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Insert or replace the entry for key."""
        effective_ttl = resolve_ttl(ttl, self.default_ttl)
        payload = json.dumps(value)

        client = await self._get_redis()
        async with self._transport("set", key):
            await client.set(self._make_key(key), payload, px=max(1, int(effective_ttl * 1000)))

    async def delete(self, key: str) -> None:
        """Remove key if present."""
        client = await self._get_redis()
        async with self._transport("delete", key):
            await client.delete(self._make_key(key))

    async def has(self, key: str) -> bool:
        """Check whether a live entry exists for key."""
        client = await self._get_redis()
        async with self._transport("has", key):
            return await client.exists(self._make_key(key)) > 0

    async def _delete_matching(self, operation: str, glob: str) -> int:
        """SCAN for keys matching glob and delete them in batches."""
        client = await self._get_redis()
        removed = 0
        async with self._transport(operation):
            batch: List[str] = []
            async for full_key in client.scan_iter(match=glob, count=DELETE_BATCH_SIZE):
                batch.append(full_key)
                if len(batch) >= DELETE_BATCH_SIZE:
                    removed += await client.delete(*batch)
                    batch = []
            if batch:
                removed += await client.delete(*batch)
        return removed

    async def clear(self) -> None:
        """Remove every key under this cache's prefix."""
        removed = await self._delete_matching("clear", f"{escape_glob(self.key_prefix)}*")
        self.logger.info("Cache cleared", backend=self.name, keys_count=removed)

    async def invalidate_pattern(self, pattern: str) -> int:
        """Remove every key fully matching the wildcard pattern."""
        glob = escape_glob(self.key_prefix) + wildcard_to_glob(pattern)
        removed = await self._delete_matching("invalidate_pattern", glob)
        if removed:
            self.logger.info("Invalidated cache pattern", pattern=pattern, keys_count=removed)
        return removed

    async def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        client = await self._get_redis()
        async with self._transport("stats"):
            info = await client.info()
            size = 0
            async for _ in client.scan_iter(match=f"{escape_glob(self.key_prefix)}*", count=DELETE_BATCH_SIZE):
                size += 1

        hits = int(info.get("keyspace_hits", 0) or 0)
        misses = int(info.get("keyspace_misses", 0) or 0)
        total = hits + misses
        return {
            "backend": self.name,
            "size": size,
            "key_prefix": self.key_prefix,
            "default_ttl": self.default_ttl,
            "redis_version": info.get("redis_version"),
            "used_memory": info.get("used_memory_human"),
            "connected_clients": info.get("connected_clients"),
            "hits": hits,
            "misses": misses,
            "hit_rate": hits / total if total else 0.0,
        }

    async def health_check(self) -> bool:
        """Check Redis health."""
        try:
            client = await self._get_redis()
            async with self._transport("ping"):
                await client.ping()
            return True
        except CacheLayerException as exc:
            self.logger.warning("Redis cache health check failed", error=exc.message)
            return False

    async def close(self) -> None:
        """Close the Redis client."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("Redis cache client closed")
