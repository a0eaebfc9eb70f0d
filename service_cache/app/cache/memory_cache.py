"""
Capacity-bounded, TTL-aware in-memory cache.

Expiry is lazy: an entry is only checked (and dropped) when it is read.
Capacity is enforced on write by evicting the oldest inserted key, or the
least recently used one when the store runs with ``EvictionPolicy.LRU``.
"""

import threading
import time
from collections import OrderedDict
from enum import Enum
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger

from .entry import CacheEntry
from .provider import resolve_ttl, wildcard_to_regex

DEFAULT_MAX_SIZE = 1000
DEFAULT_TTL = 300.0


class EvictionPolicy(str, Enum):
    """Which key is dropped when a full store receives a new key."""

    FIFO = "fifo"
    LRU = "lru"


class MemoryCache:
    """In-process cache backend."""

    name = "memory"

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL,
        *,
        eviction_policy: EvictionPolicy = EvictionPolicy.FIFO,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size!r}")
        resolve_ttl(default_ttl, default_ttl)

        self.max_size = max_size
        self.default_ttl = float(default_ttl)
        self.eviction_policy = EvictionPolicy(eviction_policy)
        self.logger = get_logger("cache.memory")

        self._clock = clock
        self._store: "OrderedDict[str, CacheEntry[Any]]" = OrderedDict()
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def __len__(self) -> int:
        return len(self._store)

    def _lookup(self, key: str) -> Optional[CacheEntry[Any]]:
        """Return the live entry for key, dropping it if it has expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired(self._clock()):
                del self._store[key]
                self._expirations += 1
                self._misses += 1
                self.logger.debug("Cache entry expired", key=key)
                return None

            if self.eviction_policy is EvictionPolicy.LRU:
                self._store.move_to_end(key)
            self._hits += 1
            return entry

    async def get(self, key: str) -> Optional[Any]:
        """Get value from cache."""
        entry = self._lookup(key)
        return None if entry is None else entry.value

    async def has(self, key: str) -> bool:
        """Check whether a live entry exists for key."""
        return self._lookup(key) is not None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Insert or replace the entry for key."""
        effective_ttl = resolve_ttl(ttl, self.default_ttl)

        with self._lock:
            if key not in self._store and len(self._store) >= self.max_size:
                evicted_key, _ = self._store.popitem(last=False)
                self._evictions += 1
                self.logger.debug("Evicted cache entry", key=evicted_key, policy=self.eviction_policy.value)

            self._store[key] = CacheEntry.create(value, effective_ttl, self._clock())
            if self.eviction_policy is EvictionPolicy.LRU:
                self._store.move_to_end(key)

    async def delete(self, key: str) -> None:
        """Remove key if present."""
        with self._lock:
            self._store.pop(key, None)

    async def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            count = len(self._store)
            self._store.clear()
        self.logger.info("Cache cleared", backend=self.name, keys_count=count)

    async def invalidate_pattern(self, pattern: str) -> int:
        """Remove every key fully matching the wildcard pattern."""
        regex = wildcard_to_regex(pattern)
        with self._lock:
            matched = [key for key in self._store if regex.match(key)]
            for key in matched:
                del self._store[key]

        if matched:
            self.logger.info("Invalidated cache pattern", pattern=pattern, keys_count=len(matched))
        return len(matched)

    async def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total = self._hits + self._misses
            return {
                "backend": self.name,
                "size": len(self._store),
                "max_size": self.max_size,
                "default_ttl": self.default_ttl,
                "eviction_policy": self.eviction_policy.value,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "expirations": self._expirations,
                "hit_rate": self._hits / total if total else 0.0,
            }

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None
