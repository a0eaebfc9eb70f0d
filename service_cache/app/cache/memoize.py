"""
Read-through / write-through memoization on top of a cache provider.

Concurrent misses for the same key share a single in-flight fetch: the
first caller starts it, later callers await the same task. A failed fetch
is propagated to every waiter and nothing is written to the cache.
"""

import asyncio
import functools
import time
import weakref
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from .provider import CacheProvider, resolve_ttl
from .selector import get_provider

T = TypeVar("T")

logger = get_logger("cache.memoize")


def make_key(*parts: Any) -> str:
    """Build a cache key from parts, e.g. ``make_key("lookup", "countries")``."""
    return ":".join(str(part) for part in parts)


class InFlightRegistry:
    """Fetches currently running, keyed by provider and cache key."""

    def __init__(self):
        self._pending: Dict[Tuple[int, str], "asyncio.Task[Any]"] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_pending(self, provider: CacheProvider, key: str) -> bool:
        return (id(provider), key) in self._pending

    async def run(
        self,
        provider: CacheProvider,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        ttl: Optional[float],
        metrics: Optional[MetricsCollector] = None,
    ) -> T:
        """Join the running fetch for key, or start one."""
        slot = (id(provider), key)
        task = self._pending.get(slot)
        if task is None:
            task = asyncio.ensure_future(_fetch_and_store(provider, key, fetch, ttl, metrics))
            self._pending[slot] = task
            task.add_done_callback(functools.partial(self._release, slot))
        else:
            logger.debug("Joining in-flight fetch", key=key)

        # One waiter being cancelled must not cancel the shared fetch
        return await asyncio.shield(task)

    def _release(self, slot: Tuple[int, str], task: "asyncio.Task[Any]") -> None:
        if self._pending.get(slot) is task:
            del self._pending[slot]
        if not task.cancelled():
            # Mark the exception retrieved even when every waiter went away
            task.exception()


_registries: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, InFlightRegistry]" = weakref.WeakKeyDictionary()


def get_inflight_registry() -> InFlightRegistry:
    """Registry bound to the running event loop."""
    loop = asyncio.get_running_loop()
    registry = _registries.get(loop)
    if registry is None:
        registry = _registries[loop] = InFlightRegistry()
    return registry


async def _fetch_and_store(
    provider: CacheProvider,
    key: str,
    fetch: Callable[[], Awaitable[T]],
    ttl: Optional[float],
    metrics: Optional[MetricsCollector],
) -> T:
    start = time.perf_counter()
    try:
        value = await fetch()
    except Exception as exc:
        logger.warning("Cache fetch failed; nothing cached", key=key, error=str(exc))
        raise

    if metrics is not None:
        metrics.observe_histogram("cache_fetch_duration_seconds", time.perf_counter() - start, backend=provider.name)

    # None is indistinguishable from a miss, so it is never stored
    if value is not None:
        await provider.set(key, value, ttl)
        logger.debug("Cached fetched value", key=key, ttl=ttl)
    return value


async def with_cache(
    key: str,
    fetch: Callable[[], Awaitable[T]],
    ttl: Optional[float] = None,
    *,
    provider: Optional[CacheProvider] = None,
    force_refresh: bool = False,
    metrics: Optional[MetricsCollector] = None,
) -> T:
    """Return the cached value for key, fetching and storing it on a miss.

    Args:
        key: Cache key.
        fetch: Zero-argument coroutine function producing a fresh value.
        ttl: Freshness window in seconds; the provider default when None.
        provider: Backend to use; the process-wide provider when None.
        force_refresh: Skip the cache read and always fetch (the result is
            still written back).
        metrics: Optional collector for hit/miss and fetch timing.

    Raises:
        ValueError: ttl is zero or negative; fetch is not called.
    """
    cache = provider if provider is not None else get_provider()
    # Invalid ttl fails before fetch runs
    resolve_ttl(ttl, cache.default_ttl)

    if not force_refresh:
        cached_value = await cache.get(key)
        if cached_value is not None:
            if metrics is not None:
                metrics.record_cache_access(cache.name, hit=True)
            logger.debug("Cache hit", key=key, backend=cache.name)
            return cached_value

    if metrics is not None:
        metrics.record_cache_access(cache.name, hit=False)
    logger.debug("Cache miss", key=key, backend=cache.name, force_refresh=force_refresh)

    return await get_inflight_registry().run(cache, key, fetch, ttl, metrics)


def cached(
    key_template: str,
    ttl: Optional[float] = None,
    *,
    provider: Optional[CacheProvider] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator memoizing an async function.

    The key is ``key_template.format(*args, **kwargs)``, so
    ``@cached("lookup:country:{0}")`` caches per first positional argument.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            key = key_template.format(*args, **kwargs)
            return await with_cache(key, lambda: func(*args, **kwargs), ttl, provider=provider)

        return wrapper

    return decorator
