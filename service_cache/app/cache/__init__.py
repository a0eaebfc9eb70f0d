"""
Cache package for the cache service.

Provides the provider contract, the in-memory and Redis backends, the
process-wide provider selector, and the ``with_cache`` memoization helper.
Callers should depend on ``CacheProvider`` and ``with_cache`` only; which
backend is active is decided once, by configuration.
"""

from .entry import CacheEntry
from .memoize import InFlightRegistry, cached, make_key, with_cache
from .memory_cache import EvictionPolicy, MemoryCache
from .provider import CacheProvider, wildcard_to_regex
from .redis_cache import RedisCache
from .selector import create_provider, get_provider, reset_provider, set_provider

__all__ = [
    "CacheEntry",
    "CacheProvider",
    "EvictionPolicy",
    "InFlightRegistry",
    "MemoryCache",
    "RedisCache",
    "cached",
    "create_provider",
    "get_provider",
    "make_key",
    "reset_provider",
    "set_provider",
    "wildcard_to_regex",
    "with_cache",
]
