"""
Cache provider selection.

``create_provider`` is the pure selection policy. ``get_provider`` and
``set_provider`` hold the one process-wide instance handed out by the
composition root; everything else should receive a provider explicitly.
"""

import threading
from typing import Optional

from shared.config import BaseConfig, get_cache_config
from shared.errors import CacheConfigurationError
from shared.logging import get_logger

from .memory_cache import MemoryCache
from .provider import CacheProvider
from .redis_cache import RedisCache

logger = get_logger("cache.selector")

_lock = threading.Lock()
_provider: Optional[CacheProvider] = None


def create_provider(config: BaseConfig) -> CacheProvider:
    """Build the backend the configuration asks for.

    Raises:
        CacheConfigurationError: Redis requested without a connection target.
    """
    if config.use_redis:
        if not config.redis_url:
            raise CacheConfigurationError(
                "CACHE_USE_REDIS is set but CACHE_REDIS_URL is empty",
                details={"use_redis": True, "setting": "CACHE_REDIS_URL"},
            )
        logger.info("Selected Redis cache backend", key_prefix=config.key_prefix)
        return RedisCache(
            config.redis_url,
            config.default_ttl,
            key_prefix=config.key_prefix,
            socket_timeout=config.redis_socket_timeout,
        )

    logger.info("Selected in-memory cache backend", max_size=config.max_size)
    return MemoryCache(max_size=config.max_size, default_ttl=config.default_ttl)


def get_provider() -> CacheProvider:
    """Return the active provider, selecting one on first use."""
    global _provider
    provider = _provider
    if provider is not None:
        return provider

    with _lock:
        if _provider is None:
            _provider = create_provider(get_cache_config())
        return _provider


def set_provider(provider: CacheProvider) -> Optional[CacheProvider]:
    """Atomically replace the active provider.

    Returns the previous provider (if any) so the caller can close it.
    """
    global _provider
    with _lock:
        previous, _provider = _provider, provider
    logger.info(
        "Cache provider replaced",
        backend=getattr(provider, "name", type(provider).__name__),
        previous=getattr(previous, "name", None),
    )
    return previous


def reset_provider() -> Optional[CacheProvider]:
    """Forget the active provider so the next access re-runs selection."""
    global _provider
    with _lock:
        previous, _provider = _provider, None
    return previous
