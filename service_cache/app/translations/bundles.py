"""
Translation bundle caching.

A locale has three bundles (``ui``, ``schema``, ``enum``) plus the content
hashes they were generated from and the time they were cached. The loader
serves cached bundles while they are fresh and refetches otherwise.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Optional

from shared.logging import get_logger

from ..adapters.reference_data_client import BUNDLE_TYPES, ReferenceDataClient
from ..cache.memoize import make_key
from ..cache.provider import CacheProvider

CACHE_PREFIX = "translations"
CACHE_HASHES_PREFIX = "translations_hashes"
CACHE_TIMESTAMP_PREFIX = "translations_timestamp"
CACHE_LOCALES_KEY = "translations_locales"
DEFAULT_CACHE_TTL = 24 * 60 * 60
DEFAULT_RETENTION_TTL = 30 * 24 * 60 * 60

Bundles = Dict[str, Dict[str, Any]]
BundleHashes = Dict[str, Optional[str]]


def get_cache_key(bundle_type: str, locale: str) -> str:
    return make_key(CACHE_PREFIX, bundle_type, locale)


def get_hashes_cache_key(locale: str) -> str:
    return make_key(CACHE_HASHES_PREFIX, locale)


def get_timestamp_cache_key(locale: str) -> str:
    return make_key(CACHE_TIMESTAMP_PREFIX, locale)


def hashes_match(server_hashes: Optional[BundleHashes], cached_hashes: Optional[BundleHashes]) -> bool:
    """True when every bundle type has the same hash on both sides."""
    if not server_hashes or not cached_hashes:
        return False
    return all(server_hashes.get(bundle_type) == cached_hashes.get(bundle_type) for bundle_type in BUNDLE_TYPES)


def get_language_base(locale: Optional[str]) -> str:
    if not locale:
        return "en"
    return locale.split("-")[0].lower()


def build_fallback_chain(locale: Optional[str]) -> List[str]:
    """Locales to try in order, e.g. ``pt-PT`` -> ``["pt-PT", "pt", "en", "en-US"]``."""
    chain: List[str] = []
    if locale:
        chain.append(locale)
        base = get_language_base(locale)
        if base != locale:
            chain.append(base)

    if "en-US" not in chain:
        chain.append("en-US")
    if "en" not in chain:
        chain.insert(chain.index("en-US"), "en")
    return chain


class TranslationBundleCache:
    """Per-locale bundle storage on top of a cache provider.

    ``ttl`` is the freshness window checked against the stored timestamp.
    Entries are kept for ``retention_ttl`` so stale bundles remain available
    when a refetch fails.
    """

    def __init__(
        self,
        provider: CacheProvider,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.time,
        retention_ttl: float = DEFAULT_RETENTION_TTL,
    ):
        if retention_ttl < ttl:
            raise ValueError(f"retention_ttl ({retention_ttl!r}) must not be shorter than ttl ({ttl!r})")

        self.provider = provider
        self.ttl = ttl
        self.retention_ttl = retention_ttl
        self._clock = clock
        self._locales: List[str] = []
        self.logger = get_logger("cache.translations")

    async def get_cached_bundles(self, locale: str) -> Optional[Bundles]:
        """Cached bundles for locale, or None when none of them is cached."""
        values = [await self.provider.get(get_cache_key(bundle_type, locale)) for bundle_type in BUNDLE_TYPES]
        if all(value is None for value in values):
            return None
        return {bundle_type: value or {} for bundle_type, value in zip(BUNDLE_TYPES, values)}

    async def set_cached_bundles(
        self,
        locale: str,
        bundles: Bundles,
        hashes: Optional[BundleHashes] = None,
    ) -> None:
        """Store bundles (and hashes) for locale and drop other locales."""
        for bundle_type in BUNDLE_TYPES:
            if bundles.get(bundle_type) is not None:
                await self.provider.set(get_cache_key(bundle_type, locale), bundles[bundle_type], self.retention_ttl)

        if hashes:
            await self.provider.set(get_hashes_cache_key(locale), hashes, self.retention_ttl)

        await self.provider.set(get_timestamp_cache_key(locale), self._clock(), self.retention_ttl)
        await self._remember_locale(locale)
        await self.clear_old_caches(locale)

    async def get_cached_hashes(self, locale: str) -> Optional[BundleHashes]:
        return await self.provider.get(get_hashes_cache_key(locale))

    async def get_cache_timestamp(self, locale: str) -> Optional[float]:
        return await self.provider.get(get_timestamp_cache_key(locale))

    async def is_cache_valid(self, locale: str, ttl: Optional[float] = None) -> bool:
        """True when the bundles for locale were cached less than ttl seconds ago."""
        timestamp = await self.get_cache_timestamp(locale)
        if timestamp is None:
            return False
        return (self._clock() - timestamp) < (self.ttl if ttl is None else ttl)

    async def clear_cached_bundles(self, locale: str) -> None:
        for bundle_type in BUNDLE_TYPES:
            await self.provider.delete(get_cache_key(bundle_type, locale))
        await self.provider.delete(get_hashes_cache_key(locale))
        await self.provider.delete(get_timestamp_cache_key(locale))

    async def clear_old_caches(self, keep_locale: str) -> List[str]:
        """Drop cached bundles of every locale other than keep_locale."""
        locales = await self._known_locales()
        stale = [locale for locale in locales if locale != keep_locale]
        for locale in stale:
            await self.clear_cached_bundles(locale)

        if stale:
            self._locales = [keep_locale] if keep_locale in locales else []
            await self.provider.set(CACHE_LOCALES_KEY, self._locales, self.retention_ttl)
            self.logger.info("Cleared old translation caches", locales=stale, kept=keep_locale)
        return stale

    async def _known_locales(self) -> List[str]:
        # The registry key can be evicted like any other entry; locales
        # written by this instance are tracked locally as well
        stored = await self.provider.get(CACHE_LOCALES_KEY) or []
        return list(dict.fromkeys([*stored, *self._locales]))

    async def _remember_locale(self, locale: str) -> None:
        locales = await self._known_locales()
        if locale not in locales:
            locales.append(locale)
        self._locales = locales
        await self.provider.set(CACHE_LOCALES_KEY, locales, self.retention_ttl)


class TranslationBundleLoader:
    """Serve bundles from the cache, refetching them when stale."""

    def __init__(self, cache: TranslationBundleCache, client: ReferenceDataClient):
        self.cache = cache
        self.client = client
        self.logger = get_logger("cache.translations.loader")

    async def load(self, locale: str, force_refresh: bool = False) -> Bundles:
        """Bundles for locale.

        Fresh cached bundles are returned as is. Otherwise the bundles are
        refetched; if that fails, whatever is still cached is returned and
        the error propagates only when nothing is cached.
        """
        if not force_refresh:
            cached_bundles = await self.cache.get_cached_bundles(locale)
            if cached_bundles is not None and await self.cache.is_cache_valid(locale):
                return cached_bundles

        try:
            bundles, hashes = await asyncio.gather(
                self.client.get_bundles(locale),
                self.client.get_bundle_hashes(locale),
            )
        except Exception as exc:
            cached_bundles = await self.cache.get_cached_bundles(locale)
            if cached_bundles is None:
                raise
            self.logger.warning("Serving cached translations after fetch failure", locale=locale, error=str(exc))
            return cached_bundles

        await self.cache.set_cached_bundles(locale, bundles, hashes)
        return bundles

    async def check_for_updates(self, locale: str) -> bool:
        """Reload locale if the server hashes differ from the cached ones.

        Returns True when a reload happened.
        """
        server_hashes = await self.client.get_bundle_hashes(locale)
        cached_hashes = await self.cache.get_cached_hashes(locale)
        if hashes_match(server_hashes, cached_hashes):
            return False

        self.logger.info("Translation bundles changed on server", locale=locale)
        await self.load(locale, force_refresh=True)
        return True
