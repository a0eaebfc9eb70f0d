"""
Cache service for the Pulwave cache layer.

This module is the composition root: it selects the cache provider once and
hands it to every component that caches, and exposes admin endpoints to
inspect and invalidate the cache.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from shared.base_service import BaseService
from shared.errors import NotFoundError

from .adapters.reference_data_client import ReferenceDataClient
from .cache.provider import CacheProvider
from .cache.selector import get_provider
from .lookups.models import LookupOption
from .lookups.service import LookupService
from .translations.bundles import TranslationBundleCache, TranslationBundleLoader


class InvalidateRequest(BaseModel):
    """Pattern invalidation request."""

    pattern: str = Field(min_length=1)


class CacheService(BaseService):
    """Cache service implementation."""

    def __init__(
        self,
        provider: Optional[CacheProvider] = None,
        reference_client: Optional[ReferenceDataClient] = None,
    ):
        super().__init__("cache", 8020)

        self.provider = provider if provider is not None else get_provider()
        self.reference_client = reference_client or ReferenceDataClient(
            self.config.reference_data_url,
            api_key=self.config.reference_data_api_key,
            timeout=self.config.reference_data_timeout,
        )
        self.lookups = LookupService(
            self.provider,
            self.reference_client,
            ttl=self.config.lookup_ttl,
            metrics=self.metrics,
        )
        self.translations = TranslationBundleLoader(
            TranslationBundleCache(
                self.provider,
                ttl=self.config.translation_ttl,
                retention_ttl=self.config.translation_retention_ttl,
            ),
            self.reference_client,
        )

        self._setup_cache_routes()

    async def _on_shutdown(self) -> None:
        await self.provider.close()

    async def _check_dependencies(self) -> Dict[str, str]:
        healthy = await self.provider.health_check()
        return {"cache": "ok" if healthy else "error"}

    def _setup_cache_routes(self):
        """Set up cache-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "cache",
                "message": "Pulwave - Cache Service",
                "version": "1.0.0",
                "backend": self.provider.name,
            }

        @self.app.get("/cache/stats")
        async def cache_stats() -> Dict[str, Any]:
            """Backend statistics."""
            stats = await self.provider.stats()
            self.metrics.set_gauge("cache_entries", stats.get("size", 0), backend=self.provider.name)
            return stats

        @self.app.get("/cache/entries/{key:path}")
        async def get_entry(key: str):
            """Read a single cached value."""
            value = await self.provider.get(key)
            if value is None:
                raise NotFoundError(f"No cache entry for key '{key}'", {"key": key})
            return {"key": key, "value": value}

        @self.app.delete("/cache/entries/{key:path}")
        async def delete_entry(key: str):
            """Delete a single cached value."""
            await self.provider.delete(key)
            return {"key": key, "deleted": True}

        @self.app.post("/cache/invalidate")
        async def invalidate(request: InvalidateRequest):
            """Delete every key matching a ``*`` wildcard pattern."""
            removed = await self.provider.invalidate_pattern(request.pattern)
            self.metrics.increment_counter("cache_invalidations_total", removed, backend=self.provider.name)
            self.logger.info("Cache invalidated via API", pattern=request.pattern, keys_count=removed)
            return {"pattern": request.pattern, "removed": removed}

        @self.app.post("/cache/clear")
        async def clear():
            """Delete every cached value."""
            await self.provider.clear()
            return {"cleared": True}

        @self.app.get("/lookups/timezones", response_model=List[LookupOption])
        async def timezones(force_refresh: bool = False):
            return await self.lookups.fetch_timezones(force_refresh=force_refresh)

        @self.app.get("/lookups/countries", response_model=List[LookupOption])
        async def countries(force_refresh: bool = False):
            return await self.lookups.fetch_countries(force_refresh=force_refresh)

        @self.app.post("/lookups/clear")
        async def clear_lookups():
            """Drop every cached lookup."""
            removed = await self.lookups.clear_cache()
            return {"removed": removed}

        @self.app.get("/translations/{locale}")
        async def translations(locale: str, force_refresh: bool = False):
            """Translation bundles for a locale."""
            bundles = await self.translations.load(locale, force_refresh=force_refresh)
            return {"locale": locale, "bundles": bundles}


def create_app(
    provider: Optional[CacheProvider] = None,
    reference_client: Optional[ReferenceDataClient] = None,
):
    """Create cache service application."""
    service = CacheService(provider=provider, reference_client=reference_client)
    return service.app


if __name__ == "__main__":
    service = CacheService()
    service.run()
