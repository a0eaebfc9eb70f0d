"""
Cache Service package for the Pulwave cache layer.

The cache service owns the process-wide cache provider and everything that
reads through it:
- Provider selection: in-memory by default, Redis when configured
- Memoization with per-key in-flight deduplication
- Cached reference-data lookups and translation bundles

Structure:
- app.main: FastAPI app, admin routes, and the composition root.
- app.cache: Provider contract, backends, selector and memoization.
- app.adapters: HTTP client for the reference-data API.
- app.lookups: Cached lookup tables.
- app.translations: Translation bundle caching.
"""
