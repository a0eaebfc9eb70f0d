"""
Adapters for external data sources read through the cache.
"""
