"""
Shared fixtures for cache service tests.
"""

import pytest

from shared.config import get_cache_config
from service_cache.app.cache.selector import reset_provider


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def isolated_provider(monkeypatch):
    """Start every test without a selected provider or cached settings."""
    for name in ("CACHE_USE_REDIS", "CACHE_REDIS_URL", "CACHE_MAX_SIZE", "CACHE_DEFAULT_TTL"):
        monkeypatch.delenv(name, raising=False)
    get_cache_config.cache_clear()
    reset_provider()
    yield
    reset_provider()
    get_cache_config.cache_clear()
