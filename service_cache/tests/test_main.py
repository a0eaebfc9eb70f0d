"""
Unit tests for the cache service API.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from shared.errors import ExternalServiceError
from service_cache.app.cache.memory_cache import MemoryCache
from service_cache.app.cache.selector import get_provider, set_provider
from service_cache.app.main import CacheService, create_app


class TestCacheService:
    """Test cases for CacheService."""

    @pytest.fixture
    def provider(self):
        return MemoryCache()

    @pytest.fixture
    def reference_client(self):
        """Mock reference data client."""
        client = MagicMock()
        client.get_rows = AsyncMock(return_value=[])
        client.get_bundles = AsyncMock(return_value={"ui": {"hi": "olá"}, "schema": {}, "enum": {}})
        client.get_bundle_hashes = AsyncMock(return_value={"ui": "h"})
        return client

    @pytest.fixture
    def app(self, provider, reference_client):
        """Create FastAPI app instance."""
        return create_app(provider=provider, reference_client=reference_client)

    @pytest.fixture
    def client(self, app):
        """Create test client."""
        return TestClient(app)

    def test_root_endpoint(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "cache"
        assert data["backend"] == "memory"

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"cache": "ok"}

    def test_health_endpoint_unhealthy(self, provider, reference_client):
        provider.health_check = AsyncMock(return_value=False)
        client = TestClient(create_app(provider=provider, reference_client=reference_client))

        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["dependencies"] == {"cache": "error"}

    def test_metrics_endpoint(self, client):
        client.get("/")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_get_and_delete_entry(self, client, provider):
        asyncio.run(provider.set("user:1", {"name": "Ana"}))

        response = client.get("/cache/entries/user:1")
        assert response.status_code == 200
        assert response.json() == {"key": "user:1", "value": {"name": "Ana"}}

        response = client.delete("/cache/entries/user:1")
        assert response.status_code == 200
        assert asyncio.run(provider.get("user:1")) is None

    def test_get_missing_entry(self, client):
        response = client.get("/cache/entries/missing", headers={"X-Request-ID": "req-1"})

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NOT_FOUND"
        assert data["request_id"] == "req-1"

    def test_invalidate_pattern(self, client, provider):
        asyncio.run(provider.set("user:1", 1))
        asyncio.run(provider.set("user:2", 2))
        asyncio.run(provider.set("order:1", 3))

        response = client.post("/cache/invalidate", json={"pattern": "user:*"})

        assert response.status_code == 200
        assert response.json() == {"pattern": "user:*", "removed": 2}
        assert asyncio.run(provider.get("order:1")) == 3

    def test_invalidate_requires_pattern(self, client):
        response = client.post("/cache/invalidate", json={"pattern": ""})
        assert response.status_code == 422

    def test_clear_and_stats(self, client, provider):
        asyncio.run(provider.set("a", 1))

        assert client.get("/cache/stats").json()["size"] == 1
        assert client.post("/cache/clear").json() == {"cleared": True}
        assert client.get("/cache/stats").json()["size"] == 0

    def test_lookups_countries(self, client, reference_client):
        reference_client.get_rows.return_value = [{"id": 1, "name": "Portugal", "iso_code_2": "PT"}]

        response = client.get("/lookups/countries")
        client.get("/lookups/countries")

        assert response.status_code == 200
        assert response.json()[0]["value"] == "1"
        assert response.json()[0]["code"] == "PT"
        reference_client.get_rows.assert_called_once()

    def test_lookups_upstream_failure(self, client, reference_client):
        reference_client.get_rows.side_effect = ExternalServiceError("reference_data", "HTTP 500")

        response = client.get("/lookups/timezones")

        assert response.status_code == 502
        assert response.json()["code"] == "EXTERNAL_SERVICE_ERROR"

    def test_lookups_clear(self, client):
        client.get("/lookups/timezones")
        response = client.post("/lookups/clear")
        assert response.json() == {"removed": 1}

    def test_translations(self, client, reference_client):
        response = client.get("/translations/pt-PT")

        assert response.status_code == 200
        assert response.json()["bundles"]["ui"] == {"hi": "olá"}
        reference_client.get_bundles.assert_called_once_with("pt-PT")

    def test_uses_process_provider_by_default(self, reference_client):
        provider = MemoryCache(max_size=7)
        set_provider(provider)

        service = CacheService(reference_client=reference_client)

        assert service.provider is provider
        assert get_provider() is provider

    def test_shutdown_closes_provider(self, provider, reference_client):
        provider.close = AsyncMock()

        with TestClient(create_app(provider=provider, reference_client=reference_client)) as client:
            client.get("/")

        provider.close.assert_called_once()

    def test_unexpected_error_returns_json(self, provider, reference_client):
        service = CacheService(provider=provider, reference_client=reference_client)

        @service.app.get("/boom")
        async def boom():
            raise RuntimeError("unexpected")

        client = TestClient(service.app, raise_server_exceptions=False)
        response = client.get("/boom", headers={"X-Request-ID": "req-500"})

        assert response.status_code == 500
        assert response.json() == {
            "request_id": "req-500",
            "code": "INTERNAL_ERROR",
            "message": "Internal server error",
            "details": {},
        }
