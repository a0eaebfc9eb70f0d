"""
Unit tests for cached lookups.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from shared.errors import ExternalServiceError
from service_cache.app.cache.memory_cache import MemoryCache
from service_cache.app.lookups.service import RELATIONSHIP_OPTIONS, LookupService


class TestLookupService:
    """Test cases for LookupService."""

    @pytest.fixture
    def cache(self):
        return MemoryCache()

    @pytest.fixture
    def reference_client(self):
        """Mock reference data client."""
        client = MagicMock()
        client.get_rows = AsyncMock(return_value=[])
        return client

    @pytest.fixture
    def service(self, cache, reference_client):
        return LookupService(cache, reference_client, ttl=60)

    @pytest.fixture
    def mock_countries(self):
        return [
            {"id": 1, "name": "Portugal", "iso_code_2": "PT", "phone_code": "+351"},
            {"id": 2, "name": "Spain", "iso_code_2": "ES", "phone_code": "+34"},
        ]

    @pytest.mark.asyncio
    async def test_fetch_timezones_cached(self, service, cache, reference_client):
        reference_client.get_rows.return_value = [
            {"tz_identifier": "Europe/Lisbon", "display_name": "Lisbon", "utc_offset": "+00:00"},
        ]

        first = await service.fetch_timezones()
        second = await service.fetch_timezones()

        assert first == second
        assert first[0].value == "Europe/Lisbon"
        assert first[0].label == "Lisbon"
        assert first[0].extra == {"utc_offset": "+00:00"}
        reference_client.get_rows.assert_called_once()
        assert await cache.has("lookup:timezones")

    @pytest.mark.asyncio
    async def test_fetch_countries(self, service, reference_client, mock_countries):
        reference_client.get_rows.return_value = mock_countries

        countries = await service.fetch_countries()

        assert [country.value for country in countries] == ["1", "2"]
        assert countries[0].code == "PT"
        assert countries[1].extra["phone_code"] == "+34"

    @pytest.mark.asyncio
    async def test_get_country_by_id_uses_cached_list(self, service, reference_client, mock_countries):
        reference_client.get_rows.return_value = mock_countries

        spain = await service.get_country_by_id(2)
        missing = await service.get_country_by_id("99")

        assert spain.label == "Spain"
        assert missing is None
        reference_client.get_rows.assert_called_once()

    @pytest.mark.asyncio
    async def test_phone_codes_filter_cached_countries(self, service, cache, reference_client):
        reference_client.get_rows.return_value = [
            {"id": 1, "name": "Portugal", "iso_code_2": "PT", "phone_code": "+351"},
            {"id": 2, "name": "Nowhere", "iso_code_2": "XX", "phone_code": None},
        ]
        await service.fetch_countries()

        with_phone = await service.fetch_countries_with_phone_codes()

        assert [country.label for country in with_phone] == ["Portugal"]
        reference_client.get_rows.assert_called_once()
        assert await cache.has("lookup:countries_with_phone")

    @pytest.mark.asyncio
    async def test_phone_codes_queried_without_cached_countries(self, service, reference_client, mock_countries):
        reference_client.get_rows.return_value = mock_countries

        with_phone = await service.fetch_countries_with_phone_codes()
        await service.fetch_countries_with_phone_codes()

        assert len(with_phone) == 2
        reference_client.get_rows.assert_called_once()
        assert reference_client.get_rows.call_args.kwargs["not_null"] == ("phone_code",)

    @pytest.mark.asyncio
    async def test_get_country_by_code(self, service, reference_client, mock_countries):
        reference_client.get_rows.return_value = mock_countries

        assert (await service.get_country_by_code("es")).label == "Spain"
        assert await service.get_country_by_code("FR") is None

    @pytest.mark.asyncio
    async def test_fetch_districts(self, service, cache, reference_client, mock_countries):
        districts = [{"id": 10, "name": "Lisboa", "division_type": "district", "code": "11"}]
        reference_client.get_rows.side_effect = [mock_countries, districts]

        result = await service.fetch_districts()

        assert [district.label for district in result] == ["Lisboa"]
        assert await cache.has("lookup:regions:1:district")
        filters = reference_client.get_rows.call_args.kwargs["filters"]
        assert filters["division_type"] == "district"

    @pytest.mark.asyncio
    async def test_fetch_districts_unknown_country(self, service, reference_client, mock_countries):
        reference_client.get_rows.return_value = mock_countries

        assert await service.fetch_districts("FR") == []
        reference_client.get_rows.assert_called_once()

    @pytest.mark.asyncio
    async def test_fetch_administrative_divisions_keys_by_type(self, service, cache, reference_client):
        reference_client.get_rows.return_value = [
            {"id": 10, "name": "Lisboa", "division_type": "district", "parent_division_id": 3, "code": "11"},
        ]

        divisions = await service.fetch_administrative_divisions("1", "district")

        assert divisions[0].parent_id == "3"
        assert divisions[0].extra == {"type": "district"}
        assert await cache.has("lookup:regions:1:district")
        filters = reference_client.get_rows.call_args.kwargs["filters"]
        assert filters == {"country_id": "1", "is_active": True, "division_type": "district"}

        await service.fetch_administrative_divisions("1")
        assert await cache.has("lookup:regions:1:all")

    @pytest.mark.asyncio
    async def test_fetch_localities_labels_postal_code(self, service, reference_client):
        reference_client.get_rows.return_value = [
            {"id": 5, "name": "Belém", "postal_code": "1400-001"},
            {"id": 6, "name": "Alfama", "postal_code": None},
        ]

        localities = await service.fetch_localities("10")

        assert localities[0].label == "Belém (1400-001)"
        assert localities[1].label == "Alfama"
        assert localities[0].parent_id == "10"

    @pytest.mark.asyncio
    async def test_fetch_error_propagates_and_is_not_cached(self, service, cache, reference_client):
        reference_client.get_rows.side_effect = ExternalServiceError("reference_data", "HTTP 500")

        with pytest.raises(ExternalServiceError):
            await service.fetch_timezones()
        assert await cache.has("lookup:timezones") is False

    @pytest.mark.asyncio
    async def test_force_refresh(self, service, reference_client):
        reference_client.get_rows.return_value = []
        await service.fetch_countries()
        await service.fetch_countries(force_refresh=True)

        assert reference_client.get_rows.call_count == 2

    @pytest.mark.asyncio
    async def test_clear_cache_only_drops_lookups(self, service, cache):
        await cache.set("lookup:timezones", [])
        await cache.set("lookup:regions:1:all", [])
        await cache.set("translations:ui:en", {})

        removed = await service.clear_cache()

        assert removed == 2
        assert await cache.has("translations:ui:en")

    @pytest.mark.asyncio
    async def test_preload(self, service, cache):
        await service.preload()
        assert await cache.has("lookup:timezones")

    def test_relationship_options(self, service):
        options = service.get_relationship_options()

        assert len(options) == len(RELATIONSHIP_OPTIONS)
        assert options[0].value == "spouse"
