"""
Cached lookup-table reads.

Each lookup is a ``with_cache`` read under a ``lookup:`` key, so clearing
every lookup is a single pattern invalidation.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..adapters.reference_data_client import ReferenceDataClient
from ..cache.memoize import make_key, with_cache
from ..cache.provider import CacheProvider
from .models import LookupOption

LOOKUP_PREFIX = "lookup"
COUNTRIES_KEY = make_key(LOOKUP_PREFIX, "countries")
COUNTRY_COLUMNS = "id,name,iso_code_2,phone_code"
DEFAULT_DISTRICTS_COUNTRY = "PT"
DEFAULT_LOOKUP_TTL = 5 * 60

RELATIONSHIP_OPTIONS: List[Dict[str, str]] = [
    {"value": "spouse", "label": "Spouse"},
    {"value": "partner", "label": "Partner"},
    {"value": "parent", "label": "Parent"},
    {"value": "child", "label": "Child"},
    {"value": "sibling", "label": "Sibling"},
    {"value": "grandparent", "label": "Grandparent"},
    {"value": "grandchild", "label": "Grandchild"},
    {"value": "aunt-uncle", "label": "Aunt/Uncle"},
    {"value": "niece-nephew", "label": "Niece/Nephew"},
    {"value": "cousin", "label": "Cousin"},
    {"value": "friend", "label": "Friend"},
    {"value": "colleague", "label": "Colleague"},
    {"value": "neighbor", "label": "Neighbor"},
    {"value": "caregiver", "label": "Caregiver"},
    {"value": "legal-guardian", "label": "Legal Guardian"},
    {"value": "other", "label": "Other"},
]


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _country_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "value": str(row["id"]),
        "label": row["name"],
        "code": row.get("iso_code_2"),
        "extra": {"phone_code": row.get("phone_code")},
    }


class LookupService:
    """Reference lookups (timezones, countries, divisions) read through the cache."""

    def __init__(
        self,
        provider: CacheProvider,
        client: ReferenceDataClient,
        ttl: float = DEFAULT_LOOKUP_TTL,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.provider = provider
        self.client = client
        self.ttl = ttl
        self.metrics = metrics
        self.logger = get_logger("cache.lookups")

    async def _options(
        self,
        key: str,
        fetch: Callable[[], Awaitable[List[Dict[str, Any]]]],
        force_refresh: bool,
    ) -> List[LookupOption]:
        rows = await with_cache(
            key,
            fetch,
            self.ttl,
            provider=self.provider,
            force_refresh=force_refresh,
            metrics=self.metrics,
        )
        return [LookupOption(**row) for row in rows]

    async def fetch_timezones(self, force_refresh: bool = False) -> List[LookupOption]:
        """Active timezones in display order."""

        async def fetch() -> List[Dict[str, Any]]:
            rows = await self.client.get_rows(
                "timezones",
                select="tz_identifier,display_name,utc_offset",
                filters={"is_active": True},
                order="display_order.asc",
            )
            return [
                {
                    "value": row["tz_identifier"],
                    "label": row["display_name"],
                    "extra": {"utc_offset": row.get("utc_offset")},
                }
                for row in rows
            ]

        return await self._options(make_key(LOOKUP_PREFIX, "timezones"), fetch, force_refresh)

    async def fetch_countries(self, force_refresh: bool = False) -> List[LookupOption]:
        """All countries ordered by name."""

        async def fetch() -> List[Dict[str, Any]]:
            rows = await self.client.get_rows(
                "countries",
                select=COUNTRY_COLUMNS,
                order="name.asc",
            )
            return [_country_row(row) for row in rows]

        return await self._options(COUNTRIES_KEY, fetch, force_refresh)

    async def fetch_countries_with_phone_codes(self, force_refresh: bool = False) -> List[LookupOption]:
        """Countries that have a dialling code.

        Filters the cached country list when there is one; otherwise only
        countries with a phone code are queried.
        """

        async def fetch() -> List[Dict[str, Any]]:
            if not force_refresh:
                countries = await self.provider.get(COUNTRIES_KEY)
                if countries is not None:
                    return [country for country in countries if country["extra"].get("phone_code")]

            rows = await self.client.get_rows(
                "countries",
                select=COUNTRY_COLUMNS,
                order="name.asc",
                not_null=("phone_code",),
            )
            return [_country_row(row) for row in rows]

        return await self._options(make_key(LOOKUP_PREFIX, "countries_with_phone"), fetch, force_refresh)

    async def get_country_by_id(self, country_id: str) -> Optional[LookupOption]:
        """Single country from the cached country list."""
        for country in await self.fetch_countries():
            if country.value == str(country_id):
                return country
        return None

    async def get_country_by_code(self, iso_code: str) -> Optional[LookupOption]:
        """Single country by ISO 3166-1 alpha-2 code, from the cached list."""
        for country in await self.fetch_countries():
            if country.code and country.code.upper() == iso_code.upper():
                return country
        return None

    async def fetch_administrative_divisions(
        self,
        country_id: str,
        division_type: Optional[str] = None,
        force_refresh: bool = False,
    ) -> List[LookupOption]:
        """Regions, districts, etc. of a country, optionally of one type."""

        async def fetch() -> List[Dict[str, Any]]:
            filters: Dict[str, Any] = {"country_id": country_id, "is_active": True}
            if division_type:
                filters["division_type"] = division_type
            rows = await self.client.get_rows(
                "administrative_divisions",
                select="id,name,division_type,parent_division_id,code",
                filters=filters,
                order="name.asc",
            )
            return [
                {
                    "value": str(row["id"]),
                    "label": row["name"],
                    "code": row.get("code"),
                    "parent_id": _optional_str(row.get("parent_division_id")),
                    "extra": {"type": row.get("division_type")},
                }
                for row in rows
            ]

        key = make_key(LOOKUP_PREFIX, "regions", country_id, division_type or "all")
        return await self._options(key, fetch, force_refresh)

    async def fetch_districts(
        self,
        country_code: str = DEFAULT_DISTRICTS_COUNTRY,
        force_refresh: bool = False,
    ) -> List[LookupOption]:
        """Districts of a country given by ISO code; empty if the country is unknown."""
        country = await self.get_country_by_code(country_code)
        if country is None:
            self.logger.warning("Country not found for district lookup", country_code=country_code)
            return []
        return await self.fetch_administrative_divisions(country.value, "district", force_refresh=force_refresh)

    async def fetch_localities(self, division_id: str, force_refresh: bool = False) -> List[LookupOption]:
        """Localities of an administrative division, labelled with postal code."""

        async def fetch() -> List[Dict[str, Any]]:
            rows = await self.client.get_rows(
                "localities",
                select="id,name,postal_code",
                filters={"administrative_division_id": division_id, "is_active": True},
                order="name.asc",
            )
            return [
                {
                    "value": str(row["id"]),
                    "label": f"{row['name']} ({row['postal_code']})" if row.get("postal_code") else row["name"],
                    "code": row.get("postal_code"),
                    "parent_id": division_id,
                }
                for row in rows
            ]

        return await self._options(make_key(LOOKUP_PREFIX, "localities", division_id), fetch, force_refresh)

    def get_relationship_options(self) -> List[LookupOption]:
        """Static relationship options; not cached."""
        return [LookupOption(**option) for option in RELATIONSHIP_OPTIONS]

    async def clear_cache(self) -> int:
        """Drop every cached lookup."""
        removed = await self.provider.invalidate_pattern(f"{LOOKUP_PREFIX}:*")
        self.logger.info("Lookup cache cleared", keys_count=removed)
        return removed

    async def preload(self) -> None:
        """Warm the lookups every page needs."""
        await self.fetch_timezones()
