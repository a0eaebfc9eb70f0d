"""
Reference data client for lookup tables and translation bundles.

Talks to a PostgREST-style endpoint: ``GET /<table>?select=...&col=eq.value``.
"""

from typing import Any, Dict, List, Optional, Sequence

import httpx

from shared.errors import ExternalServiceError
from shared.logging import get_logger

BUNDLE_TYPES = ("ui", "schema", "enum")


class ReferenceDataClient:
    """Client for reading reference tables from the data API."""

    def __init__(self, base_url: str, api_key: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.logger = get_logger("cache.reference_data")

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def get_rows(
        self,
        table: str,
        select: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        order: Optional[str] = None,
        not_null: Sequence[str] = (),
    ) -> List[Dict[str, Any]]:
        """Fetch rows of a table, filtering each column by equality.

        Columns listed in ``not_null`` must also be non-null.
        """
        params: Dict[str, str] = {"select": select}
        for column, value in (filters or {}).items():
            if isinstance(value, bool):
                value = str(value).lower()
            params[column] = f"eq.{value}"
        for column in not_null:
            params[column] = "not.is.null"
        if order:
            params["order"] = order

        url = f"{self.base_url}/{table}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(url, params=params, headers=self._headers())
        except httpx.HTTPError as exc:
            self.logger.error("Reference data request failed", table=table, error=str(exc))
            raise ExternalServiceError("reference_data", str(exc) or type(exc).__name__, {"table": table}) from exc

        if response.status_code != 200:
            self.logger.error(
                "Reference data request returned an error",
                table=table,
                status_code=response.status_code,
                response=response.text,
            )
            raise ExternalServiceError(
                "reference_data",
                f"HTTP {response.status_code}",
                {"table": table, "status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ExternalServiceError("reference_data", "invalid JSON payload", {"table": table}) from exc

        if not isinstance(data, list):
            raise ExternalServiceError("reference_data", "expected a list of rows", {"table": table})

        self.logger.debug("Reference data retrieved", table=table, rows=len(data))
        return data

    async def get_bundle_hashes(self, locale: str) -> Dict[str, str]:
        """Content hash per bundle type for the active bundles of a locale."""
        rows = await self.get_rows(
            "translation_bundles",
            select="bundle_type,content_hash",
            filters={"locale_code": locale, "is_active": True},
            order="bundle_type.asc",
        )
        return {
            row["bundle_type"]: row["content_hash"]
            for row in rows
            if row.get("bundle_type") in BUNDLE_TYPES and row.get("content_hash")
        }

    async def get_bundles(self, locale: str) -> Dict[str, Dict[str, Any]]:
        """Bundle content per bundle type for a locale; missing types are empty."""
        rows = await self.get_rows(
            "translation_bundles",
            select="bundle_type,content",
            filters={"locale_code": locale, "is_active": True},
            order="bundle_type.asc",
        )
        bundles: Dict[str, Dict[str, Any]] = {bundle_type: {} for bundle_type in BUNDLE_TYPES}
        for row in rows:
            bundle_type = row.get("bundle_type")
            if bundle_type in bundles:
                bundles[bundle_type] = row.get("content") or {}
        return bundles
