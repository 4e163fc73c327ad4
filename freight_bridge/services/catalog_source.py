"""
Remote product catalog (Supabase)

The distributor catalog lives in a hosted Postgres table exposed through
Supabase's PostgREST API. Only two columns matter here:
- price_vendor_part: the storefront SKU
- price_part_nbr: the Ingram part number

Two access patterns:
- lookup_part_numbers(skus): targeted `in.(...)` filter for checkout misses
- fetch_all_mappings(): full paginated scan for the catalog sync job
"""
import logging
from typing import Dict, Iterable, List, Optional

import httpx

from freight_bridge.core.config import settings
from freight_bridge.core.exceptions import CatalogConfigurationError, MappingLookupError

logger = logging.getLogger(__name__)

SKU_COLUMN = "price_vendor_part"
PART_NUMBER_COLUMN = "price_part_nbr"
DEFAULT_PAGE_SIZE = 5000
# Keeps the in.(...) filter well under URL length limits
LOOKUP_CHUNK_SIZE = 100


def _quote_filter_value(value: str) -> str:
    """Quote a value for a PostgREST in.(...) list."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _valid_pairs(rows: Iterable[dict]) -> List[tuple]:
    pairs = []
    for row in rows:
        sku = row.get(SKU_COLUMN)
        part = row.get(PART_NUMBER_COLUMN)
        if sku and part:
            pairs.append((str(sku), str(part)))
    return pairs


class SupabaseCatalogSource:
    """PostgREST client for the remote catalog table."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        service_role_key: Optional[str] = None,
        table: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self.service_role_key = service_role_key if service_role_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
        self.table = table or settings.SUPABASE_CATALOG_TABLE
        self.timeout = timeout or settings.SUPABASE_TIMEOUT_SECONDS
        self._client: Optional[httpx.AsyncClient] = None

    def _check_configured(self):
        if not self.base_url:
            raise CatalogConfigurationError("SUPABASE_URL is not set")
        if not self.service_role_key:
            raise CatalogConfigurationError("SUPABASE_SERVICE_ROLE_KEY is not set")

    async def _get_http_client(self) -> httpx.AsyncClient:
        self._check_configured()
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/v1",
                timeout=self.timeout,
                headers={
                    "apikey": self.service_role_key,
                    "Authorization": f"Bearer {self.service_role_key}",
                    "Accept": "application/json",
                },
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _select(self, params: Dict[str, str], headers: Optional[Dict[str, str]] = None) -> List[dict]:
        client = await self._get_http_client()
        try:
            response = await client.get(f"/{self.table}", params=params, headers=headers)
        except httpx.RequestError as e:
            logger.error(f"[CATALOG] Request error: {e}")
            raise MappingLookupError(f"Unable to reach remote catalog: {e}")

        if not response.is_success:
            logger.error(f"[CATALOG] Query failed: {response.status_code} - {response.text[:500]}")
            raise MappingLookupError(
                "Unable to retrieve SKU mappings from remote catalog",
                details={"status": response.status_code, "response": response.text[:2000]},
            )

        data = response.json()
        return data if isinstance(data, list) else []

    async def lookup_part_numbers(self, skus: List[str]) -> Dict[str, str]:
        """
        Ingram part numbers for the given SKUs.

        Returns:
            {sku: part_number} for the SKUs found; first row wins on duplicates

        Raises:
            MappingLookupError: query failed
            CatalogConfigurationError: Supabase settings missing
        """
        found: Dict[str, str] = {}
        for start in range(0, len(skus), LOOKUP_CHUNK_SIZE):
            chunk = skus[start:start + LOOKUP_CHUNK_SIZE]
            rows = await self._select({
                "select": f"{SKU_COLUMN},{PART_NUMBER_COLUMN}",
                SKU_COLUMN: "in.(" + ",".join(_quote_filter_value(s) for s in chunk) + ")",
            })
            for sku, part in _valid_pairs(rows):
                found.setdefault(sku, part)
        return found

    async def fetch_all_mappings(self, page_size: int = DEFAULT_PAGE_SIZE) -> Dict[str, str]:
        """
        Full catalog scan, paginated with Range headers.

        Rows missing either column are skipped. Stops at the first page with
        no valid rows or fewer valid rows than page_size.

        Returns:
            {sku: part_number}, first occurrence wins
        """
        mappings: Dict[str, str] = {}
        fetched = 0
        offset = 0

        while True:
            rows = await self._select(
                {"select": f"{SKU_COLUMN},{PART_NUMBER_COLUMN}"},
                headers={
                    "Range-Unit": "items",
                    "Range": f"{offset}-{offset + page_size - 1}",
                    "Prefer": "count=exact",
                },
            )
            valid = _valid_pairs(rows)
            if not valid:
                break

            fetched += len(valid)
            for sku, part in valid:
                mappings.setdefault(sku, part)
            logger.info(f"[CATALOG] Fetched {fetched} rows ({len(mappings)} unique SKUs)")

            if len(valid) < page_size:
                break
            offset += page_size

        return mappings


# Singleton
_source: Optional[SupabaseCatalogSource] = None


def get_catalog_source() -> SupabaseCatalogSource:
    global _source
    if _source is None:
        _source = SupabaseCatalogSource()
    return _source
