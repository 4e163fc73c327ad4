"""
SKU Mapping Resolver v1.0.0

Resolves storefront SKUs to Ingram part numbers for freight requests.

Lookup order per SKU:
1. In-process cache keyed "shop::sku". A cached None is a negative entry
   ("checked, not found") and short-circuits further lookups.
2. Local product_mappings table (populated by the catalog sync).
3. Remote catalog, only when allow_remote_fallback is set. Hits are written
   through to the local table in the background.

Positive entries live 5 minutes (the catalog changes weekly); negative
entries 1 minute, so a fixed mapping shows up quickly.

Local store failures degrade to remote-only with a warning. Remote failures
propagate: with no mapping data at all the freight request cannot proceed.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError

from freight_bridge.core.background import fire_and_forget
from freight_bridge.core.config import settings
from freight_bridge.core.database import get_db_session
from freight_bridge.core.ttl_cache import MISSING, TTLCache
from freight_bridge.models.product_mapping import ProductMapping
from freight_bridge.services.catalog_source import SupabaseCatalogSource, get_catalog_source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkuMapping:
    sku: str
    ingram_part_number: str

    def to_dict(self):
        return {"sku": self.sku, "ingramPartNumber": self.ingram_part_number}


def mappings_by_sku(mappings: Iterable[SkuMapping]) -> Dict[str, SkuMapping]:
    return {m.sku: m for m in mappings}


class ProductMappingStore:
    """Local (shop, sku) -> part number table."""

    def __init__(self, session_factory: Callable = get_db_session):
        self._session_factory = session_factory

    async def fetch_many(self, shop_domain: str, skus: List[str]) -> Dict[str, str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(ProductMapping.sku, ProductMapping.ingram_part_number).where(
                    ProductMapping.shop_domain == shop_domain,
                    ProductMapping.sku.in_(skus),
                )
            )
            return {sku: part for sku, part in result.all()}

    async def upsert_many(self, shop_domain: str, mappings: Dict[str, str]) -> None:
        """Idempotent insert-or-update keyed on (shop, sku)."""
        if not mappings:
            return
        rows = [
            {"shop_domain": shop_domain, "sku": sku, "ingram_part_number": part}
            for sku, part in mappings.items()
        ]
        stmt = pg_insert(ProductMapping).values(rows)
        stmt = stmt.on_conflict_do_update(
            constraint="uq_product_mappings_shop_sku",
            set_={"ingram_part_number": stmt.excluded.ingram_part_number},
        )
        async with self._session_factory() as db:
            await db.execute(stmt)


class SkuMappingResolver:
    """Cache -> local store -> remote catalog resolution with negative caching."""

    def __init__(
        self,
        local_store: Optional[ProductMappingStore] = None,
        remote_source: Optional[SupabaseCatalogSource] = None,
        cache: Optional[TTLCache] = None,
        positive_ttl_seconds: Optional[float] = None,
        negative_ttl_seconds: Optional[float] = None,
    ):
        self.local_store = local_store or ProductMappingStore()
        self.remote_source = remote_source or get_catalog_source()
        self.positive_ttl_seconds = positive_ttl_seconds or settings.SKU_CACHE_TTL_SECONDS
        self.negative_ttl_seconds = negative_ttl_seconds or settings.SKU_CACHE_NEGATIVE_TTL_SECONDS
        self.cache: TTLCache[str, Optional[SkuMapping]] = cache if cache is not None else TTLCache(
            ttl_seconds=self.positive_ttl_seconds,
            max_entries=settings.SKU_CACHE_MAX_ENTRIES,
        )

    @staticmethod
    def _cache_key(shop_domain: str, sku: str) -> str:
        return f"{shop_domain}::{sku}"

    async def resolve_many(
        self,
        shop_domain: str,
        skus: Iterable[Optional[str]],
        allow_remote_fallback: bool = True,
    ) -> List[SkuMapping]:
        """
        Resolve SKUs to Ingram part numbers.

        Args:
            shop_domain: Shop the SKUs belong to
            skus: Raw SKUs; trimmed, de-duplicated, blanks dropped
            allow_remote_fallback: Query the remote catalog for local misses

        Returns:
            Mappings for the SKUs that resolved. Callers diff against their
            input to find unmapped SKUs.

        Raises:
            MappingLookupError: remote lookup failed
        """
        normalized: List[str] = []
        seen = set()
        for raw in skus:
            sku = raw.strip() if isinstance(raw, str) else ""
            if sku and sku not in seen:
                seen.add(sku)
                normalized.append(sku)

        results: List[SkuMapping] = []
        to_query: List[str] = []

        for sku in normalized:
            cached = self.cache.get(self._cache_key(shop_domain, sku), MISSING)
            if cached is MISSING:
                to_query.append(sku)
            elif cached is not None:
                results.append(cached)

        if not to_query:
            return results

        local_available = True
        local_hits: Dict[str, str] = {}
        try:
            local_hits = await self.local_store.fetch_many(shop_domain, to_query)
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"[SKU_MAP] Local mapping store unavailable, using remote catalog only: {e}")
            local_available = False

        for sku, part in local_hits.items():
            mapping = SkuMapping(sku, part)
            self.cache.set(self._cache_key(shop_domain, sku), mapping, self.positive_ttl_seconds)
            results.append(mapping)

        missing = [sku for sku in to_query if sku not in local_hits]
        if not missing:
            return results

        if not allow_remote_fallback:
            for sku in missing:
                self.cache.set(self._cache_key(shop_domain, sku), None, self.negative_ttl_seconds)
            return results

        fetched = await self.remote_source.lookup_part_numbers(missing)
        logger.info(f"[SKU_MAP] Remote catalog resolved {len(fetched)}/{len(missing)} SKUs for {shop_domain}")

        if fetched and local_available:
            fire_and_forget(
                self.local_store.upsert_many(shop_domain, fetched),
                f"SKU mapping write-through for {shop_domain}",
            )

        for sku in missing:
            part = fetched.get(sku)
            key = self._cache_key(shop_domain, sku)
            if part:
                mapping = SkuMapping(sku, part)
                self.cache.set(key, mapping, self.positive_ttl_seconds)
                results.append(mapping)
            else:
                self.cache.set(key, None, self.negative_ttl_seconds)

        return results


# Singleton
_resolver: Optional[SkuMappingResolver] = None


def get_sku_resolver() -> SkuMappingResolver:
    global _resolver
    if _resolver is None:
        _resolver = SkuMappingResolver()
    return _resolver
