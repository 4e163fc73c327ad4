"""
Carrier Configuration Service

Per-shop carrier list used to filter and relabel checkout rates.

- Carriers are discovered from live freight responses (sync_from_distributions);
  new codes start enabled, known codes keep the merchant's choices.
- When a shop has any configuration, only enabled carriers reach checkout.
  A shop with no configuration sees every combined rate.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from freight_bridge.core.database import get_db_session
from freight_bridge.models.carrier_configuration import CarrierConfiguration
from freight_bridge.services.rate_combiner import CombinedRate, Distribution, format_rate_for_shopify

logger = logging.getLogger(__name__)

CARRIER_SERVICE_MAX_RATES = 10
CART_ESTIMATE_MAX_RATES = 5


@dataclass
class CarrierConfig:
    carrier_code: str
    carrier_name: str
    carrier_mode: str
    display_name: Optional[str]
    enabled: bool
    sort_order: int

    @classmethod
    def from_model(cls, row: CarrierConfiguration) -> "CarrierConfig":
        return cls(
            carrier_code=row.carrier_code,
            carrier_name=row.carrier_name,
            carrier_mode=row.carrier_mode or "",
            display_name=row.display_name,
            enabled=bool(row.enabled),
            sort_order=row.sort_order or 0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "carrierCode": self.carrier_code,
            "carrierName": self.carrier_name,
            "carrierMode": self.carrier_mode,
            "displayName": self.display_name,
            "enabled": self.enabled,
            "sortOrder": self.sort_order,
        }


def collect_carriers(distributions: Iterable[Distribution]) -> Dict[str, Dict[str, str]]:
    """Unique carrier codes in first-seen order with their name and mode."""
    seen: Dict[str, Dict[str, str]] = {}
    for dist in distributions:
        for quote in dist.carriers:
            code = quote.carrier_code
            if code and code not in seen:
                seen[code] = {
                    "carrier_name": quote.ship_via or code,
                    "carrier_mode": quote.carrier_mode,
                }
    return seen


def apply_carrier_configs(
    rates: List[CombinedRate],
    configs: List[CarrierConfig],
    currency: str,
    max_rates: int = CARRIER_SERVICE_MAX_RATES,
) -> List[Dict[str, str]]:
    """
    Filter, relabel, format and cap combined rates for checkout.

    Returns:
        Shopify rate objects sorted by price, at most max_rates
    """
    by_code = {c.carrier_code: c for c in configs}

    if configs:
        enabled = {c.carrier_code for c in configs if c.enabled}
        rates = [r for r in rates if r.carrier_code in enabled]

    formatted = []
    for rate in rates:
        config = by_code.get(rate.carrier_code)
        formatted.append(
            format_rate_for_shopify(rate, currency, config.display_name if config else None)
        )

    formatted.sort(key=lambda r: int(r["total_price"]))
    return formatted[:max_rates]


class CarrierConfigService:
    """CRUD over carrier_configurations."""

    def __init__(self, session_factory: Callable = get_db_session):
        self._session_factory = session_factory

    async def list_configs(self, shop_domain: str) -> List[CarrierConfig]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(CarrierConfiguration)
                .where(CarrierConfiguration.shop_domain == shop_domain)
                .order_by(CarrierConfiguration.sort_order.asc(), CarrierConfiguration.carrier_name.asc())
            )
            return [CarrierConfig.from_model(row) for row in result.scalars().all()]

    async def sync_from_distributions(self, shop_domain: str, distributions: List[Distribution]) -> int:
        """
        Register carriers seen in a freight response.

        One upsert per response: existing rows keep enabled, sort order and
        display name and only have name/mode refreshed. New rows are enabled
        with sort orders counting up from 0 in discovery order. Concurrent
        syncs for the same shop converge on the unique (shop, code) key.

        Returns:
            Number of distinct carriers seen
        """
        seen = collect_carriers(distributions)
        if not seen:
            return 0

        async with self._session_factory() as db:
            result = await db.execute(
                select(CarrierConfiguration.carrier_code).where(CarrierConfiguration.shop_domain == shop_domain)
            )
            known = set(result.scalars().all())

            rows = []
            next_sort_order = 0
            for code, data in seen.items():
                sort_order = 0
                if code not in known:
                    sort_order = next_sort_order
                    next_sort_order += 1
                rows.append({
                    "shop_domain": shop_domain,
                    "carrier_code": code,
                    "carrier_name": data["carrier_name"],
                    "carrier_mode": data["carrier_mode"],
                    "enabled": True,
                    "sort_order": sort_order,
                })

            stmt = pg_insert(CarrierConfiguration).values(rows)
            stmt = stmt.on_conflict_do_update(
                constraint="uq_carrier_configurations_shop_code",
                set_={
                    "carrier_name": stmt.excluded.carrier_name,
                    "carrier_mode": stmt.excluded.carrier_mode,
                    "updated_at": stmt.excluded.updated_at,
                },
            )
            await db.execute(stmt)

        logger.info(f"[CARRIERS] Synced {len(seen)} carriers for {shop_domain}")
        return len(seen)

    async def update_enabled(self, shop_domain: str, updates: List[Dict[str, Any]]) -> int:
        """
        Bulk enable/disable.

        Args:
            updates: [{"carrier_code": str, "enabled": bool}, ...]

        Returns:
            Rows updated
        """
        updated = 0
        async with self._session_factory() as db:
            for item in updates:
                result = await db.execute(
                    update(CarrierConfiguration)
                    .where(
                        CarrierConfiguration.shop_domain == shop_domain,
                        CarrierConfiguration.carrier_code == item["carrier_code"],
                    )
                    .values(enabled=bool(item["enabled"]))
                )
                updated += result.rowcount or 0
        return updated

    async def update_display_name(
        self,
        shop_domain: str,
        carrier_code: str,
        display_name: Optional[str],
    ) -> Optional[CarrierConfig]:
        """Set or clear the checkout label override. None if the carrier is unknown."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(CarrierConfiguration).where(
                    CarrierConfiguration.shop_domain == shop_domain,
                    CarrierConfiguration.carrier_code == carrier_code,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            row.display_name = (display_name or "").strip() or None
            await db.flush()
            return CarrierConfig.from_model(row)


# Singleton
_service: Optional[CarrierConfigService] = None


def get_carrier_config_service() -> CarrierConfigService:
    global _service
    if _service is None:
        _service = CarrierConfigService()
    return _service
