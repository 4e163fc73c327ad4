"""
Fallback Rate Service

When live quoting fails at checkout (missing mappings, Ingram errors, no
common carriers), the carrier service returns this single configurable rate
instead of nothing, so the merchant can still take the order and follow up.
"""
import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from freight_bridge.core.database import get_db_session
from freight_bridge.models.fallback_rate import FallbackRateSetting
from freight_bridge.schemas.freight import FallbackRateInput
from freight_bridge.services.rate_combiner import to_minor_units

logger = logging.getLogger(__name__)

FALLBACK_SERVICE_CODE = "FALLBACK_RATE"


@dataclass
class FallbackRateSettings:
    shop_domain: str
    enabled: bool = True
    price: Decimal = Decimal("999.00")
    title: str = "Shipping Unavailable"
    description: str = "Please contact support before placing this order"

    @classmethod
    def from_model(cls, row: FallbackRateSetting) -> "FallbackRateSettings":
        return cls(
            shop_domain=row.shop_domain,
            enabled=bool(row.enabled),
            price=Decimal(str(row.price)),
            title=row.title,
            description=row.description,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shopDomain": self.shop_domain,
            "enabled": self.enabled,
            "price": float(self.price),
            "title": self.title,
            "description": self.description,
        }


def format_fallback_rate(settings: FallbackRateSettings, currency: str = "USD") -> Dict[str, str]:
    return {
        "service_name": settings.title,
        "service_code": FALLBACK_SERVICE_CODE,
        "total_price": str(to_minor_units(settings.price)),
        "description": settings.description,
        "currency": currency,
    }


class FallbackRateService:
    def __init__(self, session_factory: Callable = get_db_session):
        self._session_factory = session_factory

    async def get_settings(self, shop_domain: str) -> FallbackRateSettings:
        """Stored settings, or defaults when none exist or the table is unavailable."""
        try:
            async with self._session_factory() as db:
                row = await db.get(FallbackRateSetting, shop_domain)
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"[FALLBACK] Settings unavailable for {shop_domain}, using defaults: {e}")
            return FallbackRateSettings(shop_domain=shop_domain)

        if row is None:
            return FallbackRateSettings(shop_domain=shop_domain)
        return FallbackRateSettings.from_model(row)

    async def save_settings(self, shop_domain: str, data: FallbackRateInput) -> FallbackRateSettings:
        """Partial upsert: fields left as None keep their current (or default) value."""
        async with self._session_factory() as db:
            row = await db.get(FallbackRateSetting, shop_domain)
            current = (
                FallbackRateSettings.from_model(row) if row else FallbackRateSettings(shop_domain=shop_domain)
            )
            merged = replace(
                current,
                enabled=current.enabled if data.enabled is None else data.enabled,
                price=current.price if data.price is None else Decimal(str(data.price)),
                title=data.title or current.title,
                description=data.description or current.description,
            )

            if row is None:
                row = FallbackRateSetting(shop_domain=shop_domain)
                db.add(row)
            row.enabled = merged.enabled
            row.price = merged.price
            row.title = merged.title
            row.description = merged.description
            await db.flush()

        logger.info(f"[FALLBACK] Saved fallback rate for {shop_domain} (enabled={merged.enabled}, price={merged.price})")
        return merged

    async def fallback_rates(self, shop_domain: str, currency: str = "USD") -> List[Dict[str, str]]:
        """Carrier-service rates list: [fallback] when enabled, else []."""
        settings = await self.get_settings(shop_domain)
        if not settings.enabled:
            return []
        return [format_fallback_rate(settings, currency)]


# Singleton
_service: Optional[FallbackRateService] = None


def get_fallback_rate_service() -> FallbackRateService:
    global _service
    if _service is None:
        _service = FallbackRateService()
    return _service
