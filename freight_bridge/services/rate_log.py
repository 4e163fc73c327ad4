"""
Rate request audit log

Every carrier-service and cart-estimate request leaves one row in
rate_request_logs. Writes go through fire_and_forget so a slow or broken
log table never affects checkout.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select

from freight_bridge.core.background import fire_and_forget
from freight_bridge.core.database import get_db_session
from freight_bridge.models.rate_request_log import RateRequestLog

logger = logging.getLogger(__name__)

REQUEST_TYPE_CARRIER_SERVICE = "carrier_service"
REQUEST_TYPE_CART_ESTIMATE = "cart_estimate"

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_NO_RATES = "no_rates"
STATUS_NO_MAPPING = "no_mapping"
STATUS_API_ERROR = "api_error"

RATES_DATA_MAX_LENGTH = 5000
ERROR_DETAILS_MAX_LENGTH = 2000
RAW_RESPONSE_MAX_LENGTH = 8000
TRUNCATION_SUFFIX = "...[truncated]"


def truncate_json(obj: Any, max_length: int = 10000) -> str:
    """JSON-encode obj, cutting at max_length and marking the cut."""
    text = json.dumps(obj, default=str)
    if len(text) <= max_length:
        return text
    return text[:max_length] + TRUNCATION_SUFFIX


@dataclass
class RateLogEntry:
    shop_domain: str
    correlation_id: str
    request_type: str
    cart_skus: List[str]
    status: str
    cart_item_count: int = 0
    ingram_part_nums: Optional[List[str]] = None
    ship_to_city: Optional[str] = None
    ship_to_state: Optional[str] = None
    ship_to_zip: Optional[str] = None
    ship_to_country: Optional[str] = None
    distribution_count: Optional[int] = None
    rates_returned: Optional[int] = None
    rates_data: Any = None
    error_message: Optional[str] = None
    error_details: Any = None
    ingram_raw_response: Any = None
    duration_ms: Optional[int] = None

    def to_model(self) -> RateRequestLog:
        return RateRequestLog(
            shop_domain=self.shop_domain,
            correlation_id=self.correlation_id,
            request_type=self.request_type,
            cart_item_count=self.cart_item_count,
            cart_skus=json.dumps(self.cart_skus),
            ingram_part_nums=json.dumps(self.ingram_part_nums) if self.ingram_part_nums else None,
            ship_to_city=self.ship_to_city,
            ship_to_state=self.ship_to_state,
            ship_to_zip=self.ship_to_zip,
            ship_to_country=self.ship_to_country,
            status=self.status,
            distribution_count=self.distribution_count,
            rates_returned=self.rates_returned,
            rates_data=truncate_json(self.rates_data, RATES_DATA_MAX_LENGTH) if self.rates_data else None,
            error_message=self.error_message,
            error_details=(
                truncate_json(self.error_details, ERROR_DETAILS_MAX_LENGTH) if self.error_details else None
            ),
            ingram_raw_response=(
                truncate_json(self.ingram_raw_response, RAW_RESPONSE_MAX_LENGTH)
                if self.ingram_raw_response else None
            ),
            duration_ms=self.duration_ms,
        )


class RateRequestLogger:
    def __init__(self, session_factory: Callable = get_db_session):
        self._session_factory = session_factory

    async def write(self, entry: RateLogEntry) -> None:
        async with self._session_factory() as db:
            db.add(entry.to_model())
        logger.debug(f"[RATES] [{entry.correlation_id}] Logged {entry.request_type} request: {entry.status}")

    def log(self, entry: RateLogEntry) -> None:
        """Schedule the write; never raises into the request path."""
        fire_and_forget(self.write(entry), f"Rate request log {entry.correlation_id}")

    async def recent(self, shop_domain: str, limit: int = 50) -> List[Dict[str, Any]]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(RateRequestLog)
                .where(RateRequestLog.shop_domain == shop_domain)
                .order_by(RateRequestLog.created_at.desc())
                .limit(limit)
            )
            return [row.to_dict() for row in result.scalars().all()]


# Singleton
_logger: Optional[RateRequestLogger] = None


def get_rate_logger() -> RateRequestLogger:
    global _logger
    if _logger is None:
        _logger = RateRequestLogger()
    return _logger
