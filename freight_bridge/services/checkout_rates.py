"""
Checkout Rate Service

Turns a cart + destination into checkout rates:

    SKUs --(SkuMappingResolver)--> Ingram part numbers
         --(FreightEstimateService)--> per-warehouse carrier quotes
         --(combine_rates)--> one rate per carrier
         --(carrier configs)--> filtered, relabeled, capped Shopify rates

Three callers:
- Shopify carrier-service callback: always answers 200; any failure becomes
  the shop's fallback rate (or no rates when the fallback is disabled).
- Direct backend requests: raw Ingram response, with 4xx/5xx on failure.
- Storefront cart estimate: simplified rates in dollars.

Every carrier/direct request is recorded in the rate request log.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from freight_bridge.core.background import fire_and_forget
from freight_bridge.core.exceptions import FreightBridgeError
from freight_bridge.schemas.freight import FreightEstimateRequest, ShipToAddress
from freight_bridge.services.carrier_configs import (
    CARRIER_SERVICE_MAX_RATES,
    CART_ESTIMATE_MAX_RATES,
    CarrierConfigService,
    apply_carrier_configs,
    get_carrier_config_service,
)
from freight_bridge.services.fallback_rate import FallbackRateService, get_fallback_rate_service
from freight_bridge.services.freight_estimates import FreightEstimateService, get_freight_estimate_service
from freight_bridge.services.rate_combiner import combine_rates, parse_distributions
from freight_bridge.services.rate_log import (
    REQUEST_TYPE_CARRIER_SERVICE,
    REQUEST_TYPE_CART_ESTIMATE,
    STATUS_API_ERROR,
    STATUS_ERROR,
    STATUS_NO_MAPPING,
    STATUS_NO_RATES,
    STATUS_SUCCESS,
    RateLogEntry,
    RateRequestLogger,
    get_rate_logger,
)
from freight_bridge.services.rate_payloads import RateLine, RatePayload, build_ingram_lines
from freight_bridge.services.sku_mapping import SkuMappingResolver, get_sku_resolver, mappings_by_sku

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"


@dataclass
class RateResponse:
    """HTTP status + JSON body for a rate route."""
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


def _error_details(error: Exception) -> Dict[str, Any]:
    if isinstance(error, FreightBridgeError):
        return error.to_dict()
    return {"error_type": error.__class__.__name__, "message": str(error)}


def _freight_summary(response: Dict[str, Any]) -> Dict[str, Any]:
    summary = response.get("freightEstimateResponse") if isinstance(response, dict) else None
    return summary if isinstance(summary, dict) else {}


class CheckoutRateService:
    def __init__(
        self,
        freight_service: Optional[FreightEstimateService] = None,
        sku_resolver: Optional[SkuMappingResolver] = None,
        carrier_configs: Optional[CarrierConfigService] = None,
        fallback_rates: Optional[FallbackRateService] = None,
        rate_logger: Optional[RateRequestLogger] = None,
    ):
        self.freight_service = freight_service or get_freight_estimate_service()
        self.sku_resolver = sku_resolver or get_sku_resolver()
        self.carrier_configs = carrier_configs or get_carrier_config_service()
        self.fallback_rates = fallback_rates or get_fallback_rate_service()
        self.rate_logger = rate_logger or get_rate_logger()

    # ==================== Carrier service + direct ====================

    async def quote(
        self,
        payload: RatePayload,
        carrier_request: bool,
        currency: str = DEFAULT_CURRENCY,
        correlation_id: Optional[str] = None,
    ) -> RateResponse:
        """
        Quote a normalized rate request.

        Args:
            payload: Normalized request (callers check is_valid() first)
            carrier_request: True for Shopify callbacks (fallback on failure)
            currency: Currency from the Shopify callback
            correlation_id: Request id for logs; generated when omitted
        """
        correlation_id = correlation_id or str(uuid.uuid4())
        started = time.monotonic()
        shop = payload.shop_domain
        skus = payload.unique_skus()
        request_type = REQUEST_TYPE_CARRIER_SERVICE if carrier_request else REQUEST_TYPE_CART_ESTIMATE

        if not skus:
            return RateResponse(400, {"error": "Lines missing SKU data"})

        logger.info(
            f"[RATES] [{correlation_id}] {len(payload.lines)} lines for {shop}, ship to "
            f"{payload.ship_to.city}, {payload.ship_to.state} {payload.ship_to.postal_code}"
        )

        def log(status: str, **fields) -> None:
            self.rate_logger.log(RateLogEntry(
                shop_domain=shop,
                correlation_id=correlation_id,
                request_type=request_type,
                cart_item_count=len(payload.lines),
                cart_skus=skus,
                ship_to_city=payload.ship_to.city,
                ship_to_state=payload.ship_to.state,
                ship_to_zip=payload.ship_to.postal_code,
                ship_to_country=payload.ship_to.country_code,
                status=status,
                duration_ms=int((time.monotonic() - started) * 1000),
                **fields,
            ))

        try:
            # Both settle before either error is raised, so neither is left unobserved
            mapping_result, auth_result = await asyncio.gather(
                self.sku_resolver.resolve_many(shop, skus, allow_remote_fallback=False),
                self.freight_service.prefetch_auth(shop),
                return_exceptions=True,
            )
            for outcome in (mapping_result, auth_result):
                if isinstance(outcome, BaseException):
                    raise outcome
            mappings = mapping_result
            credentials, access_token = auth_result
            part_numbers = {sku: m.ingram_part_number for sku, m in mappings_by_sku(mappings).items()}
            logger.info(f"[RATES] [{correlation_id}] SKU mapping: {len(part_numbers)}/{len(skus)} mapped")

            missing_skus = [sku for sku in skus if sku not in part_numbers]
            if missing_skus:
                logger.warning(f"[RATES] [{correlation_id}] Missing Ingram mappings for SKUs: {missing_skus}")
                log(STATUS_NO_MAPPING, error_message=f"Missing Ingram mappings for: {', '.join(missing_skus)}")
                if carrier_request:
                    return await self._fallback(shop, currency)
                return RateResponse(422, {
                    "error": "Missing Ingram mapping for the provided SKUs",
                    "missingSkus": missing_skus,
                })

            lines = build_ingram_lines(payload.lines, part_numbers)
            part_nums = [line["ingramPartNumber"] for line in lines]
            request = FreightEstimateRequest(
                ship_to_address=payload.ship_to.to_ship_to_address(),
                lines=lines,
            )

            ingram_started = time.monotonic()
            result = await self.freight_service.request_freight_estimate(
                shop, request, credentials=credentials, access_token=access_token
            )
            logger.info(
                f"[RATES] [{correlation_id}] Ingram freight "
                f"{'cache hit' if result.cache_hit else 'API call'} completed in "
                f"{int((time.monotonic() - ingram_started) * 1000)}ms"
            )

            if not carrier_request:
                return RateResponse(200, {
                    "success": True,
                    "data": result.response,
                    "correlationId": result.correlation_id,
                    "lineCount": len(lines),
                })

            summary = _freight_summary(result.response)
            currency = summary.get("currencyCode") or currency or DEFAULT_CURRENCY
            distributions = parse_distributions(summary.get("distribution"))
            logger.info(f"[RATES] [{correlation_id}] Received {len(distributions)} distribution(s) from Ingram")

            upstream_errors = result.response.get("errors")
            if upstream_errors:
                logger.error(f"[RATES] [{correlation_id}] Ingram API errors: {upstream_errors}")
                log(
                    STATUS_API_ERROR,
                    ingram_part_nums=part_nums,
                    error_message="Ingram API returned errors",
                    error_details=upstream_errors,
                    ingram_raw_response=result.response,
                )
                return await self._fallback(shop, currency)

            if distributions:
                fire_and_forget(
                    self.carrier_configs.sync_from_distributions(shop, distributions),
                    f"Carrier sync for {shop}",
                )

            combined = combine_rates(distributions)
            if not combined:
                reason = (
                    "No distributions returned from Ingram"
                    if not distributions
                    else "No common carriers across distributions"
                )
                logger.warning(f"[RATES] [{correlation_id}] {reason}")
                log(
                    STATUS_NO_RATES,
                    ingram_part_nums=part_nums,
                    distribution_count=len(distributions),
                    rates_returned=0,
                    error_message=reason,
                    ingram_raw_response=result.response,
                )
                return await self._fallback(shop, currency)

            configs = await self.carrier_configs.list_configs(shop)
            rates = apply_carrier_configs(combined, configs, currency, CARRIER_SERVICE_MAX_RATES)
            logger.info(f"[RATES] [{correlation_id}] Returning {len(rates)} rates to Shopify")

            log(
                STATUS_SUCCESS,
                ingram_part_nums=part_nums,
                distribution_count=len(distributions),
                rates_returned=len(rates),
                rates_data=rates,
                ingram_raw_response=result.response,
            )
            return RateResponse(200, {"rates": rates})

        except Exception as e:
            logger.error(f"[RATES] [{correlation_id}] Failed to retrieve freight estimate: {e!r}")
            log(STATUS_ERROR, error_message=str(e) or e.__class__.__name__, error_details=_error_details(e))
            if carrier_request:
                return await self._fallback(shop, currency)
            return RateResponse(500, {"error": "Unable to retrieve freight estimate"})

    async def _fallback(self, shop_domain: str, currency: str) -> RateResponse:
        rates = await self.fallback_rates.fallback_rates(shop_domain, currency)
        return RateResponse(200, {"rates": rates})

    # ==================== Storefront cart estimate ====================

    async def estimate_cart(self, body: Any) -> RateResponse:
        """
        Storefront cart estimate.

        Body: {shop, address: {country, province?, city?, zip?}, items: [{sku, quantity}]}
        """
        if not isinstance(body, dict) or not body.get("shop"):
            return RateResponse(400, {"success": False, "error": "Missing shop domain"})

        shop = str(body["shop"])
        address = body.get("address")
        if not isinstance(address, dict) or not address.get("country"):
            return RateResponse(400, {"success": False, "error": "Missing address information"})

        items = body.get("items")
        if not isinstance(items, list) or not items:
            return RateResponse(400, {"success": False, "error": "No items in cart"})

        correlation_id = str(uuid.uuid4())
        started = time.monotonic()

        try:
            credentials = await self.freight_service.credential_store.get_ingram(shop)
            if credentials is None:
                return RateResponse(400, {"success": False, "error": "Shop not configured"})

            cart_lines = []
            for item in items:
                sku = str(item.get("sku") or "").strip() if isinstance(item, dict) else ""
                if sku:
                    quantity = item.get("quantity")
                    cart_lines.append((sku, 1 if quantity is None else quantity))
            skus: List[str] = list(dict.fromkeys(sku for sku, _ in cart_lines))
            if not skus:
                return RateResponse(400, {"success": False, "error": "No valid SKUs in cart"})

            mappings = await self.sku_resolver.resolve_many(shop, skus, allow_remote_fallback=False)
            part_numbers = {sku: m.ingram_part_number for sku, m in mappings_by_sku(mappings).items()}
            missing_skus = [sku for sku in skus if sku not in part_numbers]
            if missing_skus:
                logger.warning(f"[CART_ESTIMATE] Missing Ingram mappings for SKUs: {missing_skus}")
                return RateResponse(200, {
                    "success": False,
                    "error": "Some products are not available for shipping estimate",
                })

            country = str(address["country"])
            city = address.get("city") or "Unknown"
            ship_to = ShipToAddress(
                company_name="Customer",
                address_line1=city,
                city=city,
                state=address.get("province") or country,
                postal_code=address.get("zip") or "00000",
                country_code=country,
            )
            lines = build_ingram_lines(
                [RateLine(sku=sku, quantity=quantity) for sku, quantity in cart_lines],
                part_numbers,
            )

            logger.info(f"[CART_ESTIMATE] Requesting {len(lines)} items to {ship_to.postal_code} for {shop}")
            result = await self.freight_service.request_freight_estimate(
                shop,
                FreightEstimateRequest(ship_to_address=ship_to, lines=lines),
                credentials=credentials,
            )

            summary = _freight_summary(result.response)
            currency = summary.get("currencyCode") or DEFAULT_CURRENCY
            distributions = parse_distributions(summary.get("distribution"))

            if not distributions:
                return RateResponse(200, {
                    "success": False,
                    "error": "No shipping options available for this address",
                })

            combined = combine_rates(distributions)
            if not combined:
                return RateResponse(200, {"success": False, "error": "No common shipping options available"})

            configs = await self.carrier_configs.list_configs(shop)
            formatted = apply_carrier_configs(combined, configs, currency, CART_ESTIMATE_MAX_RATES)
            rates = [
                {
                    "name": rate["service_name"],
                    "code": rate["service_code"],
                    "price": int(rate["total_price"]) / 100,
                    "currency": currency,
                    "description": rate["description"],
                }
                for rate in formatted
            ]

            self.rate_logger.log(RateLogEntry(
                shop_domain=shop,
                correlation_id=correlation_id,
                request_type=REQUEST_TYPE_CART_ESTIMATE,
                cart_item_count=len(items),
                cart_skus=skus,
                ingram_part_nums=[line["ingramPartNumber"] for line in lines],
                ship_to_city=ship_to.city,
                ship_to_state=ship_to.state,
                ship_to_zip=ship_to.postal_code,
                ship_to_country=ship_to.country_code,
                status=STATUS_SUCCESS,
                distribution_count=len(distributions),
                rates_returned=len(rates),
                rates_data=rates,
                duration_ms=int((time.monotonic() - started) * 1000),
            ))
            return RateResponse(200, {"success": True, "rates": rates})

        except Exception as e:
            logger.error(f"[CART_ESTIMATE] [{correlation_id}] Cart estimate error for {shop}: {e!r}")
            return RateResponse(200, {"success": False, "error": "Unable to calculate shipping estimate"})


# Singleton
_service: Optional[CheckoutRateService] = None


def get_checkout_rate_service() -> CheckoutRateService:
    global _service
    if _service is None:
        _service = CheckoutRateService()
    return _service
