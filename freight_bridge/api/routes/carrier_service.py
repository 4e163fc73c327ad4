"""
Carrier service rates endpoint

POST /api/ingram/rates serves two kinds of caller:
- Shopify carrier-service callbacks (X-Shopify-Shop-Domain present),
  verified by HMAC and always answered with 200 + rates
- Direct backend/test requests, authenticated with X-App-Token
"""
import json
import logging
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from freight_bridge.api.deps import tokens_match
from freight_bridge.core.config import settings
from freight_bridge.core.shopify_auth import ShopifySignatureError, verify_shopify_hmac
from freight_bridge.services.checkout_rates import (
    DEFAULT_CURRENCY,
    CheckoutRateService,
    get_checkout_rate_service,
)
from freight_bridge.services.rate_payloads import carrier_request_to_payload, direct_request_to_payload

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Rates"])


@router.post("/ingram/rates")
async def ingram_rates(
    request: Request,
    service: CheckoutRateService = Depends(get_checkout_rate_service),
):
    correlation_id = str(uuid.uuid4())
    raw_body = await request.body()
    carrier_shop = request.headers.get("X-Shopify-Shop-Domain")
    currency = DEFAULT_CURRENCY

    logger.info(f"[RATES] [{correlation_id}] Rate request received from: {carrier_shop or 'direct'}")

    if carrier_shop:
        try:
            verify_shopify_hmac(
                settings.SHOPIFY_API_SECRET,
                raw_body,
                request.headers.get("X-Shopify-Hmac-Sha256"),
            )
        except ShopifySignatureError as e:
            logger.error(f"[RATES] [{correlation_id}] Carrier request validation failed: {e}")
            return PlainTextResponse("Unauthorized", status_code=401)

        try:
            parsed = json.loads(raw_body)
            payload = carrier_request_to_payload(carrier_shop, parsed)
            rate = parsed.get("rate") if isinstance(parsed.get("rate"), dict) else {}
            currency = rate.get("currency") or DEFAULT_CURRENCY
        except ValueError as e:
            logger.error(f"[RATES] [{correlation_id}] Invalid carrier request payload: {e}")
            return JSONResponse({"error": "Invalid carrier payload"}, status_code=400)
    else:
        if settings.APP_BACKEND_TOKEN and not tokens_match(
            request.headers.get("X-App-Token"), settings.APP_BACKEND_TOKEN
        ):
            return PlainTextResponse("Unauthorized", status_code=401)

        try:
            payload = direct_request_to_payload(json.loads(raw_body))
        except ValueError as e:
            logger.error(f"[RATES] [{correlation_id}] Invalid JSON payload for rate route: {e}")
            return JSONResponse({"error": "Invalid JSON payload"}, status_code=400)

    if not payload.is_valid():
        logger.error(f"[RATES] [{correlation_id}] Missing or invalid payload data")
        return JSONResponse({"error": "Missing or invalid payload data"}, status_code=400)

    result = await service.quote(
        payload,
        carrier_request=bool(carrier_shop),
        currency=currency,
        correlation_id=correlation_id,
    )
    return JSONResponse(result.body, status_code=result.status_code)
