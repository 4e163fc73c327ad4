"""
Storefront cart estimate endpoint

Called from theme JavaScript on the cart page, before checkout. Public (no
HMAC), so every response carries permissive CORS headers.
"""
import json
import logging

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from freight_bridge.services.checkout_rates import CheckoutRateService, get_checkout_rate_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Cart Estimate"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Shop-Domain",
}


@router.options("/cart-estimate")
async def cart_estimate_preflight():
    return Response(status_code=204, headers=CORS_HEADERS)


@router.get("/cart-estimate")
async def cart_estimate_get():
    return JSONResponse(
        {"success": False, "error": "Use POST to request cart estimates"},
        status_code=405,
        headers=CORS_HEADERS,
    )


@router.post("/cart-estimate")
async def cart_estimate(
    request: Request,
    service: CheckoutRateService = Depends(get_checkout_rate_service),
):
    try:
        body = json.loads(await request.body())
    except ValueError as e:
        logger.error(f"[CART_ESTIMATE] Invalid JSON body: {e}")
        return JSONResponse(
            {"success": False, "error": "Unable to calculate shipping estimate"},
            status_code=200,
            headers=CORS_HEADERS,
        )

    result = await service.estimate_cart(body)
    return JSONResponse(result.body, status_code=result.status_code, headers=CORS_HEADERS)
