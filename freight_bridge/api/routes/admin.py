"""
Admin API Routes

Per-shop configuration for the embedded admin app, all under
/api/admin/shops/{shop} and guarded by X-App-Token:

- Ingram Micro credentials (masked read, save, token test, rate test)
- TD SYNNEX credentials (masked read, save, rate test)
- Carrier configurations (list, bulk enable, display-name override)
- Fallback rate settings
- Recent rate request logs
- Product catalog sync status / start
- Shopify carrier-service registration
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from freight_bridge.api.deps import require_app_token, require_shopify_access_token
from freight_bridge.core.exceptions import (
    CredentialsNotConfiguredError,
    FreightBridgeError,
    IngramAuthError,
    ShopifyAdminError,
    TdSynnexError,
)
from freight_bridge.schemas.freight import (
    CarrierDisplayNameUpdate,
    CarrierEnabledUpdate,
    FallbackRateInput,
    FreightEstimateRequest,
    IngramCredentialInput,
    TdSynnexCredentialInput,
    TdSynnexQuoteRequest,
)
from freight_bridge.services.carrier_configs import CarrierConfigService, get_carrier_config_service
from freight_bridge.services.credentials import CredentialStore, VALIDATION_SUCCESS, get_credential_store
from freight_bridge.services.fallback_rate import FallbackRateService, get_fallback_rate_service
from freight_bridge.services.freight_estimates import FreightEstimateService, get_freight_estimate_service
from freight_bridge.services.product_sync import ProductSyncService, get_product_sync_service
from freight_bridge.services.rate_log import RateRequestLogger, get_rate_logger
from freight_bridge.services.shopify_admin import ShopifyAdminClient, rates_callback_url
from freight_bridge.services.tdsynnex_client import TdSynnexClient, get_tdsynnex_client, parse_freight_quote

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/shops/{shop}",
    tags=["Admin"],
    dependencies=[Depends(require_app_token)],
)


def _error(status_code: int, error: FreightBridgeError) -> HTTPException:
    return HTTPException(status_code=status_code, detail=error.to_dict())


# ==================== Ingram Micro ====================


@router.get("/ingram/credentials")
async def get_ingram_credentials(
    shop: str,
    store: CredentialStore = Depends(get_credential_store),
):
    credentials = await store.get_ingram(shop)
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No Ingram credentials configured")
    return credentials.to_public_dict()


@router.put("/ingram/credentials")
async def save_ingram_credentials(
    shop: str,
    data: IngramCredentialInput,
    store: CredentialStore = Depends(get_credential_store),
):
    credentials = await store.save_ingram(shop, data)
    return credentials.to_public_dict()


@router.post("/ingram/credentials/test")
async def test_ingram_credentials(
    shop: str,
    freight: FreightEstimateService = Depends(get_freight_estimate_service),
):
    """Force a token refresh against Ingram's OAuth endpoint."""
    try:
        await freight.test_credentials(shop)
    except CredentialsNotConfiguredError as e:
        raise _error(status.HTTP_404_NOT_FOUND, e)
    except IngramAuthError as e:
        logger.warning(f"[CREDENTIALS] Ingram credential test failed for {shop}: {e.message}")
        raise _error(status.HTTP_400_BAD_REQUEST, e)
    return {"success": True, "lastValidationStatus": VALIDATION_SUCCESS}


@router.post("/ingram/test-rate")
async def test_ingram_rate(
    shop: str,
    data: FreightEstimateRequest,
    freight: FreightEstimateService = Depends(get_freight_estimate_service),
):
    """Raw freight estimate for hand-entered address and lines."""
    try:
        result = await freight.request_freight_estimate(shop, data)
    except CredentialsNotConfiguredError as e:
        raise _error(status.HTTP_404_NOT_FOUND, e)
    except FreightBridgeError as e:
        raise _error(status.HTTP_502_BAD_GATEWAY, e)
    return result.to_dict()


# ==================== TD SYNNEX ====================


@router.get("/tdsynnex/credentials")
async def get_tdsynnex_credentials(
    shop: str,
    store: CredentialStore = Depends(get_credential_store),
):
    credentials = await store.get_tdsynnex(shop)
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No TD SYNNEX credentials configured")
    return credentials.to_public_dict()


@router.put("/tdsynnex/credentials")
async def save_tdsynnex_credentials(
    shop: str,
    data: TdSynnexCredentialInput,
    store: CredentialStore = Depends(get_credential_store),
):
    credentials = await store.save_tdsynnex(shop, data)
    return credentials.to_public_dict()


@router.post("/tdsynnex/test-rate")
async def test_tdsynnex_rate(
    shop: str,
    data: TdSynnexQuoteRequest,
    client: TdSynnexClient = Depends(get_tdsynnex_client),
):
    try:
        result = await client.request_freight_quote(shop, data)
    except CredentialsNotConfiguredError as e:
        raise _error(status.HTTP_404_NOT_FOUND, e)
    except TdSynnexError as e:
        raise _error(status.HTTP_502_BAD_GATEWAY, e)

    try:
        result["parsed"] = parse_freight_quote(result["response"])
    except TdSynnexError:
        result["parsed"] = None
    return result


# ==================== Carriers ====================


@router.get("/carriers")
async def list_carriers(
    shop: str,
    service: CarrierConfigService = Depends(get_carrier_config_service),
):
    configs = await service.list_configs(shop)
    return {"carriers": [c.to_dict() for c in configs]}


@router.patch("/carriers")
async def update_carriers_enabled(
    shop: str,
    updates: List[CarrierEnabledUpdate],
    service: CarrierConfigService = Depends(get_carrier_config_service),
):
    updated = await service.update_enabled(
        shop,
        [{"carrier_code": u.carrier_code, "enabled": u.enabled} for u in updates],
    )
    return {"updated": updated}


@router.put("/carriers/{carrier_code}/display-name")
async def update_carrier_display_name(
    shop: str,
    carrier_code: str,
    data: CarrierDisplayNameUpdate,
    service: CarrierConfigService = Depends(get_carrier_config_service),
):
    config = await service.update_display_name(shop, carrier_code, data.display_name)
    if config is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Carrier not found")
    return config.to_dict()


# ==================== Fallback rate ====================


@router.get("/fallback-rate")
async def get_fallback_rate(
    shop: str,
    service: FallbackRateService = Depends(get_fallback_rate_service),
):
    settings = await service.get_settings(shop)
    return settings.to_dict()


@router.put("/fallback-rate")
async def save_fallback_rate(
    shop: str,
    data: FallbackRateInput,
    service: FallbackRateService = Depends(get_fallback_rate_service),
):
    settings = await service.save_settings(shop, data)
    return settings.to_dict()


# ==================== Rate logs ====================


@router.get("/rate-logs")
async def list_rate_logs(
    shop: str,
    limit: int = Query(50, ge=1, le=500),
    rate_logger: RateRequestLogger = Depends(get_rate_logger),
):
    return {"logs": await rate_logger.recent(shop, limit)}


# ==================== Product sync ====================


@router.get("/product-sync")
async def get_product_sync(
    shop: str,
    service: ProductSyncService = Depends(get_product_sync_service),
):
    return {"job": await service.latest_job(shop)}


@router.post("/product-sync")
async def start_product_sync(
    shop: str,
    service: ProductSyncService = Depends(get_product_sync_service),
):
    try:
        job = await service.start_sync(shop)
    except Exception as e:
        logger.error(f"[PRODUCT_SYNC] Failed to start product sync for {shop}: {e}")
        return JSONResponse({"ok": False, "error": str(e) or "Failed to start sync"}, status_code=500)
    return {"ok": True, "job": job}


# ==================== Shopify carrier service ====================


@router.get("/carrier-service")
async def get_carrier_service(
    shop: str,
    access_token: str = Depends(require_shopify_access_token),
):
    async with ShopifyAdminClient(shop, access_token) as client:
        try:
            service = await client.find_carrier_service()
        except ShopifyAdminError as e:
            raise _error(status.HTTP_502_BAD_GATEWAY, e)
    return {
        "registered": service is not None,
        "callbackUrl": rates_callback_url(),
        "carrierService": service,
    }


@router.post("/carrier-service")
async def register_carrier_service(
    shop: str,
    access_token: str = Depends(require_shopify_access_token),
):
    async with ShopifyAdminClient(shop, access_token) as client:
        try:
            service = await client.register_carrier_service()
        except ShopifyAdminError as e:
            raise _error(status.HTTP_502_BAD_GATEWAY, e)
    return {"registered": True, "carrierService": service}


@router.delete("/carrier-service")
async def delete_carrier_service(
    shop: str,
    access_token: str = Depends(require_shopify_access_token),
):
    async with ShopifyAdminClient(shop, access_token) as client:
        try:
            service = await client.find_carrier_service()
            if service is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Carrier service not registered")
            await client.delete_carrier_service(service["id"])
        except ShopifyAdminError as e:
            raise _error(status.HTTP_502_BAD_GATEWAY, e)
    return {"registered": False, "deletedId": service["id"]}
