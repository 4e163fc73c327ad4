"""
Cron endpoints

GET /api/cron/sync-products is hit by the platform scheduler every Monday
at 03:00 UTC and refreshes product mappings for every configured shop.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from freight_bridge.api.deps import require_cron_auth
from freight_bridge.core.exceptions import CatalogError
from freight_bridge.services.product_sync import ProductSyncService, get_product_sync_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"], dependencies=[Depends(require_cron_auth)])


@router.get("/sync-products")
async def cron_sync_products(service: ProductSyncService = Depends(get_product_sync_service)):
    logger.info("[CRON] Starting weekly product sync...")
    try:
        return await service.sync_all_shops()
    except CatalogError as e:
        logger.error(f"[CRON] Failed to fetch from Supabase: {e}")
        return JSONResponse({"success": False, "error": "Failed to fetch from Supabase"}, status_code=500)
    except Exception as e:
        logger.error(f"[CRON] Product sync failed: {e}")
        return JSONResponse({"success": False, "error": str(e) or "Unknown error"}, status_code=500)
