"""
Weekly catalog sync job

Entry point shared by run_cron.py. Owns the lifecycle of the clients it
uses, since it runs outside the FastAPI lifespan.
"""
import logging
from typing import Any, Dict, Optional

from freight_bridge.core.database import engine
from freight_bridge.services.catalog_source import SupabaseCatalogSource
from freight_bridge.services.product_sync import ProductSyncService

logger = logging.getLogger(__name__)


async def run_weekly_catalog_sync(service: Optional[ProductSyncService] = None) -> Dict[str, Any]:
    """Sync every configured shop from one catalog fetch, then release connections."""
    owns_service = service is None
    if owns_service:
        service = ProductSyncService(catalog_source=SupabaseCatalogSource())

    try:
        return await service.sync_all_shops()
    finally:
        if owns_service:
            await service.catalog_source.close()
            await engine.dispose()
