"""
Freight Bridge
FastAPI application entry point

Shopify carrier-service backend quoting Ingram Micro freight:
- /api/ingram/rates: carrier-service callback and direct rate requests
- /api/cart-estimate: storefront cart-page estimates
- /api/admin/shops/{shop}/...: per-shop configuration
- /api/cron/sync-products: weekly catalog sync
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text

from freight_bridge.api.routes import admin, carrier_service, cart_estimate, cron
from freight_bridge.core.background import drain_background_tasks, pending_task_count
from freight_bridge.core.config import settings
from freight_bridge.core.cors import AdminCORSMiddleware
from freight_bridge.core.database import AsyncSessionLocal, engine
from freight_bridge.services.catalog_source import get_catalog_source
from freight_bridge.services.freight_estimates import get_freight_estimate_service
from freight_bridge.services.tdsynnex_client import get_tdsynnex_client

# Import models to register them with SQLAlchemy
from freight_bridge.models import (  # noqa: F401
    IngramCredential, TdSynnexCredential, ProductMapping, ProductSyncJob,
    CarrierConfiguration, FallbackRateSetting, RateRequestLog,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup/shutdown.

    Shutdown lets pending fire-and-forget writes finish, then closes the
    upstream HTTP clients and the connection pool.
    """
    logger.info(f"{settings.APP_NAME} starting ({settings.ENVIRONMENT})")

    yield

    await drain_background_tasks()

    await get_freight_estimate_service().close()
    await get_tdsynnex_client().close()
    await get_catalog_source().close()
    logger.info("Upstream HTTP clients closed")

    await engine.dispose()


app = FastAPI(
    lifespan=lifespan,
    title="Freight Bridge API",
    description="Ingram Micro freight rates for Shopify checkout.",
    version="1.0.0",
)

app.add_middleware(
    AdminCORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(carrier_service.router, prefix="/api")
app.include_router(cart_estimate.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(cron.router, prefix="/api")


@app.get("/", tags=["Health"])
async def root():
    return {"message": "Freight Bridge API", "docs": "/docs"}


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with a DB ping and cache/in-flight counters.
    Returns 503 if the database is unreachable.
    """
    freight = get_freight_estimate_service()
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "freight_cache": freight.cache.get_stats(),
        "freight_inflight": freight.inflight_count(),
        "background_tasks": pending_task_count(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}: {str(e)[:100]}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
