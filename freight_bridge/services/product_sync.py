"""
Product Catalog Sync Service

Copies the remote catalog's SKU -> Ingram part number pairs into the local
product_mappings table, which checkout reads without touching the remote
catalog.

Two entry points:
- start_sync(shop): one shop, tracked as a ProductSyncJob with progress
- sync_all_shops(): weekly cron, one catalog fetch shared by every shop
  that has Ingram credentials

A shop's mappings are replaced inside a single transaction, so checkout sees
either the old set or the new one.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError

from freight_bridge.core.config import settings
from freight_bridge.core.database import get_db_session
from freight_bridge.models.product_mapping import ProductMapping, ProductSyncJob
from freight_bridge.services.catalog_source import SupabaseCatalogSource, get_catalog_source
from freight_bridge.services.credentials import CredentialStore, get_credential_store

logger = logging.getLogger(__name__)

JOB_QUEUED = "queued"
JOB_RUNNING = "running"
JOB_SUCCESS = "success"
JOB_FAILED = "failed"

STALE_JOB_ERROR = "Sync timed out - job was running too long"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductSyncService:
    def __init__(
        self,
        session_factory: Callable = get_db_session,
        catalog_source: Optional[SupabaseCatalogSource] = None,
        credential_store: Optional[CredentialStore] = None,
        batch_size: Optional[int] = None,
        stale_after: Optional[timedelta] = None,
    ):
        self._session_factory = session_factory
        self.catalog_source = catalog_source or get_catalog_source()
        self.credential_store = credential_store or get_credential_store()
        self.batch_size = batch_size or settings.PRODUCT_SYNC_BATCH_SIZE
        self.stale_after = stale_after or timedelta(minutes=settings.PRODUCT_SYNC_STALE_MINUTES)

    # ==================== Job bookkeeping ====================

    async def _mark_stale_jobs_failed(self, shop_domain: str) -> None:
        threshold = _utcnow() - self.stale_after
        async with self._session_factory() as db:
            result = await db.execute(
                update(ProductSyncJob)
                .where(
                    ProductSyncJob.shop_domain == shop_domain,
                    ProductSyncJob.status == JOB_RUNNING,
                    ProductSyncJob.created_at < threshold,
                )
                .values(status=JOB_FAILED, error=STALE_JOB_ERROR, finished_at=_utcnow())
            )
            if result.rowcount:
                logger.warning(f"[PRODUCT_SYNC] Marked {result.rowcount} stale job(s) failed for {shop_domain}")

    async def _update_job(self, job_id: str, **values) -> None:
        async with self._session_factory() as db:
            await db.execute(
                update(ProductSyncJob).where(ProductSyncJob.id == job_id).values(**values)
            )

    async def _get_job(self, job_id: str) -> Optional[Dict[str, Any]]:
        async with self._session_factory() as db:
            job = await db.get(ProductSyncJob, job_id)
            return job.to_dict() if job else None

    async def latest_job(self, shop_domain: str) -> Optional[Dict[str, Any]]:
        """Most recent job for the shop, or None when there is none or the table is unavailable."""
        try:
            await self._mark_stale_jobs_failed(shop_domain)
            async with self._session_factory() as db:
                result = await db.execute(
                    select(ProductSyncJob)
                    .where(ProductSyncJob.shop_domain == shop_domain)
                    .order_by(ProductSyncJob.created_at.desc())
                    .limit(1)
                )
                job = result.scalar_one_or_none()
                return job.to_dict() if job else None
        except SQLAlchemyError as e:
            logger.warning(f"[PRODUCT_SYNC] Sync job table not available: {e}")
            return None

    # ==================== Mapping replacement ====================

    async def replace_mappings(
        self,
        shop_domain: str,
        mappings: Dict[str, str],
        job_id: Optional[str] = None,
    ) -> int:
        """
        Replace the shop's mappings with the given set.

        Inserts run in batches; when job_id is given the job's processed
        count is updated after each batch.

        Returns:
            Rows inserted
        """
        items = list(mappings.items())
        processed = 0

        async with self._session_factory() as db:
            await db.execute(delete(ProductMapping).where(ProductMapping.shop_domain == shop_domain))

            for start in range(0, len(items), self.batch_size):
                batch = [
                    {"shop_domain": shop_domain, "sku": sku, "ingram_part_number": part}
                    for sku, part in items[start:start + self.batch_size]
                ]
                await db.execute(
                    pg_insert(ProductMapping)
                    .values(batch)
                    .on_conflict_do_nothing(constraint="uq_product_mappings_shop_sku")
                )
                processed += len(batch)

                if job_id:
                    await self._update_job(job_id, processed=processed)

        return processed

    # ==================== Entry points ====================

    async def start_sync(self, shop_domain: str) -> Optional[Dict[str, Any]]:
        """
        Run a catalog sync for one shop.

        Returns the already-running job when there is one. Otherwise creates
        a job, syncs synchronously and returns the finished job.

        Raises:
            CatalogError / SQLAlchemyError: sync failed (job marked failed)
        """
        await self._mark_stale_jobs_failed(shop_domain)

        async with self._session_factory() as db:
            result = await db.execute(
                select(ProductSyncJob)
                .where(ProductSyncJob.shop_domain == shop_domain, ProductSyncJob.status == JOB_RUNNING)
                .order_by(ProductSyncJob.created_at.desc())
                .limit(1)
            )
            existing = result.scalar_one_or_none()
            if existing is not None:
                logger.info(f"[PRODUCT_SYNC] Sync already running for {shop_domain} (job {existing.id})")
                return existing.to_dict()

            job = ProductSyncJob(shop_domain=shop_domain, status=JOB_RUNNING, processed=0, total=0)
            db.add(job)
            await db.flush()
            job_id = job.id

        await self._run_sync(job_id, shop_domain)
        return await self._get_job(job_id)

    async def _run_sync(self, job_id: str, shop_domain: str) -> None:
        logger.info(f"[PRODUCT_SYNC] Starting sync for {shop_domain} (job {job_id})")
        try:
            mappings = await self.catalog_source.fetch_all_mappings(settings.PRODUCT_SYNC_PAGE_SIZE)
            total = len(mappings)
            logger.info(f"[PRODUCT_SYNC] {total} unique SKUs after deduplication")
            await self._update_job(job_id, total=total)

            processed = await self.replace_mappings(shop_domain, mappings, job_id=job_id)

            await self._update_job(
                job_id,
                status=JOB_SUCCESS,
                processed=processed,
                total=total,
                finished_at=_utcnow(),
            )
            logger.info(f"[PRODUCT_SYNC] Completed: {processed} mappings synced for {shop_domain}")
        except Exception as e:
            logger.error(f"[PRODUCT_SYNC] Failed for {shop_domain}: {e}")
            await self._update_job(
                job_id,
                status=JOB_FAILED,
                error=str(e) or "Unknown error",
                finished_at=_utcnow(),
            )
            raise

    async def sync_all_shops(self) -> Dict[str, Any]:
        """
        Weekly sync for every shop with Ingram credentials.

        The catalog is fetched once. Per-shop failures are reported in the
        result; a catalog fetch failure propagates.
        """
        shops = await self.credential_store.list_ingram_shops()
        if not shops:
            logger.info("[CRON] No shops configured, skipping sync")
            return {"success": True, "message": "No shops to sync"}

        logger.info(f"[CRON] Found {len(shops)} shops to sync")
        mappings = await self.catalog_source.fetch_all_mappings(settings.PRODUCT_SYNC_PAGE_SIZE)
        logger.info(f"[CRON] {len(mappings)} unique SKUs after deduplication")

        results: List[Dict[str, Any]] = []
        for shop_domain in shops:
            try:
                inserted = await self.replace_mappings(shop_domain, mappings)
                async with self._session_factory() as db:
                    db.add(ProductSyncJob(
                        shop_domain=shop_domain,
                        status=JOB_SUCCESS,
                        processed=inserted,
                        total=inserted,
                        finished_at=_utcnow(),
                    ))
                results.append({"shop": shop_domain, "synced": inserted})
                logger.info(f"[CRON] Synced {inserted} mappings for {shop_domain}")
            except SQLAlchemyError as e:
                logger.error(f"[CRON] Failed to sync {shop_domain}: {e}")
                results.append({"shop": shop_domain, "synced": 0, "error": str(e)})

        logger.info("[CRON] Weekly product sync completed")
        return {
            "success": True,
            "timestamp": _utcnow().isoformat(),
            "shops": results,
        }


# Singleton
_service: Optional[ProductSyncService] = None


def get_product_sync_service() -> ProductSyncService:
    global _service
    if _service is None:
        _service = ProductSyncService()
    return _service
