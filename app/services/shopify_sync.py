"""
Polling order sync: for every store with a saved token, pull the most recent
page of orders from Shopify and upsert customers and orders.

Stores are processed one after another. A failure for one store is logged and
recorded on its SyncJob row; the run moves on to the next store. There is no
cursor: every run re-reads the same recent window, which is safe because the
upserts are idempotent.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.database import Database
from app.models import Store, SyncJob, SyncJobStatus
from app.services.entity_upsert import upsert_order_payload
from app.services.shopify_service import get_recent_orders
from app.services.store_registry import list_syncable_stores

logger = logging.getLogger(__name__)

OrderFetcher = Callable[..., Awaitable[list[dict]]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ShopifySyncEngine:
    """One sync run across all configured stores."""

    def __init__(
        self,
        database: Database,
        fetch_orders: OrderFetcher = get_recent_orders,
        page_size: Optional[int] = None,
    ):
        self.database = database
        self.fetch_orders = fetch_orders
        self.page_size = page_size or settings.SYNC_PAGE_SIZE

    def _finish_job(self, db: Session, job: SyncJob, status: SyncJobStatus, synced: int, skipped: int,
                    error: Optional[str] = None) -> None:
        job.status = status
        job.finished_at = _utcnow()
        job.records_processed = synced
        job.records_skipped = skipped
        job.error_message = error[:500] if error else None
        db.commit()

    async def sync_store(self, db: Session, store: Store) -> dict:
        """Sync one store's recent orders. Only cancellation propagates; the outcome is on the SyncJob row."""
        # Every upsert commits and expires the instance; read these while the session is usable
        store_id, shop_domain, access_token = store.id, store.shop_domain, store.access_token
        job = SyncJob(store_id=store_id, status=SyncJobStatus.RUNNING, started_at=_utcnow())
        db.add(job)
        db.commit()
        db.refresh(job)

        synced = 0
        skipped = 0
        try:
            orders = await self.fetch_orders(shop_domain, access_token, limit=self.page_size)
            for payload in orders:
                if upsert_order_payload(db, store_id, payload):
                    synced += 1
                else:
                    skipped += 1
                    logger.debug("Store %s: skipped order %s without customer", store_id, payload.get("id"))
        except asyncio.CancelledError:
            db.rollback()
            logger.warning("Order sync cancelled for %s after %s order(s)", shop_domain, synced)
            self._finish_job(db, job, SyncJobStatus.FAILED, synced, skipped, "Sync cancelled")
            raise
        except Exception as e:
            # a failed statement leaves the PostgreSQL transaction unusable until rollback
            db.rollback()
            logger.exception("Order sync failed for %s: %s", shop_domain, e)
            self._finish_job(db, job, SyncJobStatus.FAILED, synced, skipped, str(e))
            return {
                "storeId": store_id,
                "shopDomain": shop_domain,
                "success": False,
                "synced": synced,
                "skipped": skipped,
                "error": str(e),
            }

        self._finish_job(db, job, SyncJobStatus.SUCCESS, synced, skipped)
        logger.info("Synced %s order(s) for %s (%s skipped)", synced, shop_domain, skipped)
        return {
            "storeId": store_id,
            "shopDomain": shop_domain,
            "success": True,
            "synced": synced,
            "skipped": skipped,
        }

    async def run(self) -> dict:
        """Run one sync across every store with a token, sequentially."""
        started = _utcnow()
        db = self.database.session()
        try:
            stores = list_syncable_stores(db)
            logger.info("Order sync run started for %s store(s)", len(stores))
            results = []
            for store in stores:
                results.append(await self.sync_store(db, store))
        finally:
            db.close()

        failed = sum(1 for r in results if not r["success"])
        summary = {
            "startedAt": started.isoformat(),
            "finishedAt": _utcnow().isoformat(),
            "stores": len(results),
            "synced": len(results) - failed,
            "failed": failed,
            "results": results,
        }
        logger.info("Order sync run finished: stores=%s failed=%s", summary["stores"], failed)
        return summary


def get_sync_history(db: Session, store_id: int, limit: int = 50) -> list:
    """Recent SyncJob rows for a store, newest first."""
    jobs = (
        db.query(SyncJob)
        .filter(SyncJob.store_id == store_id)
        .order_by(SyncJob.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": job.id,
            "status": job.status.value if job.status else None,
            "startedAt": job.started_at.isoformat() if job.started_at else None,
            "finishedAt": job.finished_at.isoformat() if job.finished_at else None,
            "recordsProcessed": job.records_processed,
            "recordsSkipped": job.records_skipped,
            "errorMessage": job.error_message,
        }
        for job in jobs
    ]
