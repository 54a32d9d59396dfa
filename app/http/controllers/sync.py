"""
Sync routes: trigger the order sync by hand and inspect its history
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.database import get_db
from app.http.requests.schemas import SyncRunResponse
from app.services.shopify_sync import get_sync_history
from app.services.store_registry import get_store

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/run", response_model=SyncRunResponse)
async def run_sync(request: Request):
    """Run one order sync across all stores with a saved token and return the summary."""
    return await request.app.state.sync_engine.run()


@router.get("/jobs/{store_id}")
async def list_sync_jobs(
    store_id: int,
    db: Session = Depends(get_db),
    limit: int = Query(50, ge=1, le=100),
):
    """Recent sync jobs for a store"""
    if not get_store(db, store_id):
        raise HTTPException(status_code=404, detail=f"Store {store_id} not found")
    return get_sync_history(db, store_id, limit=limit)


@router.get("/status")
async def sync_status(request: Request):
    """Scheduler state for the background order sync"""
    scheduler = request.app.state.scheduler
    if scheduler is None:
        return {"running": False, "intervalSeconds": None, "lastRun": None, "nextRun": None, "lastResult": None}
    return scheduler.get_status()
