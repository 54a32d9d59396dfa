"""
Analytics routes
"""
import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.database import get_db
from app.http.requests.schemas import OrdersByDateResponse, StatsResponse, TopCustomerResponse
from app.services.analytics import get_orders_by_date, get_store_stats, get_top_customers
from app.services.store_registry import get_store

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_store(db: Session, store_id: int) -> None:
    if not get_store(db, store_id):
        raise HTTPException(status_code=404, detail=f"Store {store_id} not found")


@router.get("/stats/{store_id}", response_model=StatsResponse)
async def get_stats(store_id: int, db: Session = Depends(get_db)):
    """Customer count, order count and revenue for a store"""
    _require_store(db, store_id)
    return get_store_stats(db, store_id)


@router.get("/top-customers/{store_id}", response_model=List[TopCustomerResponse])
async def top_customers(store_id: int, db: Session = Depends(get_db)):
    """Top 5 customers by spend"""
    _require_store(db, store_id)
    return get_top_customers(db, store_id)


@router.get("/orders-by-date/{store_id}", response_model=List[OrdersByDateResponse])
async def orders_by_date(
    store_id: int,
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    db: Session = Depends(get_db),
):
    """Orders and revenue per day between startDate and endDate (inclusive)"""
    _require_store(db, store_id)
    try:
        return get_orders_by_date(db, store_id, start_date, end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
