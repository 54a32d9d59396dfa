"""
Dashboard aggregates over a store's stored orders.
"""
import logging
from datetime import date, datetime, time
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.models import Customer, Order

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
TOP_CUSTOMERS_LIMIT = 5


def _money(value) -> float:
    return float(Decimal(value or 0).quantize(CENTS, rounding=ROUND_HALF_UP))


def customer_display_name(customer: Customer) -> str:
    """'First Last' trimmed; email when both names are empty."""
    name = f"{customer.first_name or ''} {customer.last_name or ''}".strip()
    return name or (customer.email or "")


def get_store_stats(db: Session, store_id: int) -> dict:
    total_customers = db.query(func.count(Customer.id)).filter(Customer.store_id == store_id).scalar() or 0
    total_orders = db.query(func.count(Order.id)).filter(Order.store_id == store_id).scalar() or 0
    total_revenue = (
        db.query(func.coalesce(func.sum(Order.total_price), 0))
        .filter(Order.store_id == store_id)
        .scalar()
    )
    return {
        "totalCustomers": int(total_customers),
        "totalOrders": int(total_orders),
        "totalRevenue": _money(total_revenue),
    }


def get_top_customers(db: Session, store_id: int, limit: int = TOP_CUSTOMERS_LIMIT) -> list[dict]:
    """
    Top customers by total spend. Totals are accumulated in first-seen order
    (orders by created_at, id) and the sort is stable, so ties keep that order.
    Orders whose customer row does not resolve are skipped.
    """
    orders = (
        db.query(Order)
        .options(joinedload(Order.customer))
        .filter(Order.store_id == store_id)
        .order_by(Order.created_at, Order.id)
        .all()
    )

    customer_spend: dict[str, dict] = {}
    for order in orders:
        if order.customer is None:
            continue
        entry = customer_spend.get(order.customer_id)
        if entry is None:
            entry = {"name": customer_display_name(order.customer), "total": Decimal("0")}
            customer_spend[order.customer_id] = entry
        entry["total"] += Decimal(order.total_price)

    ranked = sorted(customer_spend.values(), key=lambda c: c["total"], reverse=True)[:limit]
    return [{"name": c["name"], "total": _money(c["total"])} for c in ranked]


def get_orders_by_date(db: Session, store_id: int, start_date: date, end_date: date) -> list[dict]:
    """
    Order count and revenue per UTC calendar day, both ends inclusive.
    Days without orders are omitted. Revenue is rounded once per day.
    """
    if start_date > end_date:
        raise ValueError("startDate must not be after endDate")

    range_start = datetime.combine(start_date, time.min)
    range_end = datetime.combine(end_date, time.max)
    orders = (
        db.query(Order.created_at, Order.total_price)
        .filter(
            Order.store_id == store_id,
            Order.created_at >= range_start,
            Order.created_at <= range_end,
        )
        .all()
    )

    buckets: dict[date, dict] = {}
    for created_at, total_price in orders:
        day = created_at.date()
        bucket = buckets.setdefault(day, {"orders": 0, "revenue": Decimal("0")})
        bucket["orders"] += 1
        bucket["revenue"] += Decimal(total_price)

    return [
        {"date": day.isoformat(), "orders": bucket["orders"], "revenue": _money(bucket["revenue"])}
        for day, bucket in sorted(buckets.items())
    ]
