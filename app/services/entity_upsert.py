"""
Idempotent create-or-update for customers and orders keyed by (external id, store).

Writes go through INSERT ... ON CONFLICT so two writers for the same key never
produce a duplicate row. Each call commits its own transaction.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from app.models import Customer, Order

logger = logging.getLogger(__name__)


class InvalidPriceError(ValueError):
    """Raised when a Shopify price cannot be used as a non-negative amount."""


def dialect_insert(db: Session, model):
    """INSERT construct with on_conflict_* support for the session's dialect."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise RuntimeError(f"Upsert not supported for dialect {dialect}")


def parse_price(value: Any) -> Decimal:
    """
    Parse Shopify's string-encoded decimal ("19.99") into a Decimal.
    Missing, non-numeric, NaN, infinite or negative values raise InvalidPriceError
    instead of silently becoming zero.
    """
    if value is None or isinstance(value, bool):
        raise InvalidPriceError(f"Invalid price: {value!r}")
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidPriceError(f"Invalid price: {value!r}")
    if not price.is_finite():
        raise InvalidPriceError(f"Invalid price: {value!r}")
    if price < 0:
        raise InvalidPriceError(f"Negative price: {value!r}")
    return price


def parse_timestamp(value: Any) -> datetime:
    """ISO-8601 timestamp (Shopify sends offsets, e.g. 2024-03-01T10:00:00-05:00) to naive UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        raw = (str(value) if value is not None else "").strip()
        if not raw:
            raise ValueError("Missing created_at")
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            raise ValueError(f"Invalid created_at: {value!r}")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def external_id(value: Any, what: str = "id") -> str:
    """Shopify ids arrive as JSON numbers; store them as strings."""
    if value is None or str(value).strip() == "":
        raise ValueError(f"Missing {what}")
    return str(value).strip()


def customer_fields(payload: Optional[dict]) -> dict:
    """Extract upsert arguments from a Shopify customer object."""
    if not payload or not isinstance(payload, dict):
        raise ValueError("Missing customer")
    return {
        "external_id": external_id(payload.get("id"), "customer id"),
        "email": payload.get("email"),
        "first_name": payload.get("first_name"),
        "last_name": payload.get("last_name"),
    }


def upsert_customer(
    db: Session,
    store_id: int,
    external_id: str,
    email: Optional[str],
    first_name: Optional[str],
    last_name: Optional[str],
) -> None:
    """Insert the customer or overwrite email/first/last name (last write wins)."""
    values = {
        "email": email,
        "first_name": first_name,
        "last_name": last_name,
    }
    stmt = dialect_insert(db, Customer).values(id=str(external_id), store_id=store_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["id", "store_id"],
        set_={key: stmt.excluded[key] for key in values},
    )
    db.execute(stmt)
    db.commit()
    logger.debug("Upserted customer %s for store %s", external_id, store_id)


def upsert_order(
    db: Session,
    store_id: int,
    external_id: str,
    total_price: Decimal,
    created_at: datetime,
    customer_external_id: str,
) -> None:
    """
    Insert the order or refresh its total_price. created_at and the customer link
    are fixed by the first insert. The customer must already exist in this store.
    """
    if total_price is None or total_price < 0:
        raise InvalidPriceError(f"Invalid total_price for order {external_id}: {total_price!r}")
    stmt = dialect_insert(db, Order).values(
        id=str(external_id),
        store_id=store_id,
        customer_id=str(customer_external_id),
        total_price=total_price,
        created_at=created_at,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["id", "store_id"],
        set_={"total_price": stmt.excluded.total_price},
    )
    db.execute(stmt)
    db.commit()
    logger.debug("Upserted order %s for store %s", external_id, store_id)


def upsert_order_payload(db: Session, store_id: int, payload: dict) -> bool:
    """
    Apply one Shopify order object: customer upsert, then order upsert.
    Returns False (nothing written) when the order has no customer.
    """
    if not payload.get("customer"):
        return False
    order_id = external_id(payload.get("id"), "order id")
    total_price = parse_price(payload.get("total_price"))
    created_at = parse_timestamp(payload.get("created_at"))
    customer = customer_fields(payload["customer"])
    upsert_customer(
        db,
        store_id,
        customer["external_id"],
        customer["email"],
        customer["first_name"],
        customer["last_name"],
    )
    upsert_order(db, store_id, order_id, total_price, created_at, customer["external_id"])
    return True
