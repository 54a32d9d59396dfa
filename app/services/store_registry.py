"""
Store registry: tenant stores keyed by Shopify domain.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from app.models import Store
from app.services.entity_upsert import dialect_insert

logger = logging.getLogger(__name__)


def normalize_shop_domain(shop_domain: Optional[str]) -> str:
    """Lower-case and trim the X-Shopify-Shop-Domain value. Raises ValueError if empty."""
    shop = (shop_domain or "").strip().lower()
    if not shop:
        raise ValueError("Shop domain missing")
    return shop


def get_store(db: Session, store_id: int) -> Optional[Store]:
    return db.query(Store).filter(Store.id == store_id).first()


def get_store_by_domain(db: Session, shop_domain: str) -> Optional[Store]:
    return db.query(Store).filter(Store.shop_domain == normalize_shop_domain(shop_domain)).first()


def get_or_create_store(db: Session, shop_domain: str) -> tuple[Store, bool]:
    """
    Resolve a store by domain, onboarding it with no access token if unseen.
    Returns (store, created). Concurrent first webhooks for one domain collapse
    onto a single row via ON CONFLICT DO NOTHING.
    """
    shop = normalize_shop_domain(shop_domain)
    store = db.query(Store).filter(Store.shop_domain == shop).first()
    if store:
        return store, False

    stmt = dialect_insert(db, Store).values(shop_domain=shop, access_token=None)
    result = db.execute(stmt.on_conflict_do_nothing(index_elements=["shop_domain"]))
    db.commit()
    created = bool(result.rowcount)
    if created:
        logger.info("New store onboarded: %s", shop)
    return db.query(Store).filter(Store.shop_domain == shop).one(), created


def save_access_token(db: Session, store_id: int, access_token: str) -> Store:
    """Persist the Admin API token for a store. Raises LookupError / ValueError."""
    token = (access_token or "").strip()
    if not token:
        raise ValueError("API token is required")
    store = get_store(db, store_id)
    if not store:
        raise LookupError(f"Store {store_id} not found")
    store.access_token = token
    db.commit()
    db.refresh(store)
    logger.info("Saved access token for store %s (%s)", store.id, store.shop_domain)
    return store


def list_syncable_stores(db: Session) -> list[Store]:
    """Stores with a saved access token, in id order."""
    return db.query(Store).filter(Store.access_token.isnot(None)).order_by(Store.id).all()
