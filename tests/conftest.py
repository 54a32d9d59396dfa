"""
Shared fixtures: in-memory SQLite (foreign keys on), a store with a token,
and a TestClient on an app whose Shopify fetcher is stubbed.
"""
import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.database import Database
from app.services.store_registry import get_or_create_store, save_access_token
from main import create_app


class FakeSettings(Settings):
    ENV = "TEST"
    SHOPIFY_WEBHOOK_SECRET = ""
    SYNC_ENABLED = False


class FakeShopify:
    """Stands in for shopify_service.get_recent_orders. Orders and failures keyed by shop domain."""

    def __init__(self):
        self.orders = {}
        self.failures = {}
        self.calls = []

    async def __call__(self, shop_domain, access_token, limit=50, **kwargs):
        self.calls.append((shop_domain, access_token, limit))
        if shop_domain in self.failures:
            raise self.failures[shop_domain]
        return list(self.orders.get(shop_domain, []))


def shopify_order(order_id, total_price="10.00", created_at="2024-03-01T10:00:00Z", customer=None):
    """Minimal Shopify order object as sent by orders.json and orders/create."""
    return {
        "id": order_id,
        "total_price": total_price,
        "created_at": created_at,
        "customer": customer,
    }


def shopify_customer(customer_id, email=None, first_name=None, last_name=None):
    return {
        "id": customer_id,
        "email": email,
        "first_name": first_name,
        "last_name": last_name,
    }


@pytest.fixture()
def database():
    db = Database("sqlite://")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture()
def db_session(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture()
def store(db_session):
    """A store that has saved an Admin API token."""
    store, _ = get_or_create_store(db_session, "dev-coffee-house.myshopify.com")
    return save_access_token(db_session, store.id, "shpat_test_token")


@pytest.fixture()
def fake_shopify():
    return FakeShopify()


@pytest.fixture()
def app(database, fake_shopify):
    return create_app(
        settings=FakeSettings(),
        database=database,
        fetch_orders=fake_shopify,
        enable_scheduler=False,
    )


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client
