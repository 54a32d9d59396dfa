"""
Store registry and credential tests
"""
import pytest

from app.models import Store
from app.services.store_registry import (
    get_or_create_store,
    list_syncable_stores,
    normalize_shop_domain,
    save_access_token,
)


class TestStoreRegistry:
    def test_get_or_create_is_idempotent(self, db_session):
        first, created = get_or_create_store(db_session, "Shop-One.myshopify.com")
        again, created_again = get_or_create_store(db_session, "shop-one.myshopify.com")

        assert created is True
        assert created_again is False
        assert first.id == again.id
        assert first.shop_domain == "shop-one.myshopify.com"
        assert first.access_token is None
        assert db_session.query(Store).count() == 1

    def test_normalize_rejects_blank(self):
        with pytest.raises(ValueError):
            normalize_shop_domain("   ")

    def test_save_access_token(self, db_session):
        store, _ = get_or_create_store(db_session, "shop-one.myshopify.com")

        save_access_token(db_session, store.id, "  shpat_123 ")

        db_session.expire_all()
        assert db_session.query(Store).one().access_token == "shpat_123"

    def test_save_access_token_unknown_store(self, db_session):
        with pytest.raises(LookupError):
            save_access_token(db_session, 404, "shpat_123")

    def test_only_stores_with_token_are_syncable(self, db_session):
        with_token, _ = get_or_create_store(db_session, "a.myshopify.com")
        get_or_create_store(db_session, "b.myshopify.com")
        save_access_token(db_session, with_token.id, "shpat_a")

        assert [s.shop_domain for s in list_syncable_stores(db_session)] == ["a.myshopify.com"]


class TestSaveTokenRoute:
    """POST /api/save-token"""

    def test_saves_token(self, client, db_session):
        store, _ = get_or_create_store(db_session, "shop-one.myshopify.com")

        response = client.post("/api/save-token", json={"storeId": store.id, "apiToken": "shpat_new"})

        assert response.status_code == 200
        assert response.json() == {"message": "Token saved successfully", "storeId": store.id}
        assert "shpat_new" not in response.text
        db_session.expire_all()
        assert db_session.query(Store).one().access_token == "shpat_new"

    def test_unknown_store(self, client):
        response = client.post("/api/save-token", json={"storeId": 999, "apiToken": "shpat_new"})
        assert response.status_code == 404

    def test_empty_token(self, client, db_session):
        store, _ = get_or_create_store(db_session, "shop-one.myshopify.com")
        response = client.post("/api/save-token", json={"storeId": store.id, "apiToken": "  "})
        assert response.status_code == 400

    def test_missing_fields(self, client):
        assert client.post("/api/save-token", json={}).status_code == 400


class TestHealth:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["db"] == "ok"


class TestSeed:
    def test_seed_is_rerunnable(self, database, db_session):
        from app.models import User
        from seed import DEMO_SHOP_DOMAIN, seed_database

        first = seed_database(database)
        second = seed_database(database)

        assert first == second
        db_session.expire_all()
        assert db_session.query(Store).one().shop_domain == DEMO_SHOP_DOMAIN
        assert db_session.query(User).count() == 1
