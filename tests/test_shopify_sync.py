"""
Polling sync tests - per-store isolation, skip rules, idempotent re-runs and the Admin API call
"""
import asyncio
import json
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import event, text
from sqlalchemy.exc import OperationalError

from app.models import Customer, Order, SyncJob, SyncJobStatus
from app.services.entity_upsert import upsert_order_payload
from app.services.shopify_service import get_recent_orders
from app.services.shopify_sync import ShopifySyncEngine, get_sync_history
from app.services.store_registry import get_or_create_store, save_access_token
from tests.conftest import shopify_customer, shopify_order


def _page(*orders):
    return list(orders)


class TestShopifySyncEngine:
    """ShopifySyncEngine.run"""

    def test_syncs_orders_for_store_with_token(self, database, db_session, store, fake_shopify):
        fake_shopify.orders[store.shop_domain] = _page(
            shopify_order(1, "30.00", customer=shopify_customer(10, "a@example.com", "Ann", "Lee")),
            shopify_order(2, "20.00", customer=shopify_customer(10, "a@example.com", "Ann", "Lee")),
        )

        summary = asyncio.run(ShopifySyncEngine(database, fetch_orders=fake_shopify).run())

        assert summary["stores"] == 1
        assert summary["failed"] == 0
        assert summary["results"][0]["synced"] == 2
        assert fake_shopify.calls == [(store.shop_domain, "shpat_test_token", 50)]
        db_session.expire_all()
        assert db_session.query(Order).count() == 2
        assert db_session.query(Customer).count() == 1

    def test_stores_without_token_are_not_synced(self, database, db_session, fake_shopify):
        get_or_create_store(db_session, "no-token.myshopify.com")

        summary = asyncio.run(ShopifySyncEngine(database, fetch_orders=fake_shopify).run())

        assert summary["stores"] == 0
        assert fake_shopify.calls == []

    def test_orders_without_customer_are_skipped(self, database, db_session, store, fake_shopify):
        fake_shopify.orders[store.shop_domain] = _page(
            shopify_order(1, "15.00", customer=None),
            shopify_order(2, "25.00", customer=shopify_customer(20)),
        )

        summary = asyncio.run(ShopifySyncEngine(database, fetch_orders=fake_shopify).run())

        result = summary["results"][0]
        assert (result["synced"], result["skipped"]) == (1, 1)
        db_session.expire_all()
        assert [o.id for o in db_session.query(Order).all()] == ["2"]

    def test_failing_store_does_not_stop_the_next_one(self, database, db_session, fake_shopify):
        broken, _ = get_or_create_store(db_session, "broken.myshopify.com")
        save_access_token(db_session, broken.id, "shpat_broken")
        healthy, _ = get_or_create_store(db_session, "healthy.myshopify.com")
        save_access_token(db_session, healthy.id, "shpat_healthy")
        fake_shopify.failures["broken.myshopify.com"] = httpx.ConnectError("connection refused")
        fake_shopify.orders["healthy.myshopify.com"] = _page(
            shopify_order(7, "12.00", customer=shopify_customer(70)),
        )

        summary = asyncio.run(ShopifySyncEngine(database, fetch_orders=fake_shopify).run())

        assert summary["stores"] == 2
        assert summary["failed"] == 1
        by_domain = {r["shopDomain"]: r for r in summary["results"]}
        assert by_domain["broken.myshopify.com"]["success"] is False
        assert "connection refused" in by_domain["broken.myshopify.com"]["error"]
        assert by_domain["healthy.myshopify.com"]["success"] is True
        db_session.expire_all()
        assert db_session.query(Order).filter(Order.store_id == healthy.id).count() == 1

        jobs = {job.store_id: job for job in db_session.query(SyncJob).all()}
        assert jobs[broken.id].status == SyncJobStatus.FAILED
        assert jobs[healthy.id].status == SyncJobStatus.SUCCESS

    def test_database_error_mid_page_does_not_stop_the_next_store(self, database, db_session, fake_shopify, monkeypatch):
        first, _ = get_or_create_store(db_session, "first.myshopify.com")
        save_access_token(db_session, first.id, "shpat_first")
        second, _ = get_or_create_store(db_session, "second.myshopify.com")
        save_access_token(db_session, second.id, "shpat_second")
        fake_shopify.orders["first.myshopify.com"] = _page(
            shopify_order(1, "10.00", customer=shopify_customer(1)),
            shopify_order(2, "10.00", customer=shopify_customer(2)),
        )
        fake_shopify.orders["second.myshopify.com"] = _page(
            shopify_order(3, "10.00", customer=shopify_customer(3)),
        )

        # Like PostgreSQL: once a statement fails, every statement errors until ROLLBACK
        aborted = {"on": False}

        @event.listens_for(database.engine, "before_cursor_execute")
        def fail_while_aborted(conn, cursor, statement, parameters, context, executemany):
            if aborted["on"]:
                raise OperationalError(statement, parameters, Exception("current transaction is aborted"))

        @event.listens_for(database.engine, "rollback")
        def clear_abort(conn):
            aborted["on"] = False

        def deadlocking_upsert(db, store_id, payload):
            if payload["id"] == 2:
                db.execute(text("SELECT 1"))
                aborted["on"] = True
                raise OperationalError("INSERT INTO orders", {}, Exception("deadlock detected"))
            return upsert_order_payload(db, store_id, payload)

        monkeypatch.setattr("app.services.shopify_sync.upsert_order_payload", deadlocking_upsert)

        summary = asyncio.run(ShopifySyncEngine(database, fetch_orders=fake_shopify).run())

        by_domain = {r["shopDomain"]: r for r in summary["results"]}
        assert by_domain["first.myshopify.com"]["success"] is False
        assert "deadlock detected" in by_domain["first.myshopify.com"]["error"]
        assert by_domain["second.myshopify.com"]["success"] is True
        db_session.expire_all()
        assert sorted(o.id for o in db_session.query(Order).all()) == ["1", "3"]
        jobs = {job.store_id: job for job in db_session.query(SyncJob).all()}
        assert jobs[first.id].status == SyncJobStatus.FAILED
        assert jobs[first.id].records_processed == 1
        assert jobs[second.id].status == SyncJobStatus.SUCCESS

    def test_cancelled_run_marks_job_failed(self, database, db_session, store):
        async def hanging_fetch(shop_domain, access_token, limit=50, **kwargs):
            await asyncio.sleep(60)
            return []

        async def scenario():
            task = asyncio.create_task(ShopifySyncEngine(database, fetch_orders=hanging_fetch).run())
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        db_session.expire_all()
        job = db_session.query(SyncJob).one()
        assert job.status == SyncJobStatus.FAILED
        assert job.error_message == "Sync cancelled"
        assert job.finished_at is not None

    def test_bad_order_aborts_rest_of_that_store_page(self, database, db_session, store, fake_shopify):
        fake_shopify.orders[store.shop_domain] = _page(
            shopify_order(1, "10.00", customer=shopify_customer(1)),
            shopify_order(2, "oops", customer=shopify_customer(2)),
            shopify_order(3, "10.00", customer=shopify_customer(3)),
        )

        summary = asyncio.run(ShopifySyncEngine(database, fetch_orders=fake_shopify).run())

        result = summary["results"][0]
        assert result["success"] is False
        assert result["synced"] == 1
        db_session.expire_all()
        assert [o.id for o in db_session.query(Order).all()] == ["1"]

    def test_rerun_on_unchanged_page_keeps_row_counts(self, database, db_session, store, fake_shopify):
        fake_shopify.orders[store.shop_domain] = _page(
            shopify_order(1, "10.00", customer=shopify_customer(1)),
            shopify_order(2, "11.00", customer=shopify_customer(2)),
        )
        engine = ShopifySyncEngine(database, fetch_orders=fake_shopify)

        asyncio.run(engine.run())
        db_session.expire_all()
        counts = (db_session.query(Customer).count(), db_session.query(Order).count())
        asyncio.run(engine.run())
        db_session.expire_all()

        assert (db_session.query(Customer).count(), db_session.query(Order).count()) == counts == (2, 2)

    def test_resync_refreshes_total_price_only(self, database, db_session, store, fake_shopify):
        fake_shopify.orders[store.shop_domain] = _page(
            shopify_order(1, "10.00", created_at="2024-03-01T10:00:00Z", customer=shopify_customer(1)),
        )
        engine = ShopifySyncEngine(database, fetch_orders=fake_shopify)
        asyncio.run(engine.run())

        fake_shopify.orders[store.shop_domain] = _page(
            shopify_order(1, "8.00", created_at="2024-05-05T10:00:00Z", customer=shopify_customer(1)),
        )
        asyncio.run(engine.run())

        db_session.expire_all()
        order = db_session.query(Order).one()
        assert order.total_price == Decimal("8.00")
        assert order.created_at.isoformat() == "2024-03-01T10:00:00"

    def test_sync_history(self, database, db_session, store, fake_shopify):
        engine = ShopifySyncEngine(database, fetch_orders=fake_shopify)
        asyncio.run(engine.run())
        asyncio.run(engine.run())

        history = get_sync_history(db_session, store.id)

        assert len(history) == 2
        assert history[0]["id"] > history[1]["id"]
        assert all(job["status"] == "SUCCESS" for job in history)


class TestGetRecentOrders:
    """Admin API orders.json request"""

    def test_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["token"] = request.headers.get("X-Shopify-Access-Token")
            return httpx.Response(200, json={"orders": [{"id": 1}]})

        orders = asyncio.run(
            get_recent_orders("demo.myshopify.com", "shpat_abc", limit=500, transport=httpx.MockTransport(handler))
        )

        assert orders == [{"id": 1}]
        assert seen["url"].startswith("https://demo.myshopify.com/admin/api/")
        assert "/orders.json?" in seen["url"]
        assert "status=any" in seen["url"]
        assert "limit=50" in seen["url"]
        assert seen["token"] == "shpat_abc"

    def test_http_error_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text=json.dumps({"errors": "bad token"})))

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(get_recent_orders("demo.myshopify.com", "bad", transport=transport))

    def test_unexpected_body_raises(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"order": {}}))

        with pytest.raises(ValueError):
            asyncio.run(get_recent_orders("demo.myshopify.com", "tok", transport=transport))


class TestSyncRoutes:
    def test_run_endpoint(self, client, store, fake_shopify):
        fake_shopify.orders[store.shop_domain] = _page(shopify_order(1, "10.00", customer=shopify_customer(1)))

        response = client.post("/api/sync/run")

        assert response.status_code == 200
        body = response.json()
        assert body["stores"] == 1
        assert body["results"][0]["synced"] == 1

        jobs = client.get(f"/api/sync/jobs/{store.id}").json()
        assert jobs[0]["status"] == "SUCCESS"
        assert jobs[0]["recordsProcessed"] == 1

    def test_status_without_scheduler(self, client):
        body = client.get("/api/sync/status").json()
        assert body["running"] is False
