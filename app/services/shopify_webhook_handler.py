"""
Shopify webhook: optional HMAC verification and event processing.
Resolve (or onboard) the store, then upsert by topic. Failures are recorded on
the WebhookEvent row and never raised to the caller.
"""
import base64
import hmac
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from app.models import WebhookEvent
from app.services.entity_upsert import customer_fields, upsert_customer, upsert_order_payload
from app.services.store_registry import get_or_create_store, normalize_shop_domain

logger = logging.getLogger(__name__)

CUSTOMER_TOPICS = ("customers/create", "customers/update")
ORDER_TOPICS = ("orders/create", "orders/updated")


def verify_webhook_hmac(body: bytes, hmac_header: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify X-Shopify-Hmac-Sha256: HMAC-SHA256(raw_body, secret) base64 == header.
    """
    if not secret or not hmac_header or not body:
        return False
    computed = hmac.new(
        secret.encode("utf-8"),
        body,
        hashlib.sha256,
    ).digest()
    computed_b64 = base64.b64encode(computed).decode("utf-8")
    return hmac.compare_digest(computed_b64, hmac_header.strip())


def _payload_summary(payload) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    summary = {"id": payload.get("id")}
    if payload.get("customer") and isinstance(payload["customer"], dict):
        summary["customer_id"] = payload["customer"].get("id")
    return json.dumps(summary)[:255]


def _record_event(db: Session, event_id: Optional[int], error: Optional[str] = None) -> None:
    if not event_id:
        return
    try:
        event = db.query(WebhookEvent).filter(WebhookEvent.id == event_id).first()
        if event:
            event.processed_at = datetime.now(timezone.utc).replace(tzinfo=None)
            event.error = error[:500] if error else None
            db.commit()
    except Exception as e:
        logger.exception("Could not record webhook event %s: %s", event_id, e)
        db.rollback()


def log_webhook_event(db: Session, shop_domain: Optional[str], topic: str, payload) -> Optional[int]:
    """Persist a received-event row. Returns its id, or None if it could not be written."""
    try:
        event = WebhookEvent(
            shop_domain=(shop_domain or "").strip().lower() or None,
            topic=topic or "",
            payload_summary=_payload_summary(payload),
        )
        db.add(event)
        db.commit()
        return event.id
    except Exception as e:
        logger.exception("Could not persist webhook event: %s", e)
        db.rollback()
        return None


def process_shopify_webhook(
    db: Session,
    shop_domain: str,
    topic: str,
    payload: dict,
) -> str:
    """
    Dispatch by topic. Returns a short outcome string ("customer", "order",
    "skipped", "ignored"). Raises on malformed payloads; the caller logs.
    """
    store, _ = get_or_create_store(db, shop_domain)

    if topic in CUSTOMER_TOPICS:
        customer = customer_fields(payload)
        upsert_customer(
            db,
            store.id,
            customer["external_id"],
            customer["email"],
            customer["first_name"],
            customer["last_name"],
        )
        logger.info("Processed customer: %s", customer["external_id"])
        return "customer"

    if topic in ORDER_TOPICS:
        if not isinstance(payload, dict):
            raise ValueError("Order payload must be an object")
        if not upsert_order_payload(db, store.id, payload):
            logger.warning("Webhook %s: order %s has no customer; skipped", topic, payload.get("id"))
            return "skipped"
        logger.info("Processed order: %s", payload.get("id"))
        return "order"

    logger.debug("Webhook topic %s: no handler", topic)
    return "ignored"


def handle_shopify_webhook(
    db: Session,
    body: bytes,
    topic: Optional[str],
    shop_domain: Optional[str],
    hmac_header: Optional[str] = None,
    secret: Optional[str] = None,
) -> str:
    """
    Full receive path for one webhook delivery. Never raises: every failure is
    logged and stored on the WebhookEvent row so Shopify always gets a 200.
    """
    topic = (topic or "").strip()
    logger.info("Webhook received! Topic: %s, Shop: %s", topic, shop_domain)

    payload = None
    error = None
    try:
        payload = json.loads(body.decode("utf-8")) if body else None
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        error = f"Malformed JSON body: {e}"

    event_id = log_webhook_event(db, shop_domain, topic, payload)

    if error is None and secret and not verify_webhook_hmac(body, hmac_header, secret):
        error = "HMAC verification failed"

    if error is None:
        try:
            normalize_shop_domain(shop_domain)
        except ValueError as e:
            error = str(e)

    if error is not None:
        logger.warning("Webhook %s from %s dropped: %s", topic, shop_domain, error)
        _record_event(db, event_id, error)
        return "rejected"

    try:
        outcome = process_shopify_webhook(db, shop_domain, topic, payload)
    except Exception as e:
        logger.exception("Error processing webhook: %s", e)
        db.rollback()
        _record_event(db, event_id, str(e))
        return "error"

    _record_event(db, event_id)
    return outcome
