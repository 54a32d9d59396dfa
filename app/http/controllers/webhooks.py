"""
Webhook routes. The Shopify receiver is public and always answers 200 so that
Shopify never retries; processing errors are logged and kept on webhook_events.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import WebhookEvent
from app.services.shopify_webhook_handler import handle_shopify_webhook
from app.services.store_registry import get_store

logger = logging.getLogger(__name__)

# Mounted without a prefix: Shopify posts to /webhooks/shopify
router = APIRouter()
# Mounted under /api
events_router = APIRouter()


@router.post("/webhooks/shopify")
async def shopify_webhook_receive(request: Request, db: Session = Depends(get_db)):
    """
    Public endpoint for Shopify webhooks.
    Topics: customers/create, customers/update, orders/create, orders/updated; others are ignored.
    """
    raw_body = await request.body()
    handle_shopify_webhook(
        db,
        raw_body,
        topic=request.headers.get("X-Shopify-Topic"),
        shop_domain=request.headers.get("X-Shopify-Shop-Domain"),
        hmac_header=request.headers.get("X-Shopify-Hmac-Sha256"),
        secret=request.app.state.webhook_secret,
    )
    return Response(status_code=200)


@events_router.get("/webhooks/events/{store_id}")
async def get_webhook_events(
    store_id: int,
    db: Session = Depends(get_db),
    limit: int = Query(50, ge=1, le=100),
    topic: Optional[str] = Query(None),
):
    """Recent webhook deliveries for a store's shop domain, newest first."""
    store = get_store(db, store_id)
    if not store:
        raise HTTPException(status_code=404, detail=f"Store {store_id} not found")
    query = db.query(WebhookEvent).filter(WebhookEvent.shop_domain == store.shop_domain)
    if topic:
        query = query.filter(WebhookEvent.topic == topic)
    rows = query.order_by(WebhookEvent.id.desc()).limit(limit).all()
    return [
        {
            "id": r.id,
            "shopDomain": r.shop_domain,
            "topic": r.topic,
            "payloadSummary": r.payload_summary,
            "processedAt": r.processed_at.isoformat() if r.processed_at else None,
            "error": r.error,
            "createdAt": r.created_at.isoformat() if r.created_at else None,
        }
        for r in rows
    ]
