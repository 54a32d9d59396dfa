"""
Central API route registration. All HTTP controllers are mounted here.
The dashboard API lives under /api; the Shopify webhook receiver keeps /webhooks/shopify.
"""
import logging
from fastapi import FastAPI

from app.http.controllers import (
    analytics,
    stores,
    sync,
    webhooks,
)

logger = logging.getLogger(__name__)


def register_routes(app: FastAPI, settings) -> None:
    """Register all API routers. Call from main.py after creating the FastAPI app."""
    app.include_router(webhooks.router, tags=["webhooks"])
    app.include_router(webhooks.events_router, prefix=settings.API_PREFIX, tags=["webhooks"])
    app.include_router(stores.router, prefix=settings.API_PREFIX, tags=["stores"])
    app.include_router(analytics.router, prefix=settings.API_PREFIX, tags=["analytics"])
    app.include_router(sync.router, prefix=f"{settings.API_PREFIX}/sync", tags=["sync"])
