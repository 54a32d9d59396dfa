"""
Xeno Insights - FastAPI Backend
"""
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, HTTPException
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from routes.api import register_routes
from app.config import Settings, settings as default_settings
from app.database import Database
from app.services.shopify_service import get_recent_orders
from app.services.shopify_sync import ShopifySyncEngine
from app.workers.scheduler import SyncScheduler

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def get_cors_headers(request: Request, settings: Settings) -> dict:
    """Get CORS headers for a request"""
    origin = request.headers.get("origin", "")
    allowed_origins = settings.ALLOWED_ORIGINS

    if origin in allowed_origins:
        cors_origin = origin
    elif settings.IS_DEVELOPMENT and (origin.startswith("http://localhost") or origin.startswith("http://127.0.0.1")):
        cors_origin = origin
    elif allowed_origins:
        cors_origin = allowed_origins[0]
    else:
        cors_origin = "*"

    return {
        "Access-Control-Allow-Origin": cors_origin,
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "*",
    }


def create_app(
    settings: Settings = default_settings,
    database: Optional[Database] = None,
    fetch_orders=get_recent_orders,
    enable_scheduler: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application with its database, sync engine and scheduler.
    Everything stateful hangs off app.state; nothing is created at import time.
    """
    owns_db = database is None
    db = database or Database(settings.DATABASE_URL)
    db.create_all()

    app = FastAPI(
        title="Xeno Insights API",
        description="Shopify store analytics API",
        version="1.0.0",
        docs_url="/docs" if settings.IS_DEVELOPMENT else None,
        redoc_url="/redoc" if settings.IS_DEVELOPMENT else None,
    )

    sync_engine = ShopifySyncEngine(db, fetch_orders=fetch_orders, page_size=settings.SYNC_PAGE_SIZE)
    if enable_scheduler is None:
        enable_scheduler = settings.SYNC_ENABLED
    scheduler = (
        SyncScheduler(
            sync_engine.run,
            interval=settings.SYNC_INTERVAL_SEC,
            first_delay=settings.SYNC_FIRST_DELAY_SEC,
        )
        if enable_scheduler
        else None
    )

    app.state.settings = settings
    app.state.db = db
    app.state.sync_engine = sync_engine
    app.state.scheduler = scheduler
    app.state.webhook_secret = settings.SHOPIFY_WEBHOOK_SECRET or None

    logger.info("🚀 Starting Xeno Insights API")
    logger.info("📊 Environment: %s", settings.ENV)
    logger.info("🔗 Host: %s:%s", settings.HOST, settings.PORT)
    if not settings.SHOPIFY_WEBHOOK_SECRET:
        logger.warning("⚠️ SHOPIFY_WEBHOOK_SECRET is not set; webhooks are accepted without HMAC verification.")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error: %s", exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": jsonable_errors(exc),
                "message": "Validation error: Please check your request format"
            },
            headers=get_cors_headers(request, settings)
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTPException and ensure CORS headers are sent"""
        headers = get_cors_headers(request, settings)
        if exc.headers:
            headers.update(exc.headers)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler to ensure CORS headers are always sent"""
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "message": str(exc) if settings.IS_DEVELOPMENT else "An error occurred"
            },
            headers=get_cors_headers(request, settings)
        )

    cors_kwargs = {
        "allow_origins": settings.ALLOWED_ORIGINS,
        "allow_credentials": True,
        "allow_methods": ["GET", "POST", "OPTIONS"],
        "allow_headers": ["*"],
    }
    if settings.CORS_ORIGIN_REGEX:
        cors_kwargs["allow_origin_regex"] = settings.CORS_ORIGIN_REGEX
    app.add_middleware(CORSMiddleware, **cors_kwargs)

    register_routes(app, settings)

    @app.get("/health")
    async def health():
        """Health check endpoint. Includes DB connectivity check."""
        db_ok = db.ping()
        return {
            "status": "ok" if db_ok else "degraded",
            "service": "api",
            "db": "ok" if db_ok else "error",
            "environment": settings.ENV,
        }

    @app.get("/")
    async def root():
        return {
            "message": "Xeno Insights backend is live",
            "version": "1.0.0",
            "endpoints": [
                "POST /webhooks/shopify",
                "POST /api/save-token",
                "GET /api/stats/{storeId}",
                "GET /api/top-customers/{storeId}",
                "GET /api/orders-by-date/{storeId}?startDate=&endDate=",
                "POST /api/sync/run",
            ],
            "health": "/health",
        }

    @app.on_event("startup")
    async def startup_order_sync() -> None:
        """Start the background order sync (every SYNC_INTERVAL_SEC)."""
        if scheduler is not None:
            scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_order_sync() -> None:
        if scheduler is not None:
            await scheduler.stop()
        if owns_db:
            db.dispose()

    return app


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without non-serializable ctx values."""
    return [
        {key: value for key, value in error.items() if key in ("loc", "msg", "type")}
        for error in exc.errors()
    ]


if __name__ == "__main__":
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=default_settings.HOST,
        port=default_settings.PORT,
        reload=default_settings.IS_DEVELOPMENT,
        log_level=default_settings.LOG_LEVEL.lower()
    )
