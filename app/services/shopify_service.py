"""
Shopify Admin REST API client - authenticated per store.
Only the recent-orders page used by the polling sync lives here.
"""
import logging
from typing import Optional

import httpx

from app.config import MAX_SYNC_PAGE_SIZE, settings

logger = logging.getLogger(__name__)


def _log_shopify_response(method: str, url: str, status: int, body_preview: str = "") -> None:
    """Log every Shopify API call. No sensitive data."""
    if status >= 400:
        logger.warning("Shopify API %s %s -> %s %s", method, url, status, body_preview[:200] if body_preview else "")
    else:
        logger.info("Shopify API %s %s -> %s", method, url, status)


def _base_url(shop_domain: str, api_version: Optional[str] = None) -> str:
    shop = shop_domain.lower().strip()
    if not shop.endswith(".myshopify.com"):
        shop = f"{shop}.myshopify.com" if "." not in shop else shop
    return f"https://{shop}/admin/api/{api_version or settings.SHOPIFY_API_VERSION}"


def _headers(access_token: str) -> dict:
    return {
        "X-Shopify-Access-Token": access_token,
        "Content-Type": "application/json",
    }


async def get_recent_orders(
    shop_domain: str,
    access_token: str,
    limit: int = MAX_SYNC_PAGE_SIZE,
    *,
    timeout: Optional[float] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[dict]:
    """
    Fetch one page of the most recent orders.
    GET /admin/api/{version}/orders.json?status=any&limit=N
    Raises httpx.HTTPError on network failure or non-2xx status.
    """
    url = f"{_base_url(shop_domain)}/orders.json"
    limit = max(1, min(limit, MAX_SYNC_PAGE_SIZE))
    async with httpx.AsyncClient(
        timeout=timeout if timeout is not None else settings.SHOPIFY_HTTP_TIMEOUT,
        transport=transport,
    ) as client:
        response = await client.get(
            url,
            params={"status": "any", "limit": limit},
            headers=_headers(access_token),
        )
        body = response.text[:300] if response.status_code >= 400 and response.text else ""
        _log_shopify_response("GET", url, response.status_code, body)
        response.raise_for_status()
    data = response.json()
    orders = data.get("orders") if isinstance(data, dict) else None
    if not isinstance(orders, list):
        raise ValueError(f"Unexpected orders.json response for {shop_domain}")
    return orders
