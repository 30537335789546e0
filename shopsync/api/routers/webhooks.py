import json
import logging
from typing import Any, Callable, Dict, Tuple

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.core.exceptions import AuthenticationError, NotFoundError
from shopsync.core.security import verify_webhook_hmac
from shopsync.crud.activity import RECEIVED, record_activity
from shopsync.crud.store import get_store_by_domain
from shopsync.db.base import get_db
from shopsync.db.models.store import Store
from shopsync.services.install_service import handle_uninstall

logger = logging.getLogger(__name__)

router = APIRouter()

HMAC_HEADER = "x-shopify-hmac-sha256"
SHOP_HEADER = "x-shopify-shop-domain"


async def verify_webhook(request: Request, db: AsyncSession = Depends(get_db)) -> Store:
    """
    Authenticate a Shopify webhook and resolve its store.

    The MAC is computed over the body bytes exactly as received, and the
    shop header is only trusted after the MAC checks out.
    """
    raw_body = await request.body()
    provided_hmac = request.headers.get(HMAC_HEADER)
    shop = request.headers.get(SHOP_HEADER)

    if not provided_hmac or not shop:
        logger.warning("Webhook missing HMAC or shop domain")
        raise AuthenticationError("Missing webhook signature")

    if not verify_webhook_hmac(raw_body, provided_hmac):
        logger.warning("Invalid webhook HMAC for shop %s", shop)
        raise AuthenticationError("Invalid webhook signature")

    store = await get_store_by_domain(db, shop)
    if store is None:
        logger.warning("Webhook for unknown or inactive store %s", shop)
        raise NotFoundError("Store not found")
    return store


def _order_summary(order: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "order_number": order.get("order_number"),
        "total_price": order.get("total_price"),
        "customer": (order.get("customer") or {}).get("email"),
    }


def _order_status_summary(order: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "order_number": order.get("order_number"),
        "financial_status": order.get("financial_status"),
        "fulfillment_status": order.get("fulfillment_status"),
    }


def _order_cancelled_summary(order: Dict[str, Any]) -> Dict[str, Any]:
    return {"order_number": order.get("order_number"), "cancelled_at": order.get("cancelled_at")}


def _customer_created_summary(customer: Dict[str, Any]) -> Dict[str, Any]:
    name = " ".join(part for part in (customer.get("first_name"), customer.get("last_name")) if part)
    return {"email": customer.get("email"), "name": name}


def _customer_updated_summary(customer: Dict[str, Any]) -> Dict[str, Any]:
    return {"email": customer.get("email"), "updated_at": customer.get("updated_at")}


def _product_created_summary(product: Dict[str, Any]) -> Dict[str, Any]:
    return {"title": product.get("title"), "variants_count": len(product.get("variants") or [])}


def _product_updated_summary(product: Dict[str, Any]) -> Dict[str, Any]:
    return {"title": product.get("title"), "status": product.get("status")}


def _product_deleted_summary(product: Dict[str, Any]) -> Dict[str, Any]:
    return {"title": product.get("title")}


def _inventory_summary(level: Dict[str, Any]) -> Dict[str, Any]:
    return {"location_id": level.get("location_id"), "available": level.get("available")}


def _fulfillment_summary(fulfillment: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "order_id": fulfillment.get("order_id"),
        "status": fulfillment.get("status"),
        "tracking_number": fulfillment.get("tracking_number"),
    }


# topic -> (field holding the resource id, summary of the payload)
TOPIC_HANDLERS: Dict[str, Tuple[str, Callable[[Dict[str, Any]], Dict[str, Any]]]] = {
    "orders/create": ("id", _order_summary),
    "orders/updated": ("id", _order_status_summary),
    "orders/cancelled": ("id", _order_cancelled_summary),
    "customers/create": ("id", _customer_created_summary),
    "customers/update": ("id", _customer_updated_summary),
    "products/create": ("id", _product_created_summary),
    "products/update": ("id", _product_updated_summary),
    "products/delete": ("id", _product_deleted_summary),
    "inventory_levels/update": ("inventory_item_id", _inventory_summary),
    "fulfillments/create": ("id", _fulfillment_summary),
    "fulfillments/update": ("id", _fulfillment_summary),
}

UNINSTALL_TOPIC = "app/uninstalled"


def topic_from_slug(slug: str) -> str:
    """orders-create -> orders/create (only the first dash separates the parts)."""
    return slug.replace("-", "/", 1)


async def log_webhook_event(db: AsyncSession, store: Store, topic: str, payload: Dict[str, Any]) -> None:
    id_field, summarize = TOPIC_HANDLERS[topic]
    resource_type, action = topic.split("/", 1)
    await record_activity(
        db,
        store.id,
        None,
        f"WEBHOOK_{action.upper()}",
        resource_type,
        payload.get(id_field),
        RECEIVED,
        {"webhook_topic": topic, "data": summarize(payload)},
    )


@router.post("/{slug}", response_class=PlainTextResponse)
async def receive_webhook(
    slug: str,
    request: Request,
    store: Store = Depends(verify_webhook),
    db: AsyncSession = Depends(get_db),
):
    topic = topic_from_slug(slug)

    if topic == UNINSTALL_TOPIC:
        await handle_uninstall(db, store)
        return "OK"

    if topic not in TOPIC_HANDLERS:
        raise NotFoundError(f"Unknown webhook topic: {topic}")

    try:
        payload = json.loads(await request.body() or b"{}")
    except ValueError:
        logger.warning("Webhook %s for %s carried a non-JSON body", topic, store.shop_domain)
        payload = {}
    if not isinstance(payload, dict):
        payload = {}

    logger.info("Webhook %s received for %s", topic, store.shop_domain)
    await log_webhook_event(db, store, topic, payload)
    return "OK"
