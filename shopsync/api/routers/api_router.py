import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.api.proxy import count_of, proxy
from shopsync.api.routers import graphql_proxy
from shopsync.core.auth import ApiContext, check_scope, get_api_context, require_scope
from shopsync.core.exceptions import NotFoundError
from shopsync.core.rate_limit import enforce_rate_limit
from shopsync.crud import activity
from shopsync.db.base import get_db
from shopsync.schemas.activity import ActivityLogEntry, ActivityLogPage, ActivitySummary
from shopsync.services.platform_connector import get_shopify_connector
from shopsync.services.platform_connector.base import EcommercePlatformConnector
from shopsync.services.resources import RESOURCES, ResourceSpec, resolve_resource

logger = logging.getLogger(__name__)

# Rate limiting runs before authentication so rejected credentials still count
router = APIRouter(dependencies=[Depends(enforce_rate_limit)])

ORDERS = RESOURCES["orders"]
CUSTOMERS = RESOURCES["customers"]
PRODUCTS = RESOURCES["products"]
INVENTORY = RESOURCES["inventory"]
LOCATIONS = RESOURCES["locations"]
FULFILLMENTS = RESOURCES["fulfillments"]


# ===== ORDERS =====

@router.get("/orders")
async def list_orders(
    request: Request,
    context: ApiContext = Depends(require_scope(ORDERS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, ORDERS.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", ORDERS.collection_path(),
            params=dict(request.query_params),
        ),
        details=lambda result: count_of(result, "orders"),
    )


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    context: ApiContext = Depends(require_scope(ORDERS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, ORDERS.log_type, order_id,
        lambda: connector.request(context.shop_domain, context.access_token, "GET", ORDERS.item_path(order_id)),
    )


@router.put("/orders/{order_id}")
async def update_order(
    order_id: str,
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(require_scope(ORDERS.write_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.UPDATE, ORDERS.log_type, order_id,
        lambda: connector.request(
            context.shop_domain, context.access_token, "PUT", ORDERS.item_path(order_id),
            json=ORDERS.wrap(payload),
        ),
        details=lambda result: {"updates": payload},
    )


# ===== CUSTOMERS =====

@router.get("/customers")
async def list_customers(
    request: Request,
    context: ApiContext = Depends(require_scope(CUSTOMERS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, CUSTOMERS.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", CUSTOMERS.collection_path(),
            params=dict(request.query_params),
        ),
        details=lambda result: count_of(result, "customers"),
    )


@router.get("/customers/{customer_id}")
async def get_customer(
    customer_id: str,
    context: ApiContext = Depends(require_scope(CUSTOMERS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, CUSTOMERS.log_type, customer_id,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", CUSTOMERS.item_path(customer_id)
        ),
    )


@router.put("/customers/{customer_id}")
async def update_customer(
    customer_id: str,
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(require_scope(CUSTOMERS.write_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.UPDATE, CUSTOMERS.log_type, customer_id,
        lambda: connector.request(
            context.shop_domain, context.access_token, "PUT", CUSTOMERS.item_path(customer_id),
            json=CUSTOMERS.wrap(payload),
        ),
        details=lambda result: {"updates": payload},
    )


# ===== PRODUCTS =====

@router.get("/products")
async def list_products(
    request: Request,
    context: ApiContext = Depends(require_scope(PRODUCTS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, PRODUCTS.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", PRODUCTS.collection_path(),
            params=dict(request.query_params),
        ),
        details=lambda result: count_of(result, "products"),
    )


@router.get("/products/{product_id}")
async def get_product(
    product_id: str,
    context: ApiContext = Depends(require_scope(PRODUCTS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, PRODUCTS.log_type, product_id,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", PRODUCTS.item_path(product_id)
        ),
    )


@router.put("/products/{product_id}")
async def update_product(
    product_id: str,
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(require_scope(PRODUCTS.write_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.UPDATE, PRODUCTS.log_type, product_id,
        lambda: connector.request(
            context.shop_domain, context.access_token, "PUT", PRODUCTS.item_path(product_id),
            json=PRODUCTS.wrap(payload),
        ),
        details=lambda result: {"updates": payload},
    )


@router.post("/products")
async def create_product(
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(require_scope(PRODUCTS.write_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.CREATE, PRODUCTS.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "POST", PRODUCTS.collection_path(),
            json=PRODUCTS.wrap(payload),
        ),
        details=lambda result: {"product": payload},
        created_id=lambda result: (result.get("product") or {}).get("id"),
    )


# ===== INVENTORY =====

@router.get("/inventory")
async def list_inventory(
    request: Request,
    context: ApiContext = Depends(require_scope(INVENTORY.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, INVENTORY.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", INVENTORY.collection_path(),
            params=dict(request.query_params),
        ),
        details=lambda result: count_of(result, "inventory_levels"),
    )


@router.post("/inventory/sync")
async def sync_inventory(
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(require_scope(INVENTORY.write_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    """Set the available quantity of an inventory item at a location."""
    inventory_item_id = payload.get("inventory_item_id")
    location_id = payload.get("location_id")
    available = payload.get("available")
    if not inventory_item_id or not location_id or available is None:
        logger.warning("Inventory sync for %s rejected: incomplete payload", context.shop_domain)
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: inventory_item_id, location_id, available",
        )

    return await proxy(
        db, context, activity.UPDATE, INVENTORY.log_type, inventory_item_id,
        lambda: connector.request(
            context.shop_domain, context.access_token, "POST", "/inventory_levels/set.json",
            json={"inventory_item_id": inventory_item_id, "location_id": location_id, "available": available},
        ),
        details=lambda result: {"location_id": location_id, "available": available},
    )


# ===== LOCATIONS =====

@router.get("/locations")
async def list_locations(
    context: ApiContext = Depends(require_scope(LOCATIONS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, LOCATIONS.log_type, None,
        lambda: connector.request(context.shop_domain, context.access_token, "GET", LOCATIONS.collection_path()),
        details=lambda result: count_of(result, "locations"),
    )


# ===== FULFILLMENTS =====

@router.get("/orders/{order_id}/fulfillments")
async def list_fulfillments(
    order_id: str,
    context: ApiContext = Depends(require_scope(FULFILLMENTS.read_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.READ, FULFILLMENTS.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", f"/orders/{order_id}/fulfillments.json"
        ),
        details=lambda result: {"order_id": order_id},
    )


@router.post("/orders/{order_id}/fulfillments")
async def create_fulfillment(
    order_id: str,
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(require_scope(FULFILLMENTS.write_scope)),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await proxy(
        db, context, activity.CREATE, FULFILLMENTS.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "POST", f"/orders/{order_id}/fulfillments.json",
            json=FULFILLMENTS.wrap(payload),
        ),
        details=lambda result: {"order_id": order_id},
        created_id=lambda result: (result.get("fulfillment") or {}).get("id"),
    )


# ===== ACTIVITY =====

@router.get("/logs", response_model=ActivityLogPage)
async def get_activity_logs(
    limit: int = 100,
    offset: int = 0,
    context: ApiContext = Depends(get_api_context),
    db: AsyncSession = Depends(get_db),
):
    limit = max(1, min(limit, 500))
    offset = max(0, offset)
    logs = await activity.get_logs(db, context.store_id, limit, offset)
    return ActivityLogPage(logs=[ActivityLogEntry.model_validate(log) for log in logs], limit=limit, offset=offset)


@router.get("/stats", response_model=ActivitySummary)
async def get_activity_stats(
    hours: int = 24,
    context: ApiContext = Depends(get_api_context),
    db: AsyncSession = Depends(get_db),
):
    hours = max(1, hours)
    summary = await activity.get_activity_summary(db, context.store_id, hours)
    return ActivitySummary(summary=summary, hours=hours)


@router.get("/test-connection")
async def test_connection(
    context: ApiContext = Depends(get_api_context),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    result = await connector.request(context.shop_domain, context.access_token, "GET", "/shop.json")
    shop = result.get("shop") or {}
    return {
        "success": True,
        "shop": shop.get("name"),
        "domain": shop.get("domain"),
        "scopes": context.scopes,
    }


# ===== GENERIC RESOURCES =====

# Must be registered ahead of /v1/{resource}/{resource_id}, which would otherwise claim /v1/graphql/*
router.include_router(graphql_proxy.router, prefix="/v1/graphql")

def _resource_or_404(resource: str) -> ResourceSpec:
    spec = resolve_resource(resource)
    if spec is None:
        raise NotFoundError(f"Unknown resource: {resource}")
    return spec


def _authorize_resource(spec: ResourceSpec, method: str, context: ApiContext) -> None:
    if method != "GET" and spec.read_only:
        raise HTTPException(status_code=405, detail=f"Resource '{spec.name}' is read-only")
    check_scope(context, spec.required_scope(method))


@router.get("/v1/{resource}")
async def list_resource(
    resource: str,
    request: Request,
    context: ApiContext = Depends(get_api_context),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    spec = _resource_or_404(resource)
    _authorize_resource(spec, "GET", context)
    return await proxy(
        db, context, activity.READ, spec.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "GET", spec.collection_path(),
            params=dict(request.query_params),
        ),
        details=lambda result: count_of(result, spec.path),
    )


@router.get("/v1/{resource}/{resource_id}")
async def get_resource(
    resource: str,
    resource_id: str,
    context: ApiContext = Depends(get_api_context),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    spec = _resource_or_404(resource)
    _authorize_resource(spec, "GET", context)
    return await proxy(
        db, context, activity.READ, spec.log_type, resource_id,
        lambda: connector.request(context.shop_domain, context.access_token, "GET", spec.item_path(resource_id)),
    )


@router.post("/v1/{resource}")
async def create_resource(
    resource: str,
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(get_api_context),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    spec = _resource_or_404(resource)
    _authorize_resource(spec, "POST", context)
    return await proxy(
        db, context, activity.CREATE, spec.log_type, None,
        lambda: connector.request(
            context.shop_domain, context.access_token, "POST", spec.collection_path(), json=spec.wrap(payload)
        ),
        created_id=lambda result: (result.get(spec.envelope) or {}).get("id") if spec.envelope else None,
    )


@router.put("/v1/{resource}/{resource_id}")
async def update_resource(
    resource: str,
    resource_id: str,
    payload: Dict[str, Any] = Body(...),
    context: ApiContext = Depends(get_api_context),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    spec = _resource_or_404(resource)
    _authorize_resource(spec, "PUT", context)
    return await proxy(
        db, context, activity.UPDATE, spec.log_type, resource_id,
        lambda: connector.request(
            context.shop_domain, context.access_token, "PUT", spec.item_path(resource_id), json=spec.wrap(payload)
        ),
        details=lambda result: {"updates": payload},
    )


@router.delete("/v1/{resource}/{resource_id}")
async def delete_resource(
    resource: str,
    resource_id: str,
    context: ApiContext = Depends(get_api_context),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    spec = _resource_or_404(resource)
    _authorize_resource(spec, "DELETE", context)
    return await proxy(
        db, context, activity.DELETE, spec.log_type, resource_id,
        lambda: connector.request(context.shop_domain, context.access_token, "DELETE", spec.item_path(resource_id)),
    )
