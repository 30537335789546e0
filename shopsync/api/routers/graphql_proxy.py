"""
Read-only views over the Shopify GraphQL Admin API for data that has no
REST counterpart. Mounted under the proxy router at ``/api/v1/graphql``.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.api.proxy import proxy
from shopsync.core.auth import ApiContext, require_scope
from shopsync.crud import activity
from shopsync.db.base import get_db
from shopsync.services import graphql_queries as queries
from shopsync.services.platform_connector import get_shopify_connector
from shopsync.services.platform_connector.base import EcommercePlatformConnector

router = APIRouter()

MAX_PAGE_SIZE = 250


def _page(first: int, after: Optional[str]) -> Dict[str, Any]:
    return {"first": first, "after": after}


async def _run(
    db: AsyncSession,
    context: ApiContext,
    connector: EcommercePlatformConnector,
    resource_type: str,
    query: str,
    variables: Dict[str, Any],
    resource_id: Optional[str] = None,
) -> Dict[str, Any]:
    data = await proxy(
        db, context, activity.READ, resource_type, resource_id,
        lambda: connector.graphql(context.shop_domain, context.access_token, query, variables),
    )
    return {"success": True, "data": data}


@router.get("/returns")
async def list_returns(
    first: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    after: Optional[str] = None,
    context: ApiContext = Depends(require_scope("read_returns")),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await _run(db, context, connector, "returns", queries.RETURNS, _page(first, after))


@router.get("/returns/{return_id}")
async def get_return(
    return_id: str,
    context: ApiContext = Depends(require_scope("read_returns")),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await _run(
        db, context, connector, "returns", queries.RETURN,
        {"id": queries.to_gid("Return", return_id)}, resource_id=return_id,
    )


@router.get("/discounts")
async def list_discounts(
    first: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    after: Optional[str] = None,
    context: ApiContext = Depends(require_scope("read_discounts")),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await _run(db, context, connector, "discounts", queries.DISCOUNTS, _page(first, after))


@router.get("/order-edits/{order_id}")
async def get_order_edits(
    order_id: str,
    context: ApiContext = Depends(require_scope("read_order_edits")),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await _run(
        db, context, connector, "order_edits", queries.ORDER_EDITS,
        {"orderId": queries.to_gid("Order", order_id)}, resource_id=order_id,
    )


@router.get("/payouts")
async def list_payouts(
    first: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    after: Optional[str] = None,
    context: ApiContext = Depends(require_scope("read_shopify_payments_payouts")),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await _run(db, context, connector, "payouts", queries.PAYOUTS, _page(first, after))


@router.get("/disputes")
async def list_disputes(
    first: int = Query(50, ge=1, le=MAX_PAGE_SIZE),
    after: Optional[str] = None,
    context: ApiContext = Depends(require_scope("read_shopify_payments_disputes")),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await _run(db, context, connector, "disputes", queries.DISPUTES, _page(first, after))


@router.get("/transactions/{order_id}")
async def get_order_transactions(
    order_id: str,
    context: ApiContext = Depends(require_scope("read_orders")),
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    return await _run(
        db, context, connector, "transactions", queries.ORDER_TRANSACTIONS,
        {"orderId": queries.to_gid("Order", order_id)}, resource_id=order_id,
    )
