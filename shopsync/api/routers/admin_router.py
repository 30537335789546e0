import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.core.auth import get_current_store
from shopsync.crud import activity
from shopsync.crud.api_key import (
    create_api_key,
    deactivate_api_key,
    delete_api_key,
    list_api_keys,
    rotate_api_key,
)
from shopsync.db.base import get_db
from shopsync.db.models.store import Store
from shopsync.schemas.activity import ActivityLogEntry, ActivityLogPage, ActivitySummary
from shopsync.schemas.api_key import ApiKeyCreate, ApiKeySummary, IssuedApiKey
from shopsync.schemas.store import StoreInfo, StoreOverview

logger = logging.getLogger(__name__)

router = APIRouter()


def store_info(store: Store) -> StoreInfo:
    return StoreInfo(
        id=store.id,
        shop_domain=store.shop_domain,
        scopes=store.scope_list,
        is_active=store.is_active,
        installed_at=store.installed_at,
    )


@router.get("/store", response_model=StoreOverview)
async def get_store_overview(
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """The installed store and the credentials issued for it."""
    api_keys = await list_api_keys(db, store.id)
    return StoreOverview(store=store_info(store), api_keys=api_keys)


@router.get("/api-keys", response_model=List[ApiKeySummary])
async def get_api_keys(
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    return await list_api_keys(db, store.id)


@router.post("/api-keys", response_model=IssuedApiKey, status_code=status.HTTP_201_CREATED)
async def issue_api_key(
    body: ApiKeyCreate,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    """
    Issue a new credential.
    The secret appears in this response only.
    """
    try:
        return await create_api_key(db, store, body.name, body.scopes)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))


@router.delete("/api-keys/{api_key_id}")
async def remove_api_key(
    api_key_id: UUID,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    if not await delete_api_key(db, api_key_id, store.id):
        raise HTTPException(status_code=404, detail="API key not found")
    logger.info("Deleted API key %s for %s", api_key_id, store.shop_domain)
    return {"success": True}


@router.post("/api-keys/{api_key_id}/deactivate")
async def disable_api_key(
    api_key_id: UUID,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    if not await deactivate_api_key(db, api_key_id, store.id):
        raise HTTPException(status_code=404, detail="API key not found")
    logger.info("Deactivated API key %s for %s", api_key_id, store.shop_domain)
    return {"success": True}


@router.post("/api-keys/{api_key_id}/rotate", response_model=IssuedApiKey)
async def renew_api_key(
    api_key_id: UUID,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    issued = await rotate_api_key(db, api_key_id, store.id)
    if issued is None:
        raise HTTPException(status_code=404, detail="API key not found")
    return issued


@router.get("/logs", response_model=ActivityLogPage)
async def get_store_logs(
    limit: int = 100,
    offset: int = 0,
    resource_type: Optional[str] = None,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    limit = max(1, min(limit, 500))
    offset = max(0, offset)
    if resource_type:
        logs = await activity.get_logs_by_resource_type(db, store.id, resource_type, limit)
        offset = 0
    else:
        logs = await activity.get_logs(db, store.id, limit, offset)
    return ActivityLogPage(logs=[ActivityLogEntry.model_validate(log) for log in logs], limit=limit, offset=offset)


@router.get("/stats", response_model=ActivitySummary)
async def get_store_stats(
    hours: int = 24,
    store: Store = Depends(get_current_store),
    db: AsyncSession = Depends(get_db),
):
    hours = max(1, hours)
    summary = await activity.get_activity_summary(db, store.id, hours)
    return ActivitySummary(summary=summary, hours=hours)
