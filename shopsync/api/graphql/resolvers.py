from typing import List

from strawberry.types import Info
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.api.graphql.types.store import ActivityLogEntry, ActivitySummaryRow, ApiKey, Store
from shopsync.crud import activity
from shopsync.crud.api_key import list_api_keys
from shopsync.db.models.store import Store as StoreModel

MAX_LOGS = 500


def _context(info: Info):
    db: AsyncSession = info.context["db"]
    store: StoreModel = info.context["store"]
    return db, store


async def resolve_store(info: Info) -> Store:
    _, store = _context(info)
    return Store(
        id=str(store.id),
        shop_domain=store.shop_domain,
        scopes=store.scope_list,
        is_active=store.is_active,
        installed_at=store.installed_at,
    )


async def resolve_api_keys(info: Info) -> List[ApiKey]:
    db, store = _context(info)
    async with info.context["db_lock"]:
        keys = await list_api_keys(db, store.id)
    return [
        ApiKey(
            id=str(key.id),
            name=key.name,
            masked_key=key.masked_key,
            scopes=key.scopes,
            is_active=key.is_active,
            created_at=key.created_at,
            last_used_at=key.last_used_at,
        ) for key in keys
    ]


async def resolve_activity(info: Info, limit: int, offset: int) -> List[ActivityLogEntry]:
    db, store = _context(info)
    async with info.context["db_lock"]:
        logs = await activity.get_logs(db, store.id, max(1, min(limit, MAX_LOGS)), max(0, offset))
    return [
        ActivityLogEntry(
            id=log.id,
            api_key_id=str(log.api_key_id) if log.api_key_id else None,
            action=log.action,
            resource_type=log.resource_type,
            resource_id=log.resource_id,
            status=log.status,
            details=log.details,
            created_at=log.created_at,
        ) for log in logs
    ]


async def resolve_activity_summary(info: Info, hours: int) -> List[ActivitySummaryRow]:
    db, store = _context(info)
    async with info.context["db_lock"]:
        rows = await activity.get_activity_summary(db, store.id, max(1, hours))
    return [ActivitySummaryRow(**row.model_dump()) for row in rows]
