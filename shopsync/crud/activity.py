import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Union
from uuid import UUID

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from shopsync.db.models.activity_log import ActivityLog
from shopsync.schemas.activity import ActivitySummaryRow

logger = logging.getLogger(__name__)

# Action names
READ = "READ"
CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"

# Outcomes
SUCCESS = "success"
ERROR = "error"
RECEIVED = "received"


async def record_activity(
    db: AsyncSession,
    store_id: UUID,
    api_key_id: Optional[UUID],
    action: str,
    resource_type: str,
    resource_id: Union[str, int, None] = None,
    status: str = SUCCESS,
    details: Optional[Any] = None,
) -> Optional[ActivityLog]:
    """
    Append an activity record.

    Never raises: a failure to record is logged and the operation being
    recorded carries on.
    """
    try:
        entry = ActivityLog(
            store_id=store_id,
            api_key_id=api_key_id,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            status=status,
            details=details,
        )
        db.add(entry)
        await db.commit()
        return entry
    except Exception as e:
        logger.error("Error logging %s %s for store %s: %s", action, resource_type, store_id, e)
        try:
            await db.rollback()
        except Exception as rollback_error:
            logger.error("Rollback after failed activity log also failed: %s", rollback_error)
        return None


async def get_logs(db: AsyncSession, store_id: UUID, limit: int = 100, offset: int = 0) -> List[ActivityLog]:
    stmt = (
        select(ActivityLog)
        .where(ActivityLog.store_id == store_id)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
        .offset(offset)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_logs_by_resource_type(
    db: AsyncSession, store_id: UUID, resource_type: str, limit: int = 100
) -> List[ActivityLog]:
    stmt = (
        select(ActivityLog)
        .where(ActivityLog.store_id == store_id, ActivityLog.resource_type == resource_type)
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_activity_summary(db: AsyncSession, store_id: UUID, hours: int = 24) -> List[ActivitySummaryRow]:
    """Counts per resource type, action and outcome over the last ``hours``."""
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    count = func.count(ActivityLog.id).label("count")
    stmt = (
        select(ActivityLog.resource_type, ActivityLog.action, ActivityLog.status, count)
        .where(ActivityLog.store_id == store_id, ActivityLog.created_at > since)
        .group_by(ActivityLog.resource_type, ActivityLog.action, ActivityLog.status)
        .order_by(count.desc())
    )
    result = await db.execute(stmt)
    return [
        ActivitySummaryRow(resource_type=row.resource_type, action=row.action, status=row.status, count=row.count)
        for row in result.all()
    ]


async def purge_old_logs(db: AsyncSession, days_to_keep: int = 30) -> int:
    """Delete records older than ``days_to_keep`` days. Returns how many were removed."""
    cutoff = datetime.now(timezone.utc) - timedelta(days=days_to_keep)
    stmt = delete(ActivityLog).where(ActivityLog.created_at < cutoff)
    result = await db.execute(stmt)
    await db.commit()
    logger.info("Purged %s activity records older than %s days", result.rowcount, days_to_keep)
    return result.rowcount
