import logging
from typing import Optional

from shopsync.core.config import get_settings
from shopsync.crud.activity import purge_old_logs
from shopsync.db.base import AsyncSessionLocal
from shopsync.tasks.async_helper import celery_async_task

logger = logging.getLogger(__name__)


async def purge_activity(days_to_keep: Optional[int] = None) -> int:
    days = days_to_keep if days_to_keep is not None else get_settings().ACTIVITY_RETENTION_DAYS
    async with AsyncSessionLocal() as db:
        return await purge_old_logs(db, days)


@celery_async_task(max_retries=2)
async def purge_activity_logs(self, days_to_keep: Optional[int] = None) -> int:
    """Daily retention sweep of the activity log."""
    removed = await purge_activity(days_to_keep)
    logger.info("Activity retention sweep removed %s records", removed)
    return removed
