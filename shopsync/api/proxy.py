import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.core.auth import ApiContext
from shopsync.core.exceptions import UpstreamError
from shopsync.crud import activity

logger = logging.getLogger(__name__)


def count_of(result: Dict[str, Any], key: str) -> Dict[str, int]:
    return {"count": len(result.get(key) or [])}


async def proxy(
    db: AsyncSession,
    context: ApiContext,
    action: str,
    resource_type: str,
    resource_id: Union[str, int, None],
    call: Callable[[], Awaitable[Dict[str, Any]]],
    details: Optional[Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]] = None,
    created_id: Optional[Callable[[Dict[str, Any]], Any]] = None,
) -> Dict[str, Any]:
    """
    Run one upstream call and record its outcome.
    Upstream errors are recorded, then re-raised for the caller.
    """
    try:
        result = await call()
    except UpstreamError as e:
        logger.error("%s %s failed for %s: %s", action, resource_type, context.shop_domain, e.message)
        await activity.record_activity(
            db, context.store_id, context.api_key_id, action, resource_type, resource_id,
            activity.ERROR, {"error": e.message, "upstream_status": e.upstream_status},
        )
        raise

    if created_id is not None and resource_id is None:
        resource_id = created_id(result)
    await activity.record_activity(
        db, context.store_id, context.api_key_id, action, resource_type, resource_id,
        activity.SUCCESS, details(result) if details else None,
    )
    return result
