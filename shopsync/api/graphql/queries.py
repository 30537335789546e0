import strawberry
from typing import List
from strawberry.types import Info

from shopsync.api.graphql.permissions import SessionPermission
from shopsync.api.graphql.types.store import ActivityLogEntry, ActivitySummaryRow, ApiKey, Store


@strawberry.type
class StoreQuery:
    @strawberry.field(permission_classes=[SessionPermission])
    async def store(self, info: Info) -> Store:
        """The store the session token belongs to."""
        from shopsync.api.graphql.resolvers import resolve_store
        return await resolve_store(info)

    @strawberry.field(permission_classes=[SessionPermission])
    async def api_keys(self, info: Info) -> List[ApiKey]:
        from shopsync.api.graphql.resolvers import resolve_api_keys
        return await resolve_api_keys(info)


@strawberry.type
class ActivityQuery:
    @strawberry.field(permission_classes=[SessionPermission])
    async def activity(self, info: Info, limit: int = 100, offset: int = 0) -> List[ActivityLogEntry]:
        """Activity log entries, newest first."""
        from shopsync.api.graphql.resolvers import resolve_activity
        return await resolve_activity(info, limit, offset)

    @strawberry.field(permission_classes=[SessionPermission])
    async def activity_summary(self, info: Info, hours: int = 24) -> List[ActivitySummaryRow]:
        """Counts per resource type, action and status over the last ``hours``."""
        from shopsync.api.graphql.resolvers import resolve_activity_summary
        return await resolve_activity_summary(info, hours)
