import asyncio
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.fastapi import GraphQLRouter

from shopsync.api.graphql.schema import schema
from shopsync.core.auth import get_optional_store
from shopsync.core.config import get_settings
from shopsync.db.base import get_db
from shopsync.db.models.store import Store


async def get_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    store: Optional[Store] = Depends(get_optional_store),
) -> Dict[str, Any]:
    """
    Creates a context for GraphQL resolvers with request and database session.
    The session's store is resolved once per request, before any field runs.
    Root fields execute concurrently, so resolvers take ``db_lock`` around
    every use of the shared session.
    """
    return {
        "request": request,
        "db": db,
        "db_lock": asyncio.Lock(),
        "store": store,
    }


graphql_router = GraphQLRouter(
    schema,
    context_getter=get_context,
    graphql_ide="graphiql" if get_settings().DEBUG else None,
)
