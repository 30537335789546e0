import logging
from dataclasses import dataclass, field
from typing import List, Optional
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.core.exceptions import AuthenticationError, AuthorizationError, DecryptionError, NotFoundError
from shopsync.core.scopes import scope_satisfies
from shopsync.core.security import verify_session_token
from shopsync.crud.api_key import resolve_api_key, touch_last_used
from shopsync.crud.store import get_store_by_id
from shopsync.db.base import get_db
from shopsync.db.models.store import Store

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"
API_SECRET_HEADER = "x-api-secret"


@dataclass
class ApiContext:
    """Identity of an authenticated external caller, attached to each proxied request."""
    store_id: UUID
    shop_domain: str
    access_token: str
    api_key_id: UUID
    scopes: List[str] = field(default_factory=list)


async def get_api_context(request: Request, db: AsyncSession = Depends(get_db)) -> ApiContext:
    """
    Authenticate the X-API-Key / X-API-Secret pair.

    Every failure after the headers are present is reported the same way so
    the response does not reveal whether the key, the secret or the tenant
    was the problem.
    """
    api_key = request.headers.get(API_KEY_HEADER)
    api_secret = request.headers.get(API_SECRET_HEADER)

    if not api_key or not api_secret:
        raise AuthenticationError("Missing API credentials. Provide X-API-Key and X-API-Secret headers")

    invalid = AuthenticationError("Invalid API credentials")
    try:
        resolved = await resolve_api_key(db, api_key, api_secret)
    except DecryptionError:
        logger.error("Stored secret or token could not be decrypted during API key verification")
        raise invalid from None

    if resolved is None:
        raise invalid

    await touch_last_used(db, resolved.api_key_id)

    context = ApiContext(
        store_id=resolved.store_id,
        shop_domain=resolved.shop_domain,
        access_token=resolved.access_token,
        api_key_id=resolved.api_key_id,
        scopes=resolved.scopes,
    )
    request.state.api_context = context
    return context


def check_scope(context: ApiContext, scope: str) -> None:
    if not scope_satisfies(context.scopes, scope):
        raise AuthorizationError(required_scope=scope, scopes=context.scopes)


def require_scope(scope: str):
    """Dependency factory: authenticate, then insist on ``scope``."""
    async def dependency(context: ApiContext = Depends(get_api_context)) -> ApiContext:
        check_scope(context, scope)
        return context

    return dependency


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("authorization")
    if not auth_header or not auth_header.lower().startswith("bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


async def get_current_store(request: Request, db: AsyncSession = Depends(get_db)) -> Store:
    """
    Validate the tenant owner's session token and return their store.
    """
    token = _bearer_token(request)
    if token is None:
        raise AuthenticationError("Missing session token")

    payload = verify_session_token(token)
    store = await get_store_by_id(db, payload["store_id"])
    if store is None or store.shop_domain != payload["shop"]:
        raise NotFoundError("Store not found")
    return store


async def get_optional_store(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[Store]:
    """The session's store, or None when the request carries no valid session."""
    try:
        return await get_current_store(request, db)
    except (AuthenticationError, NotFoundError):
        return None
