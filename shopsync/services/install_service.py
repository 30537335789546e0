import logging
import re
from typing import Dict, List, Tuple
from urllib.parse import urlencode

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.core.config import get_settings
from shopsync.core.exceptions import UpstreamError
from shopsync.core.security import create_session_token
from shopsync.crud.store import deactivate_store, upsert_store
from shopsync.crud.webhook import delete_all_webhooks, save_webhook
from shopsync.db.models.store import Store
from shopsync.services.platform_connector.base import EcommercePlatformConnector

logger = logging.getLogger(__name__)
settings = get_settings()

SHOP_DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9\-]*\.myshopify\.com$")


def is_valid_shop_domain(shop: str) -> bool:
    return bool(shop and SHOP_DOMAIN_PATTERN.match(shop))


def webhook_address(topic: str) -> str:
    """orders/create -> {APP_URL}/webhooks/orders-create"""
    return f"{settings.APP_URL.rstrip('/')}/webhooks/{topic.replace('/', '-')}"


def build_auth_url(shop: str, state: str) -> str:
    query = urlencode({
        "client_id": settings.SHOPIFY_API_KEY,
        "scope": settings.SHOPIFY_SCOPES,
        "redirect_uri": f"{settings.APP_URL.rstrip('/')}/auth/callback",
        "state": state,
    })
    return f"https://{shop}/admin/oauth/authorize?{query}"


def build_admin_url(shop: str, session_token: str) -> str:
    return f"{settings.ADMIN_URL}?{urlencode({'shop': shop, 'token': session_token})}"


async def register_webhooks(
    db: AsyncSession,
    connector: EcommercePlatformConnector,
    store: Store,
    access_token: str,
) -> List[Dict]:
    """
    Subscribe the store to every configured topic.
    A topic that fails is logged and skipped; the others still register.
    """
    # A rollback expires ``store``, so its identity is read once up front.
    store_id, shop_domain = store.id, store.shop_domain
    registered = []
    for topic in settings.WEBHOOK_TOPICS:
        address = webhook_address(topic)
        try:
            webhook = await connector.register_webhook(shop_domain, access_token, topic, address)
        except UpstreamError as e:
            logger.error("Failed to register webhook %s for %s: %s", topic, shop_domain, e)
            continue

        try:
            await save_webhook(db, store_id, webhook["id"], topic, webhook.get("address", address))
        except SQLAlchemyError as e:
            logger.error("Failed to save webhook %s for %s: %s", topic, shop_domain, e)
            await db.rollback()
            continue

        registered.append(webhook)
        logger.info("Registered webhook %s for %s", topic, shop_domain)
    return registered


async def complete_installation(
    db: AsyncSession,
    connector: EcommercePlatformConnector,
    params: Dict[str, str],
) -> Tuple[Store, str]:
    """
    Finish OAuth: exchange the code, save the tenant, subscribe webhooks and
    issue the owner's session token.

    The steps run in sequence and are not atomic. Once the tenant is saved,
    a webhook failure does not undo it.
    """
    shop = params["shop"]
    token_data = await connector.exchange_code_for_token(params)
    access_token = token_data.get("access_token")
    if not access_token:
        raise ValueError("Could not retrieve access token from Shopify")

    store = await upsert_store(db, shop, access_token, token_data.get("scope") or "")
    store_id = store.id

    registered = await register_webhooks(db, connector, store, access_token)
    if len(registered) < len(settings.WEBHOOK_TOPICS):
        logger.warning(
            "Only %s of %s webhooks registered for %s",
            len(registered), len(settings.WEBHOOK_TOPICS), shop,
        )
        # Reload anything a failed save expired before the caller reads it
        await db.refresh(store)

    session_token = create_session_token(store_id, shop)
    return store, session_token


async def handle_uninstall(db: AsyncSession, store: Store) -> None:
    """Deactivate the tenant and forget its webhook registrations."""
    await deactivate_store(db, store.shop_domain)
    removed = await delete_all_webhooks(db, store.id)
    logger.info("App uninstalled for %s (%s webhook registrations removed)", store.shop_domain, removed)
