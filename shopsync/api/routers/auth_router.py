import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from shopsync.core.exceptions import AuthenticationError, UpstreamError
from shopsync.core.nonce import nonce_cache
from shopsync.core.security import constant_time_equal, generate_nonce, verify_query_hmac
from shopsync.db.base import get_db
from shopsync.services.install_service import (
    build_admin_url,
    build_auth_url,
    complete_installation,
    is_valid_shop_domain,
)
from shopsync.services.platform_connector import get_shopify_connector
from shopsync.services.platform_connector.base import EcommercePlatformConnector

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/auth")
async def start_install(shop: str = ""):
    """Start the OAuth flow by sending the merchant to Shopify's consent screen."""
    if not shop:
        raise HTTPException(status_code=400, detail="Missing shop parameter")
    if not is_valid_shop_domain(shop):
        raise HTTPException(status_code=400, detail="Invalid shop domain")

    nonce = generate_nonce()
    nonce_cache.put(shop, nonce)
    return RedirectResponse(url=build_auth_url(shop, nonce))


@router.get("/auth/callback")
async def handle_shopify_callback(
    request: Request,
    db: AsyncSession = Depends(get_db),
    connector: EcommercePlatformConnector = Depends(get_shopify_connector),
):
    """Handles the redirect callback from Shopify after OAuth authorization."""
    params = dict(request.query_params)

    if not verify_query_hmac(params):
        raise AuthenticationError("Invalid HMAC signature")

    shop = params.get("shop", "")
    if not is_valid_shop_domain(shop) or not params.get("code"):
        raise HTTPException(status_code=400, detail="Missing or invalid shop or code parameter")

    # The nonce is single use: popped whether or not it matches
    stored_nonce = nonce_cache.pop(shop)
    if not constant_time_equal(stored_nonce, params.get("state")):
        raise AuthenticationError("Invalid state parameter")

    try:
        store, session_token = await complete_installation(db, connector, params)
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except UpstreamError:
        logger.exception("OAuth token exchange failed for %s", shop)
        raise

    logger.info("Installed for %s", store.shop_domain)
    # TODO: hand the session token over via Shopify App Bridge instead of a query parameter
    return RedirectResponse(url=build_admin_url(shop, session_token))
