import logging
from typing import Any, Dict, Optional

import httpx
import shopify
from fastapi.concurrency import run_in_threadpool

from .base import EcommercePlatformConnector
from shopsync.core.config import get_settings
from shopsync.core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


def _error_details(response: httpx.Response) -> Any:
    """Shopify puts its error description under ``errors``; fall back to the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text or None
    if isinstance(body, dict) and "errors" in body:
        return body["errors"]
    return body


class ShopifyConnector(EcommercePlatformConnector):
    """Shopify platform connector implementation."""

    USER_AGENT = "ShopSync/1.0"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = get_settings()
        self.api_key = settings.SHOPIFY_API_KEY
        self.api_secret = settings.SHOPIFY_API_SECRET
        self.api_version = settings.SHOPIFY_API_VERSION
        self.timeout = httpx.Timeout(settings.UPSTREAM_TIMEOUT_SECONDS, connect=10.0)
        self._transport = transport

    async def get_platform_name(self) -> str:
        return "shopify"

    def base_url(self, shop_domain: str) -> str:
        return f"https://{shop_domain.rstrip('/')}/admin/api/{self.api_version}"

    def _exchange_code(self, params: dict) -> Dict:
        if not self.api_key or not self.api_secret:
            raise UpstreamError("Shopify API credentials not configured")

        shopify.Session.setup(api_key=self.api_key, secret=self.api_secret)
        session = shopify.Session(params.get("shop"), self.api_version)
        access_token = session.request_token(params)
        return {
            'access_token': access_token,
            'scope': session.access_scopes or "",
        }

    async def exchange_code_for_token(self, params: dict) -> Dict:
        """
        Exchange authorization code for access token using Shopify OAuth.

        The shopify library is synchronous, so the exchange runs in the
        threadpool.
        """
        try:
            return await run_in_threadpool(self._exchange_code, params)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Failed to exchange code for token: {e}") from e

    def _create_webhook(self, shop_domain: str, access_token: str, topic: str, address: str) -> Dict:
        with shopify.Session.temp(shop_domain, self.api_version, access_token):
            webhook = shopify.Webhook.create({
                'topic': topic,
                'address': address,
                'format': 'json',
            })
        messages = webhook.errors.full_messages()
        if messages:
            raise UpstreamError(f"Webhook {topic} was rejected", details=messages)
        return {'id': webhook.id, 'topic': topic, 'address': address}

    async def register_webhook(self, shop_domain: str, access_token: str, topic: str, address: str) -> Dict:
        try:
            return await run_in_threadpool(self._create_webhook, shop_domain, access_token, topic, address)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Failed to register webhook {topic}: {e}") from e

    def _client(self, shop_domain: str, access_token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url(shop_domain),
            timeout=self.timeout,
            transport=self._transport,
            headers={
                'X-Shopify-Access-Token': access_token,
                'Accept': 'application/json',
                'User-Agent': self.USER_AGENT,
            },
        )

    async def request(
        self,
        shop_domain: str,
        access_token: str,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Dict:
        path = path if path.startswith('/') else f"/{path}"
        logger.debug("Shopify %s %s for %s", method, path, shop_domain)

        async with self._client(shop_domain, access_token) as client:
            try:
                response = await client.request(method, path, params=params or None, json=json)
                response.raise_for_status()
            except httpx.TimeoutException as e:
                logger.warning("Shopify %s %s timed out for %s", method, path, shop_domain)
                raise UpstreamError("Shopify API request timed out", retryable=True) from e
            except httpx.HTTPStatusError as e:
                details = _error_details(e.response)
                logger.error(
                    "Shopify %s %s failed for %s with %s: %s",
                    method, path, shop_domain, e.response.status_code, details,
                )
                raise UpstreamError(
                    f"Shopify API returned {e.response.status_code}",
                    upstream_status=e.response.status_code,
                    details=details,
                    retryable=e.response.status_code == 429 or e.response.status_code >= 500,
                ) from e
            except httpx.RequestError as e:
                logger.error("Shopify %s %s could not be sent for %s: %s", method, path, shop_domain, e)
                raise UpstreamError(f"Could not reach Shopify: {e}", retryable=True) from e

        if not response.content:
            return {}
        return response.json()

    async def graphql(
        self,
        shop_domain: str,
        access_token: str,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict:
        body = await self.request(
            shop_domain,
            access_token,
            'POST',
            '/graphql.json',
            json={'query': query, 'variables': variables or {}},
        )
        if body.get('errors'):
            raise UpstreamError("GraphQL query failed", upstream_status=200, details=body['errors'])
        return body.get('data') or {}
