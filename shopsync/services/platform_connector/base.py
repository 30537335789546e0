from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class EcommercePlatformConnector(ABC):
    """Abstract base class for e-commerce platform connectors."""

    @abstractmethod
    async def get_platform_name(self) -> str:
        """Get the name of the platform this connector handles."""
        pass

    @abstractmethod
    async def exchange_code_for_token(self, params: dict) -> Dict:
        """
        Exchange an authorization code for an access token.

        Args:
            params: The full query string of the OAuth callback
                (shop, code, state, timestamp, hmac)

        Returns:
            Dict containing access_token and scope

        Raises:
            UpstreamError if the exchange fails
        """
        pass

    @abstractmethod
    async def register_webhook(self, shop_domain: str, access_token: str, topic: str, address: str) -> Dict:
        """Subscribe ``address`` to ``topic``. Returns the platform's webhook record."""
        pass

    @abstractmethod
    async def request(
        self,
        shop_domain: str,
        access_token: str,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Dict:
        """Perform one REST Admin API call and return the decoded JSON body."""
        pass

    @abstractmethod
    async def graphql(
        self,
        shop_domain: str,
        access_token: str,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict:
        """Run a GraphQL Admin API query and return its ``data`` member."""
        pass
