"""
Error taxonomy for the API.

Every exception carries the HTTP status it maps to; the handler registered
in ``shopsync.server`` renders them as ``{"error": ..., "message": ...}``
plus whatever ``extra`` the subclass provides.
"""
from typing import Any, Dict, List, Optional


class ShopSyncError(Exception):
    status_code: int = 500
    error: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.error
        super().__init__(self.message)

    @property
    def extra(self) -> Dict[str, Any]:
        return {}

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.error, "message": self.message}
        body.update(self.extra)
        return body


class AuthenticationError(ShopSyncError):
    """Missing or invalid credential/session. Never says which."""
    status_code = 401
    error = "Unauthorized"


class AuthorizationError(ShopSyncError):
    status_code = 403
    error = "Insufficient permissions"

    def __init__(self, required_scope: str, scopes: List[str]):
        self.required_scope = required_scope
        self.scopes = list(scopes)
        super().__init__(f"This API key does not have the '{required_scope}' scope")

    @property
    def extra(self) -> Dict[str, Any]:
        return {"required_scope": self.required_scope, "your_scopes": self.scopes}


class NotFoundError(ShopSyncError):
    status_code = 404
    error = "Not found"


class RateLimitError(ShopSyncError):
    status_code = 429
    error = "Too many requests"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(message or "Too many requests from this API key, please try again later")

    @property
    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}


class UpstreamError(ShopSyncError):
    """A call to the Shopify Admin API failed. Shopify's error payload is passed through."""
    status_code = 500
    error = "Upstream request failed"

    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        details: Any = None,
        retryable: bool = False,
    ):
        self.upstream_status = upstream_status
        self.details = details
        self.retryable = retryable
        # Shopify's status stays in the body; 401/403/429 describe the caller's own credential
        if retryable and upstream_status is None:
            self.status_code = 504
        super().__init__(message)

    @property
    def extra(self) -> Dict[str, Any]:
        return {
            "upstream_status": self.upstream_status,
            "details": self.details,
            "retryable": self.retryable,
        }


class DecryptionError(ShopSyncError):
    error = "Decryption failed"


class ValidationError(ShopSyncError):
    error = "Data integrity error"
