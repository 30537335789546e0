import strawberry
from typing import Any


class SessionPermission(strawberry.BasePermission):
    """
    Grants access to the owner holding a valid session token.
    The store itself is resolved into the context before execution.
    """
    message = "A valid session token is required"

    def has_permission(
        self,
        source: Any,
        info: strawberry.types.Info,
        **kwargs
    ) -> bool:
        return info.context.get("store") is not None
