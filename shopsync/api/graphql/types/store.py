from typing import List, Optional
import strawberry
from strawberry.scalars import ID, JSON
from shopsync.api.graphql.types.scalars import DateTime


@strawberry.type
class Store:
    id: ID
    shop_domain: str
    scopes: List[str]
    is_active: bool
    installed_at: Optional[DateTime] = None


@strawberry.type
class ApiKey:
    """A credential as listed to its owner. The secret is never exposed here."""
    id: ID
    name: str
    masked_key: str
    scopes: List[str]
    is_active: bool
    created_at: Optional[DateTime] = None
    last_used_at: Optional[DateTime] = None


@strawberry.type
class ActivityLogEntry:
    id: int
    api_key_id: Optional[ID]
    action: str
    resource_type: str
    resource_id: Optional[str]
    status: str
    details: Optional[JSON] = None
    created_at: Optional[DateTime] = None


@strawberry.type
class ActivitySummaryRow:
    resource_type: str
    action: str
    status: str
    count: int
