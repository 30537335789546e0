from datetime import datetime
from typing import List, Optional, Union
import uuid

from pydantic import BaseModel, field_validator

from shopsync.core.scopes import parse_scopes


class ApiKeyCreate(BaseModel):
    name: str
    # Accepts ["read_orders", "write_orders"] or "read_orders,write_orders"
    scopes: Union[List[str], str]

    @field_validator("scopes")
    @classmethod
    def normalise_scopes(cls, value):
        return parse_scopes(value)


class ApiKeySummary(BaseModel):
    """Listing view of a credential. Never includes the secret."""
    id: uuid.UUID
    name: str
    masked_key: str
    scopes: List[str]
    is_active: bool
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None


class IssuedApiKey(ApiKeySummary):
    """Returned once, at creation or rotation time."""
    api_key: str
    api_secret: str
