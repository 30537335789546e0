from datetime import datetime
from typing import List, Optional
import uuid

from pydantic import BaseModel

from shopsync.schemas.api_key import ApiKeySummary


class StoreInfo(BaseModel):
    id: uuid.UUID
    shop_domain: str
    scopes: List[str]
    is_active: bool
    installed_at: Optional[datetime] = None


class StoreOverview(BaseModel):
    store: StoreInfo
    api_keys: List[ApiKeySummary]
