from datetime import datetime
from typing import Any, List, Optional
import uuid

from pydantic import BaseModel


class ActivityLogEntry(BaseModel):
    id: int
    api_key_id: Optional[uuid.UUID] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    status: str
    details: Optional[Any] = None
    created_at: Optional[datetime] = None

    model_config = {
        "from_attributes": True
    }


class ActivitySummaryRow(BaseModel):
    resource_type: str
    action: str
    status: str
    count: int


class ActivityLogPage(BaseModel):
    logs: List[ActivityLogEntry]
    limit: int
    offset: int


class ActivitySummary(BaseModel):
    summary: List[ActivitySummaryRow]
    hours: int
