from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LifecycleEventCreate(BaseModel):
    user_id: Optional[str] = None
    event_type: str
    title: str
    description: Optional[str] = None
    category: str = "system"
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Optional[dict] = None


class LifecycleEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: str
    user_id: Optional[str] = None
    event_type: str
    title: str
    description: Optional[str] = None
    category: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Optional[dict] = Field(default=None, alias="metadata_json")
    occurred_at: datetime
