from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EventItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    debate_id: Optional[UUID] = None
    type: str
    payload: dict[str, Any]
    actor_identity: Optional[str] = None
    created_at: datetime


class EventsPage(BaseModel):
    items: List[EventItem] = Field(default_factory=list)
    next_cursor: Optional[str] = None
