from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class IdentityRegisterRequest(BaseModel):
    display_name: str


class IdentityResponse(BaseModel):
    identity_id: UUID
    display_name: str
    api_key: str
    created_at: datetime
