"""Subscriber and tracked query Pydantic schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from adwatch.schemas.ad import AdResponse


class SubscriberUpsertRequest(BaseModel):
    """Request to create or refresh a subscriber."""
    chat_id: int
    username: Optional[str] = None


class SubscriberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    chat_id: int
    username: Optional[str] = None
    is_blocked: bool


class QueryCreateRequest(BaseModel):
    """Request to track a search URL."""
    url: str = Field(..., min_length=1, max_length=4000)


class PreviewRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=4000)


class TrackedQueryResponse(BaseModel):
    """Tracked query with its polling state."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    url: str
    platform: str
    is_active: bool
    failure_count: int
    last_polled_at: Optional[datetime] = None
    created_at: datetime


class RegistrationResponse(BaseModel):
    query: TrackedQueryResponse
    ads_found: int
    preview: List[AdResponse] = []


class PreviewResponse(BaseModel):
    url: str
    platform: str
    ads_found: int
    ads: List[AdResponse] = []
