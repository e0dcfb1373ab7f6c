"""Ad Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AdResponse(BaseModel):
    """An ad as extracted or stored."""
    model_config = ConfigDict(from_attributes=True)

    external_id: str
    title: str
    ad_url: str
    description: Optional[str] = None
    price: Optional[str] = None
    image_url: Optional[str] = None
    location: Optional[str] = None
    address: Optional[str] = None
    published_at: Optional[datetime] = None
