# models/subscription.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional


class Subscription(BaseModel):
    """One alerting configuration per owner (owner_id is the unique key)."""
    owner_id: str
    latitude: float
    longitude: float
    threshold: Optional[int] = None  # numeric policy only; None -> DEFAULT_AQI_THRESHOLD
    email: str = ""  # empty -> dispatch is skipped
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubscribeRequest(BaseModel):
    # latitude/longitude are optional here so the service can reject a missing
    # pair with the same 400 as a zero pair
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    threshold: Optional[int] = None
    email: str = Field("", max_length=255)
