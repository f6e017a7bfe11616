# backend/tripbrain/schemas/profile.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from .settings import TripSettings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TripRecord(BaseModel):
    """What we remember about one committed trip."""
    recorded_at: datetime = Field(default_factory=_utcnow)
    trip_length_days: int = 0
    budget_profile: str = "standard"
    hotel_price_per_night: float
    meal_price_per_day: float
    num_travelers: int = 1
    had_gas_buffer: bool = True


class AdaptiveDefaults(BaseModel):
    hotel_price_per_night: float
    meal_price_per_day: float
    trip_count: int


class RecordTripRequest(BaseModel):
    settings: TripSettings
    budget_profile: str = "standard"
    had_gas_buffer: bool = True


class ProfileDefaults(BaseModel):
    defaults: Optional[AdaptiveDefaults] = None
    # differs enough from the stock prices to be worth suggesting
    meaningful: bool = False
