# backend/tripbrain/schemas/settings.py

from datetime import date, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .route import UnitSystem


class StopFrequency(str, Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"


class DayType(str, Enum):
    PLANNED = "planned"
    FREE = "free"
    FLEXIBLE = "flexible"


class AccommodationType(str, Enum):
    HOTEL = "hotel"
    CAMPING = "camping"
    AIRBNB = "airbnb"
    FRIENDS = "friends"
    OTHER = "other"


class DayOverride(BaseModel):
    """User choices for a single day, keyed by day_number."""
    day_number: int
    day_type: Optional[DayType] = None
    accommodation_type: Optional[AccommodationType] = None
    hotel_price_per_night: Optional[float] = None
    title: Optional[str] = None


class TripSettings(BaseModel):
    max_drive_hours: float = 8.0
    tolerance_hours: float = 1.0

    departure_date: date = Field(default_factory=date.today)
    departure_time: time = time(9, 0)
    arrival_date: Optional[date] = None
    arrival_time: Optional[time] = None
    use_arrival_time: bool = False
    return_date: Optional[date] = None

    is_round_trip: bool = False
    beast_mode: bool = False
    stop_frequency: StopFrequency = StopFrequency.BALANCED

    num_travelers: int = 1
    num_drivers: int = 1

    currency: str = "CAD"
    units: UnitSystem = UnitSystem.METRIC
    gas_price: float = 1.60  # per litre
    hotel_price_per_night: float = 150.0
    meal_price_per_day: float = 60.0  # per person
    accommodation_type: AccommodationType = AccommodationType.HOTEL

    target_arrival_hour: int = 21

    day_overrides: List[DayOverride] = []
    dismissed_stop_ids: List[str] = []
    resolved_warning_ids: List[str] = []

    # Free-form interests ("nature", "food", ...) used by discovery & adventure
    preferences: List[str] = []

    def override_for(self, day_number: int) -> Optional[DayOverride]:
        for o in self.day_overrides:
            if o.day_number == day_number:
                return o
        return None
