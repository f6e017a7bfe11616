# backend/tripbrain/schemas/itinerary.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .budget import DayBudget
from .route import Location
from .settings import AccommodationType, DayType


class StopType(str, Enum):
    DRIVE = "drive"
    FUEL = "fuel"
    BREAK = "break"
    QUICK_MEAL = "quick_meal"
    MEAL = "meal"
    OVERNIGHT = "overnight"


class StopPriority(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"


class SuggestedStop(BaseModel):
    """
    A stop the planner wants to insert.

    A stop sits at the end of leg `after_segment_index`. When
    `en_route_minutes` is set the stop happens inside that leg instead, that
    many minutes of driving after the leg starts.
    """
    id: str
    type: StopType
    after_segment_index: int
    en_route_minutes: Optional[float] = None
    duration_minutes: float
    priority: StopPriority = StopPriority.OPTIONAL
    estimated_cost: float = 0.0
    reason: str = ""
    day_number: int = 1
    accepted: bool = True
    mirror_segment_index: Optional[int] = None
    location_name: Optional[str] = None


class OvernightStop(BaseModel):
    location: Location
    accommodation_type: AccommodationType = AccommodationType.HOTEL
    cost_per_night: float = 0.0
    rooms_needed: int = 1
    total_cost: float = 0.0
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    amenities: List[str] = []


class DayTotals(BaseModel):
    distance_km: float = 0.0
    drive_time_minutes: float = 0.0
    stop_time_minutes: float = 0.0
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None


class TimezoneChange(BaseModel):
    segment_index: int
    from_timezone: Optional[str] = None
    to_timezone: Optional[str] = None
    shift_hours: float = 0.0
    applied_hours: float = 0.0  # may be less than shift_hours when clamped


class TripDay(BaseModel):
    day_number: int
    segment_indices: List[int] = []
    day_type: DayType = DayType.PLANNED
    title: str = ""
    totals: DayTotals = DayTotals()
    overnight: Optional[OvernightStop] = None
    timezone_changes: List[TimezoneChange] = []
    budget: Optional[DayBudget] = None


class EventType(str, Enum):
    DEPARTURE = "departure"
    DRIVE = "drive"
    FUEL = "fuel"
    BREAK = "break"
    QUICK_MEAL = "quick_meal"
    MEAL = "meal"
    WAYPOINT = "waypoint"
    ARRIVAL = "arrival"
    OVERNIGHT = "overnight"


class TimelineEvent(BaseModel):
    id: str
    type: EventType
    day_number: int
    start: datetime
    end: datetime
    duration_minutes: float = 0.0
    segment_index: Optional[int] = None
    stop: Optional[SuggestedStop] = None
    location_name: str = ""
    distance_from_origin_km: float = 0.0
    timezone: Optional[str] = None


class DriverAssignment(BaseModel):
    segment_index: int
    driver_number: int  # 1-based


class DriverStats(BaseModel):
    driver_number: int
    segments: int = 0
    distance_km: float = 0.0
    drive_minutes: float = 0.0


class DriverRotation(BaseModel):
    num_drivers: int
    assignments: List[DriverAssignment] = []
    drivers: List[DriverStats] = []


class Timeline(BaseModel):
    events: List[TimelineEvent] = []
    days: List[TripDay] = []
