# backend/tripbrain/schemas/route.py

from enum import Enum
from math import isfinite
from typing import List, Optional

from pydantic import BaseModel, Field


class LocationRole(str, Enum):
    ORIGIN = "origin"
    DESTINATION = "destination"
    WAYPOINT = "waypoint"


class Location(BaseModel):
    """
    A stop on the route.

    lat/lng may be missing when the upstream geocoder could not resolve the
    place. Such locations are excluded from planning, not rejected.
    """
    id: str
    name: str
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    role: LocationRole = LocationRole.WAYPOINT

    model_config = {"frozen": True}

    @property
    def is_resolved(self) -> bool:
        if self.lat is None or self.lng is None:
            return False
        return isfinite(self.lat) and isfinite(self.lng)


class WarningSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class SegmentWarningType(str, Enum):
    LONG_DRIVE = "long_drive"
    BORDER_CROSSING = "border_crossing"
    TIMEZONE = "timezone"


class SegmentWarning(BaseModel):
    id: str  # "{type}-{segment_index}", used to mark a warning as resolved
    type: SegmentWarningType
    severity: WarningSeverity
    message: str


class RouteSegment(BaseModel):
    """One routed hop between two locations."""
    from_location: Location = Field(alias="from")
    to_location: Location = Field(alias="to")
    distance_km: float = 0.0
    duration_minutes: float = 0.0
    fuel_cost: float = 0.0
    fuel_needed_litres: float = 0.0

    # ---- Populated by the segment analyzer ----
    warnings: List[SegmentWarning] = []
    suggested_break: bool = False
    timezone: Optional[str] = None
    timezone_crossing: bool = False
    timezone_shift_hours: float = 0.0

    model_config = {"populate_by_name": True}


class UnitSystem(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"


LITRES_PER_GALLON = 3.78541
MPG_TO_L100KM_FACTOR = 235.215
HIGHWAY_FUEL_WEIGHT = 0.8
CITY_FUEL_WEIGHT = 0.2


class Vehicle(BaseModel):
    """
    Fuel profile of the vehicle doing the driving.

    Economy is L/100km and tank size litres for metric, MPG and US gallons
    for imperial.
    """
    label: str = "My vehicle"
    fuel_economy_city: float = 10.0
    fuel_economy_hwy: float = 8.0
    tank_size: float = 60.0
    units: UnitSystem = UnitSystem.METRIC

    def litres_per_100km(self) -> float:
        city = self.fuel_economy_city
        hwy = self.fuel_economy_hwy
        if self.units == UnitSystem.IMPERIAL:
            city = MPG_TO_L100KM_FACTOR / city if city > 0 else 0.0
            hwy = MPG_TO_L100KM_FACTOR / hwy if hwy > 0 else 0.0
        return hwy * HIGHWAY_FUEL_WEIGHT + city * CITY_FUEL_WEIGHT

    def tank_litres(self) -> float:
        if self.units == UnitSystem.IMPERIAL:
            return self.tank_size * LITRES_PER_GALLON
        return self.tank_size

    def range_km(self) -> float:
        economy = self.litres_per_100km()
        if economy <= 0:
            return 0.0
        return self.tank_litres() / economy * 100.0


class RouteSource(str, Enum):
    MAPBOX = "mapbox"
    ESTIMATE = "estimate"


class RouteResult(BaseModel):
    segments: List[RouteSegment] = []
    geometry: Optional[List[List[float]]] = None  # [lng, lat] pairs
    source: RouteSource = RouteSource.MAPBOX
