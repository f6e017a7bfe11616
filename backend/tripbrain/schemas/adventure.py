# backend/tripbrain/schemas/adventure.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .route import Location


class AccommodationTier(str, Enum):
    BUDGET = "budget"
    MODERATE = "moderate"
    COMFORT = "comfort"


class AdventureConfig(BaseModel):
    origin: Location
    budget: float
    days: int = 3
    travelers: int = 1
    accommodation_tier: AccommodationTier = AccommodationTier.MODERATE
    is_round_trip: bool = True
    preferences: List[str] = []
    max_drive_hours_per_day: float = 8.0
    fuel_cost_per_km: float = 0.12


class AdventureCosts(BaseModel):
    fuel: int
    accommodation: int
    food: int
    total: int
    remaining: int


class AdventureDestination(BaseModel):
    id: str
    name: str
    location: Location
    description: str = ""
    category: str
    tags: List[str] = []
    distance_km: int
    estimated_drive_hours: float
    estimated_costs: AdventureCosts
    score: int  # 0..100
    fit_label: str
    match_reasons: List[str] = []
    image_url: Optional[str] = None


class AdventureResult(BaseModel):
    config: AdventureConfig
    budget_for_travel: float
    max_reachable_km: int
    destinations: List[AdventureDestination] = []


class AdventureBudgetRequest(BaseModel):
    """Turn a chosen destination into a plan-to-budget split."""
    total_budget: float
    distance_km: float
    preferences: List[str] = []
    fuel_cost_per_km: float = 0.12
    is_round_trip: bool = True
