# backend/tripbrain/schemas/plan.py

from typing import List, Optional, Union

from pydantic import BaseModel

from .budget import (
    BudgetCategory,
    CostBreakdown,
    DayBudget,
    SensitivityScenario,
    TripBudget,
)
from .discovery import ActionState, POICandidate, POISuggestion
from .feasibility import FeasibilityResult
from .itinerary import DriverRotation, SuggestedStop, TimelineEvent, TripDay
from .route import Location, RouteSegment, Vehicle
from .settings import TripSettings

# Raw numeric input from a form; coerced by the budget engine
AmountInput = Union[int, float, str, None]


class TripTotals(BaseModel):
    distance_km: float = 0.0
    duration_minutes: float = 0.0
    fuel_litres: float = 0.0
    fuel_cost: float = 0.0
    gas_stops: int = 0
    cost_per_person: float = 0.0
    driving_days: int = 0


class TripPlan(BaseModel):
    """Everything the planner derives from one set of legs and settings."""
    segments: List[RouteSegment] = []
    days: List[TripDay] = []
    events: List[TimelineEvent] = []
    stops: List[SuggestedStop] = []
    budget: TripBudget = TripBudget()
    day_budgets: List[DayBudget] = []
    cost_breakdown: CostBreakdown = CostBreakdown()
    sensitivity: List[SensitivityScenario] = []
    feasibility: FeasibilityResult
    pacing_suggestions: List[str] = []
    driver_rotation: Optional[DriverRotation] = None
    totals: TripTotals = TripTotals()
    geometry: Optional[List[List[float]]] = None
    incomplete_route: bool = False
    excluded_segment_indices: List[int] = []


# ---------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------

class PlanRequest(BaseModel):
    segments: List[RouteSegment]
    vehicle: Vehicle = Vehicle()
    settings: TripSettings = TripSettings()
    budget: TripBudget = TripBudget()
    geometry: Optional[List[List[float]]] = None


class RouteRequest(BaseModel):
    locations: List[Location]
    vehicle: Vehicle = Vehicle()
    settings: TripSettings = TripSettings()
    budget: TripBudget = TripBudget()


class BudgetTotalRequest(BaseModel):
    budget: TripBudget
    new_total: AmountInput = None


class BudgetCategoryRequest(BaseModel):
    budget: TripBudget
    category: BudgetCategory
    value: AmountInput = None


class BudgetProfileRequest(BaseModel):
    budget: TripBudget
    profile: str


class DiscoverRequest(BaseModel):
    pois: List[POISuggestion]
    total_segments: Optional[int] = None
    budget_minutes: Optional[float] = None


class FilterRequest(BaseModel):
    pois: List[POISuggestion]
    budget_minutes: Optional[float] = None


class ActionRequest(BaseModel):
    poi: POISuggestion
    state: ActionState


class RankRequest(BaseModel):
    candidates: List[POICandidate]
    preferences: List[str] = []
    destination: bool = False
    segments: List[RouteSegment] = []
    top_n: int = 5


class CorridorRequest(BaseModel):
    segments: List[RouteSegment]
    preferences: List[str] = []
    radius_km: float = 10.0
    top_n: int = 5
    # Newer searches with the same key supersede older ones still in flight
    query_key: str = "corridor"


class RefineRequest(BaseModel):
    plan: PlanRequest
    settings: TripSettings
    change: str = "Updated trip settings"
