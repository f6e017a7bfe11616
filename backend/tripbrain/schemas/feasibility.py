# backend/tripbrain/schemas/feasibility.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .route import WarningSeverity


class FeasibilityStatus(str, Enum):
    ON_TRACK = "on_track"
    TIGHT = "tight"
    OVER = "over"
    NO_DATA = "no_data"


class WarningCategory(str, Enum):
    ROUTE = "route"
    BUDGET = "budget"
    DRIVE_TIME = "drive_time"
    DRIVER = "driver"
    TIMING = "timing"
    PASSENGER = "passenger"
    DATES = "dates"
    FUEL = "fuel"


class FeasibilityWarning(BaseModel):
    category: WarningCategory
    severity: WarningSeverity
    message: str
    day_number: Optional[int] = None
    detail: Optional[str] = None
    suggestion: Optional[str] = None


class FeasibilitySummary(BaseModel):
    total_budget_used: float = 0.0
    total_budget_available: float = 0.0
    budget_utilization: float = 0.0  # 0..1+, 0 when no budget is set
    longest_drive_day_minutes: float = 0.0
    longest_drive_day_number: Optional[int] = None
    max_drive_limit_minutes: float = 0.0
    per_person_cost: Optional[float] = None
    total_days: int = 0


class FeasibilityResult(BaseModel):
    status: FeasibilityStatus
    warnings: List[FeasibilityWarning] = []
    summary: FeasibilitySummary = FeasibilitySummary()


class RefinementComparison(BaseModel):
    change: str
    before_status: FeasibilityStatus
    after_status: FeasibilityStatus
    improved: bool
    worsened: bool
    resolved_warnings: List[str] = []
    new_warnings: List[str] = []
