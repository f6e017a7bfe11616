# backend/tripbrain/schemas/budget.py

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel


class BudgetMode(str, Enum):
    OPEN = "open"
    PLAN_TO_BUDGET = "plan_to_budget"


class BudgetCategory(str, Enum):
    GAS = "gas"
    HOTEL = "hotel"
    FOOD = "food"
    MISC = "misc"


class BudgetWeights(BaseModel):
    """Percentages per category. Expected to sum to 100."""
    gas: float = 35.0
    hotel: float = 40.0
    food: float = 20.0
    misc: float = 5.0

    def as_dict(self) -> Dict[str, float]:
        return {"gas": self.gas, "hotel": self.hotel, "food": self.food, "misc": self.misc}


class TripBudget(BaseModel):
    mode: BudgetMode = BudgetMode.OPEN
    total: int = 0
    gas: int = 0
    hotel: int = 0
    food: int = 0
    misc: int = 0
    weights: BudgetWeights = BudgetWeights()
    profile: str = "standard"

    def category_sum(self) -> int:
        return self.gas + self.hotel + self.food + self.misc


class BudgetStatus(str, Enum):
    COMFORTABLE = "comfortable"
    TIGHT = "tight"
    OVER = "over"


class DayBudget(BaseModel):
    day_number: int
    gas_used: float = 0.0
    hotel_cost: float = 0.0
    food_estimate: float = 0.0
    misc_cost: float = 0.0
    day_total: float = 0.0

    # ---- plan_to_budget mode only ----
    gas_remaining: Optional[float] = None
    hotel_remaining: Optional[float] = None
    food_remaining: Optional[float] = None
    status: Optional[BudgetStatus] = None


class CostBreakdownItem(BaseModel):
    category: BudgetCategory
    amount: float
    percentage: float
    per_person: float


class CostBreakdown(BaseModel):
    items: List[CostBreakdownItem] = []
    total: float = 0.0
    per_person: float = 0.0
    per_day: float = 0.0


class SensitivityScenario(BaseModel):
    label: str
    total: float
    delta: float


class BudgetProfile(BaseModel):
    name: str
    label: str
    weights: BudgetWeights
