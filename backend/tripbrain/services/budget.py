# backend/tripbrain/services/budget.py

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Sequence

from ..schemas.budget import (
    BudgetCategory,
    BudgetMode,
    BudgetProfile,
    BudgetStatus,
    BudgetWeights,
    CostBreakdown,
    CostBreakdownItem,
    DayBudget,
    SensitivityScenario,
    TripBudget,
)
from ..schemas.itinerary import StopType, SuggestedStop, TripDay
from ..schemas.route import RouteSegment
from ..schemas.settings import TripSettings
from .stop_planner import rooms_needed

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = "standard"
CUSTOM_PROFILE = "custom"

BUDGET_PROFILES: Dict[str, BudgetProfile] = {
    p.name: p
    for p in [
        BudgetProfile(name="standard", label="Standard",
                      weights=BudgetWeights(gas=35, hotel=40, food=20, misc=5)),
        BudgetProfile(name="balanced", label="Balanced",
                      weights=BudgetWeights(gas=25, hotel=35, food=30, misc=10)),
        BudgetProfile(name="foodie", label="Foodie",
                      weights=BudgetWeights(gas=20, hotel=20, food=50, misc=10)),
        BudgetProfile(name="scenic", label="Scenic",
                      weights=BudgetWeights(gas=35, hotel=35, food=20, misc=10)),
        BudgetProfile(name="backpacker", label="Backpacker",
                      weights=BudgetWeights(gas=35, hotel=25, food=25, misc=15)),
        BudgetProfile(name="comfort", label="Comfort",
                      weights=BudgetWeights(gas=20, hotel=45, food=25, misc=10)),
    ]
}

# Remaining-money thresholds for the per-day status
COMFORTABLE_REMAINING = 50.0

MEALS_PER_DAY = 3
DRIVE_HOURS_PER_MEAL = 4

CATEGORIES = ("gas", "hotel", "food", "misc")


class UnknownBudgetProfile(ValueError):
    pass


# ---------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------

def coerce_amount(value: Any) -> int:
    """
    Turn user input into a whole, non-negative amount.

    Garbage in gives 0 out; this never raises.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, str):
        value = value.strip().replace(",", "").lstrip("$")
        if not value:
            return 0
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(v) or v < 0:
        return 0
    return int(round(v))


# ---------------------------------------------------------------------
# Allocation
# ---------------------------------------------------------------------

def reconcile_budget_rounding(budget: TripBudget, target_total: int) -> TripBudget:
    """
    Make the four categories add up to `target_total`.

    Whatever rounding left over is absorbed by hotel. Callers floor their
    shares first, so the residual is never negative.
    """
    residual = target_total - budget.category_sum()
    return budget.model_copy(update={"hotel": budget.hotel + residual, "total": target_total})


def apply_budget_weights(total: int, weights: BudgetWeights) -> Dict[str, int]:
    w = weights.as_dict()
    return {c: int(math.floor(total * w[c] / 100.0)) for c in CATEGORIES}


def weights_from_amounts(budget: TripBudget) -> BudgetWeights:
    s = budget.category_sum()
    if s <= 0:
        return budget.weights
    return BudgetWeights(
        gas=round(budget.gas / s * 100.0, 1),
        hotel=round(budget.hotel / s * 100.0, 1),
        food=round(budget.food / s * 100.0, 1),
        misc=round(budget.misc / s * 100.0, 1),
    )


def update_total(budget: TripBudget, new_total: Any) -> TripBudget:
    """
    Set a new trip total.

    With nothing allocated yet the total is split by weight. Otherwise every
    category keeps its share of the old sum.
    """
    target = coerce_amount(new_total)
    current = budget.category_sum()

    if current <= 0:
        amounts = apply_budget_weights(target, budget.weights)
    else:
        ratio = target / current
        amounts = {c: int(math.floor(getattr(budget, c) * ratio)) for c in CATEGORIES}

    scaled = budget.model_copy(update=amounts)
    return reconcile_budget_rounding(scaled, target)


def update_category(budget: TripBudget, category: BudgetCategory, value: Any) -> TripBudget:
    """Set one category directly; the total follows, nothing else moves."""
    amount = coerce_amount(value)
    updated = budget.model_copy(update={category.value: amount})
    updated = updated.model_copy(update={
        "total": updated.category_sum(),
        "profile": CUSTOM_PROFILE,
    })
    return updated.model_copy(update={"weights": weights_from_amounts(updated)})


def apply_profile(budget: TripBudget, profile_name: str) -> TripBudget:
    """Switch to a preset and redistribute the current total by its weights."""
    profile = BUDGET_PROFILES.get(profile_name)
    if profile is None:
        raise UnknownBudgetProfile(f"Unknown budget profile: {profile_name}")

    amounts = apply_budget_weights(budget.total, profile.weights)
    updated = budget.model_copy(update={**amounts, "weights": profile.weights, "profile": profile.name})
    return reconcile_budget_rounding(updated, budget.total)


def estimate_budget(
    days: Sequence[TripDay],
    segments: Sequence[RouteSegment],
    settings: TripSettings,
) -> TripBudget:
    """
    Smart default budget from the planned trip.

    Fuel from the legs, one night per overnight stop, meals for every day.
    Weights reflect the estimate itself.
    """
    gas = sum(s.fuel_cost for s in segments)
    nights = sum(1 for d in days if d.overnight is not None)
    hotel = sum(d.overnight.total_cost for d in days if d.overnight is not None)
    if not hotel and nights:
        hotel = nights * rooms_needed(settings.num_travelers) * settings.hotel_price_per_night
    food = len(days) * max(1, settings.num_travelers) * settings.meal_price_per_day

    budget = TripBudget(
        mode=BudgetMode.OPEN,
        gas=int(round(gas)),
        hotel=int(round(hotel)),
        food=int(round(food)),
        misc=0,
        profile=CUSTOM_PROFILE,
    )
    budget = budget.model_copy(update={"total": budget.category_sum()})
    return budget.model_copy(update={"weights": weights_from_amounts(budget)})


def budget_from_actuals(budget: TripBudget, day_budgets: Sequence[DayBudget]) -> TripBudget:
    """Open mode: the categories are whatever the itinerary actually costs."""
    gas = int(round(sum(d.gas_used for d in day_budgets)))
    hotel = int(round(sum(d.hotel_cost for d in day_budgets)))
    food = int(round(sum(d.food_estimate for d in day_budgets)))
    misc = int(round(sum(d.misc_cost for d in day_budgets)))
    updated = budget.model_copy(update={
        "gas": gas, "hotel": hotel, "food": food, "misc": misc,
        "total": gas + hotel + food + misc,
    })
    return updated.model_copy(update={"weights": weights_from_amounts(updated)})


# ---------------------------------------------------------------------
# Per-day snapshots
# ---------------------------------------------------------------------

def status_for_remaining(remaining: float) -> BudgetStatus:
    if remaining > COMFORTABLE_REMAINING:
        return BudgetStatus.COMFORTABLE
    if remaining > 0:
        return BudgetStatus.TIGHT
    return BudgetStatus.OVER


_STATUS_RANK = {
    BudgetStatus.COMFORTABLE: 0,
    BudgetStatus.TIGHT: 1,
    BudgetStatus.OVER: 2,
}


def worst_status(statuses: Sequence[BudgetStatus]) -> BudgetStatus:
    return max(statuses, key=lambda s: _STATUS_RANK[s])


def meals_for_day(day: TripDay, stops: Sequence[SuggestedStop], settings: TripSettings) -> int:
    """Meals to budget for a day, per traveler count included."""
    meal_stops = sum(
        1 for s in stops
        if s.day_number == day.day_number and s.type in (StopType.MEAL, StopType.QUICK_MEAL)
    )
    by_hours = math.ceil(day.totals.drive_time_minutes / 60.0 / DRIVE_HOURS_PER_MEAL)
    return max(meal_stops, by_hours) * max(1, settings.num_travelers)


def build_day_budgets(
    days: Sequence[TripDay],
    segments: Sequence[RouteSegment],
    stops: Sequence[SuggestedStop],
    settings: TripSettings,
    budget: TripBudget,
) -> List[DayBudget]:
    per_meal = settings.meal_price_per_day / MEALS_PER_DAY
    plan_mode = budget.mode == BudgetMode.PLAN_TO_BUDGET

    out: List[DayBudget] = []
    spent = {"gas": 0.0, "hotel": 0.0, "food": 0.0}

    for day in days:
        gas = sum(segments[i].fuel_cost for i in day.segment_indices)
        hotel = day.overnight.total_cost if day.overnight is not None else 0.0
        food = meals_for_day(day, stops, settings) * per_meal
        misc = 0.0

        db = DayBudget(
            day_number=day.day_number,
            gas_used=round(gas, 2),
            hotel_cost=round(hotel, 2),
            food_estimate=round(food, 2),
            misc_cost=misc,
            day_total=round(gas + hotel + food + misc, 2),
        )

        if plan_mode:
            spent["gas"] += gas
            spent["hotel"] += hotel
            spent["food"] += food
            remaining = {c: round(getattr(budget, c) - spent[c], 2) for c in spent}
            db = db.model_copy(update={
                "gas_remaining": remaining["gas"],
                "hotel_remaining": remaining["hotel"],
                "food_remaining": remaining["food"],
                "status": worst_status([status_for_remaining(v) for v in remaining.values()]),
            })
        out.append(db)

    return out


# ---------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------

def ceil_to_nearest(value: float, increment: int) -> float:
    if value <= 0:
        return 0.0
    return float(math.ceil(value / increment) * increment)


def cost_breakdown(day_budgets: Sequence[DayBudget], num_travelers: int) -> CostBreakdown:
    """Trip cost by category, rounded up to friendly numbers."""
    raw = {
        BudgetCategory.GAS: sum(d.gas_used for d in day_budgets),
        BudgetCategory.HOTEL: sum(d.hotel_cost for d in day_budgets),
        BudgetCategory.FOOD: sum(d.food_estimate for d in day_budgets),
        BudgetCategory.MISC: sum(d.misc_cost for d in day_budgets),
    }
    rounded = {c: ceil_to_nearest(v, 5) for c, v in raw.items()}
    total = ceil_to_nearest(sum(rounded.values()), 10)
    travelers = max(1, num_travelers)

    items = [
        CostBreakdownItem(
            category=c,
            amount=amount,
            percentage=round(amount / total * 100.0, 1) if total else 0.0,
            per_person=round(amount / travelers, 2),
        )
        for c, amount in rounded.items()
    ]
    return CostBreakdown(
        items=items,
        total=total,
        per_person=ceil_to_nearest(total / travelers, 5),
        per_day=round(total / len(day_budgets), 2) if day_budgets else 0.0,
    )


def compute_sensitivity(
    day_budgets: Sequence[DayBudget],
    settings: TripSettings,
) -> List[SensitivityScenario]:
    """What-if totals: pricier fuel, and one more night on the road."""
    base = sum(d.day_total for d in day_budgets)
    gas = sum(d.gas_used for d in day_budgets)
    extra_night = (
        rooms_needed(settings.num_travelers) * settings.hotel_price_per_night
        + max(1, settings.num_travelers) * settings.meal_price_per_day
    )
    scenarios = [
        ("+10% fuel", gas * 0.10),
        ("+1 night", extra_night),
    ]
    return [
        SensitivityScenario(label=label, total=round(base + delta, 2), delta=round(delta, 2))
        for label, delta in scenarios
    ]


def list_profiles() -> List[BudgetProfile]:
    return list(BUDGET_PROFILES.values())
