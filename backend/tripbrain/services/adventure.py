# backend/tripbrain/services/adventure.py

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from ..schemas.adventure import (
    AccommodationTier,
    AdventureConfig,
    AdventureCosts,
    AdventureDestination,
    AdventureResult,
)
from ..schemas.budget import BudgetMode, BudgetWeights, TripBudget
from ..schemas.route import Location, LocationRole
from .budget import reconcile_budget_rounding
from .destination_catalog import CatalogDestination, load_destinations
from .geo import FALLBACK_SPEED_KMH, ROAD_FACTOR, haversine_km

logger = logging.getLogger(__name__)

NIGHTLY_RATES: Dict[AccommodationTier, float] = {
    AccommodationTier.BUDGET: 80.0,
    AccommodationTier.MODERATE: 150.0,
    AccommodationTier.COMFORT: 250.0,
}
FOOD_PER_PERSON_PER_DAY = 50.0

SCORE_WEIGHTS = {
    "closeness": 0.40,
    "preference": 0.35,
    "headroom": 0.25,
}
MAX_RESULTS = 10

PREFERENCE_KEYWORDS: Dict[str, List[str]] = {
    "scenic": ["scenic", "nature", "hiking", "lakes", "coastal", "mountain"],
    "family": ["family", "iconic", "beach", "nature", "camping"],
    "budget": ["camping", "nature", "hiking", "beach", "city", "budget", "friendly"],
    "foodie": ["foodie", "wine", "dining", "culture", "city"],
}


def _nights(days: int) -> int:
    return max(0, days - 1)


def _trip_multiplier(config: AdventureConfig) -> int:
    return 2 if config.is_round_trip else 1


def budget_for_travel(config: AdventureConfig) -> float:
    """What is left for fuel once beds and food are paid for."""
    lodging = NIGHTLY_RATES[config.accommodation_tier] * _nights(config.days)
    food = FOOD_PER_PERSON_PER_DAY * config.days * max(1, config.travelers)
    return max(0.0, config.budget - lodging - food)


def driving_ratio(days: int) -> float:
    """Share of the trip's drive hours we are willing to spend getting there."""
    if days <= 2:
        return 0.8
    if days <= 4:
        return 0.6
    return 0.4


def drive_day_ceiling_km(config: AdventureConfig) -> float:
    hours = config.days * config.max_drive_hours_per_day * driving_ratio(config.days)
    return hours * FALLBACK_SPEED_KMH / _trip_multiplier(config)


def max_distance_km(config: AdventureConfig) -> float:
    """
    Furthest one-way distance the money and the days both allow.
    """
    per_km = config.fuel_cost_per_km * _trip_multiplier(config)
    by_budget = budget_for_travel(config) / per_km if per_km > 0 else 0.0
    return min(by_budget, drive_day_ceiling_km(config))


def estimate_costs(road_km: float, config: AdventureConfig) -> AdventureCosts:
    fuel = road_km * _trip_multiplier(config) * config.fuel_cost_per_km
    lodging = NIGHTLY_RATES[config.accommodation_tier] * _nights(config.days)
    food = FOOD_PER_PERSON_PER_DAY * config.days * max(1, config.travelers)
    total = fuel + lodging + food
    return AdventureCosts(
        fuel=round(fuel),
        accommodation=round(lodging),
        food=round(food),
        total=round(total),
        remaining=round(max(0.0, config.budget - total)),
    )


def preference_score(tags: Sequence[str], preferences: Sequence[str]) -> Tuple[float, List[str]]:
    if not preferences:
        return 50.0, ["Popular destination"]

    reasons: List[str] = []
    matches = 0
    for pref in preferences:
        keywords = PREFERENCE_KEYWORDS.get(pref, [pref])
        hit = [t for t in tags if t in keywords]
        if hit:
            matches += len(hit)
            reasons.append(f"Great for {pref} trips")

    score = min(100.0, 30.0 + matches / len(preferences) * 35.0)
    return score, reasons or ["Interesting destination"]


def fit_label(score: float) -> str:
    if score >= 80:
        return "great fit"
    if score >= 60:
        return "good fit"
    return "worth a look"


def score_destination(
    road_km: float, max_km: float, costs: AdventureCosts, pref: float, budget: float
) -> float:
    closeness = 100.0 * min(road_km, max_km) / max_km if max_km > 0 else 0.0
    headroom = 100.0 * costs.remaining / budget if budget > 0 else 0.0
    score = (
        closeness * SCORE_WEIGHTS["closeness"]
        + pref * SCORE_WEIGHTS["preference"]
        + headroom * SCORE_WEIGHTS["headroom"]
    )
    return max(0.0, min(100.0, score))


def find_adventures(
    config: AdventureConfig,
    catalog: Optional[Sequence[CatalogDestination]] = None,
) -> AdventureResult:
    """
    Destinations reachable on this budget and schedule, best fit first.

    The catalogue defaults to the bundled destinations.json.
    """
    catalog = load_destinations() if catalog is None else catalog
    max_km = max_distance_km(config)
    origin = config.origin

    found: List[AdventureDestination] = []
    if origin.is_resolved:
        for dest in catalog:
            road_km = haversine_km(origin.lat, origin.lng, dest.lat, dest.lng) * ROAD_FACTOR
            if road_km > max_km:
                continue

            costs = estimate_costs(road_km, config)
            if costs.total > config.budget:
                continue

            pref, reasons = preference_score(dest.tags, config.preferences)
            score = round(score_destination(road_km, max_km, costs, pref, config.budget))
            found.append(AdventureDestination(
                id=f"dest-{dest.slug}",
                name=dest.name,
                location=Location(
                    id=f"loc-{dest.slug}",
                    name=dest.name,
                    lat=dest.lat,
                    lng=dest.lng,
                    role=LocationRole.DESTINATION,
                ),
                description=dest.description,
                category=dest.category,
                tags=dest.tags,
                distance_km=round(road_km),
                estimated_drive_hours=round(road_km / FALLBACK_SPEED_KMH, 1),
                estimated_costs=costs,
                score=score,
                fit_label=fit_label(score),
                match_reasons=reasons,
                image_url=dest.image_url,
            ))
    else:
        logger.warning("Adventure search without origin coordinates, no destinations scored")

    found.sort(key=lambda d: d.score, reverse=True)
    return AdventureResult(
        config=config,
        budget_for_travel=round(budget_for_travel(config), 2),
        max_reachable_km=round(max_km),
        destinations=found[:MAX_RESULTS],
    )


# ---------------------------------------------------------------------
# Adventure selection -> trip budget
# ---------------------------------------------------------------------

PREFERENCE_TO_PROFILE = {
    "foodie": "foodie",
    "scenic": "scenic",
    "budget": "balanced",
    "family": "balanced",
}

# How the money left after gas is split, per profile
DISCRETIONARY_WEIGHTS: Dict[str, Dict[str, float]] = {
    "balanced": {"hotel": 45, "food": 40, "misc": 15},
    "foodie": {"hotel": 25, "food": 60, "misc": 15},
    "scenic": {"hotel": 50, "food": 30, "misc": 20},
}


def build_adventure_budget(
    total_budget: float,
    distance_km: float,
    preferences: Sequence[str],
    fuel_cost_per_km: float = 0.12,
    is_round_trip: bool = True,
) -> TripBudget:
    """A plan-to-budget TripBudget for the chosen destination."""
    total = max(0, int(round(total_budget)))
    profile = PREFERENCE_TO_PROFILE.get(preferences[0], "balanced") if preferences else "balanced"

    mult = 2 if is_round_trip else 1
    gas = min(total, int(round(distance_km * mult * fuel_cost_per_km)))
    rest = total - gas
    w = DISCRETIONARY_WEIGHTS[profile]
    budget = TripBudget(
        mode=BudgetMode.PLAN_TO_BUDGET,
        gas=gas,
        hotel=int(math.floor(rest * w["hotel"] / 100)),
        food=int(math.floor(rest * w["food"] / 100)),
        misc=int(math.floor(rest * w["misc"] / 100)),
        profile=profile,
    )
    budget = reconcile_budget_rounding(budget, total)
    if total > 0:
        budget = budget.model_copy(update={"weights": BudgetWeights(
            gas=round(budget.gas / total * 100, 1),
            hotel=round(budget.hotel / total * 100, 1),
            food=round(budget.food / total * 100, 1),
            misc=round(budget.misc / total * 100, 1),
        )})
    return budget
