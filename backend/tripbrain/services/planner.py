# backend/tripbrain/services/planner.py

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from ..config import FeasibilityPolicy, SegmentPolicy
from ..schemas.budget import BudgetMode, TripBudget
from ..schemas.itinerary import StopType
from ..schemas.plan import TripPlan, TripTotals
from ..schemas.route import RouteSegment, Vehicle
from ..schemas.settings import TripSettings
from .budget import (
    budget_from_actuals,
    build_day_budgets,
    compute_sensitivity,
    cost_breakdown,
)
from .day_splitter import split_into_days
from .feasibility import evaluate_feasibility
from .segment_analyzer import analyze_segments, generate_pacing_suggestions
from .stop_planner import assign_drivers, fuel_stop_indices, plan_stops
from .timeline import apply_mirror_indices, build_timeline, mirror_round_trip

logger = logging.getLogger(__name__)


def partition_resolved(
    segments: Sequence[RouteSegment],
) -> Tuple[List[RouteSegment], List[int]]:
    """Split legs into plannable ones and indices of legs with missing coordinates."""
    kept: List[RouteSegment] = []
    excluded: List[int] = []
    for i, seg in enumerate(segments):
        if seg.from_location.is_resolved and seg.to_location.is_resolved:
            kept.append(seg)
        else:
            excluded.append(i)
    return kept, excluded


def with_fuel(segments: Sequence[RouteSegment], vehicle: Vehicle, settings: TripSettings) -> List[RouteSegment]:
    """Fill in litres and cost for legs the router left blank."""
    l_per_km = vehicle.litres_per_100km() / 100.0
    out: List[RouteSegment] = []
    for seg in segments:
        litres = seg.fuel_needed_litres or seg.distance_km * l_per_km
        cost = seg.fuel_cost or litres * settings.gas_price
        out.append(seg.model_copy(update={
            "fuel_needed_litres": round(litres, 2),
            "fuel_cost": round(cost, 2),
        }))
    return out


def plan_trip(
    segments: Sequence[RouteSegment],
    vehicle: Vehicle,
    settings: TripSettings,
    budget: Optional[TripBudget] = None,
    geometry: Optional[List[List[float]]] = None,
    segment_policy: Optional[SegmentPolicy] = None,
    feasibility_policy: Optional[FeasibilityPolicy] = None,
) -> TripPlan:
    """
    Run the whole itinerary pipeline.

    Legs with unresolved endpoints are left out and reported; the rest is
    planned as if they were never there.
    """
    budget = budget or TripBudget()

    legs, excluded = partition_resolved(segments)
    if excluded:
        logger.warning("Excluding %d legs with unresolved locations: %s", len(excluded), excluded)

    legs = with_fuel(legs, vehicle, settings)
    if settings.is_round_trip and legs:
        legs = mirror_round_trip(legs)

    legs = analyze_segments(legs, segment_policy)
    days = split_into_days(legs, settings)

    stops = plan_stops(legs, days, vehicle, settings)
    if settings.is_round_trip:
        stops = apply_mirror_indices(stops, len(legs))

    timeline = build_timeline(days, legs, stops, settings)
    days = timeline.days

    day_budgets = build_day_budgets(days, legs, stops, settings, budget)
    days = [d.model_copy(update={"budget": db}) for d, db in zip(days, day_budgets)]
    if budget.mode == BudgetMode.OPEN:
        budget = budget_from_actuals(budget, day_budgets)

    feasibility = evaluate_feasibility(
        days, day_budgets, legs, settings, budget, feasibility_policy, vehicle=vehicle
    )

    longest = max((d.totals.drive_time_minutes for d in days), default=0.0)
    pacing = generate_pacing_suggestions(longest, settings, already_split=len(days) > 1) if days else []
    rotation = assign_drivers(legs, settings.num_drivers, fuel_stop_indices(stops)) if legs else None

    total_cost = sum(db.day_total for db in day_budgets)
    totals = TripTotals(
        distance_km=round(sum(s.distance_km for s in legs), 1),
        duration_minutes=round(sum(s.duration_minutes for s in legs), 1),
        fuel_litres=round(sum(s.fuel_needed_litres for s in legs), 2),
        fuel_cost=round(sum(s.fuel_cost for s in legs), 2),
        gas_stops=sum(1 for s in stops if s.type == StopType.FUEL),
        cost_per_person=round(total_cost / max(1, settings.num_travelers), 2),
        driving_days=len(days),
    )

    logger.info(
        "Planned %d legs into %d days (%s)", len(legs), len(days), feasibility.status.value
    )
    return TripPlan(
        segments=legs,
        days=days,
        events=timeline.events,
        stops=stops,
        budget=budget,
        day_budgets=day_budgets,
        cost_breakdown=cost_breakdown(day_budgets, settings.num_travelers),
        sensitivity=compute_sensitivity(day_budgets, settings),
        feasibility=feasibility,
        pacing_suggestions=pacing,
        driver_rotation=rotation,
        totals=totals,
        geometry=geometry,
        incomplete_route=bool(excluded),
        excluded_segment_indices=excluded,
    )
