# backend/tripbrain/services/stop_planner.py

from __future__ import annotations

import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel

from ..schemas.itinerary import (
    DriverAssignment,
    DriverRotation,
    DriverStats,
    OvernightStop,
    StopPriority,
    StopType,
    SuggestedStop,
    TripDay,
)
from ..schemas.route import Location, RouteSegment, Vehicle
from ..schemas.settings import StopFrequency, TripSettings

logger = logging.getLogger(__name__)


class StopPolicy(BaseModel):
    fuel_trigger: float  # fraction of tank left when we want to refuel
    break_cadence_minutes: float


STOP_POLICIES: Dict[StopFrequency, StopPolicy] = {
    StopFrequency.CONSERVATIVE: StopPolicy(fuel_trigger=0.30, break_cadence_minutes=90),
    StopFrequency.BALANCED: StopPolicy(fuel_trigger=0.25, break_cadence_minutes=120),
    StopFrequency.AGGRESSIVE: StopPolicy(fuel_trigger=0.20, break_cadence_minutes=150),
}

MEAL_INTERVAL_MINUTES = 240.0

STOP_DURATIONS = {
    StopType.FUEL: 15.0,
    StopType.BREAK: 15.0,
    StopType.MEAL: 45.0,
    StopType.QUICK_MEAL: 20.0,
    StopType.OVERNIGHT: 0.0,
    StopType.DRIVE: 0.0,
}

QUICK_MEAL_COST_FACTOR = 0.6

# Anything closer than this to a leg end is handled at the leg boundary.
_EPS_MINUTES = 1e-6


def policy_for(freq: StopFrequency) -> StopPolicy:
    return STOP_POLICIES[freq]


def rooms_needed(num_travelers: int) -> int:
    return max(1, math.ceil(max(1, num_travelers) / 2))


def overnight_stop(day_number: int, location: Location, settings: TripSettings) -> OvernightStop:
    """
    Synthesize the night's lodging at the end of a driving day.

    Rate and accommodation come from the day override when one exists.
    """
    override = settings.override_for(day_number)
    rate = settings.hotel_price_per_night
    accommodation = settings.accommodation_type
    if override is not None:
        if override.hotel_price_per_night is not None:
            rate = override.hotel_price_per_night
        if override.accommodation_type is not None:
            accommodation = override.accommodation_type

    rooms = rooms_needed(settings.num_travelers)
    return OvernightStop(
        location=location,
        accommodation_type=accommodation,
        cost_per_night=rate,
        rooms_needed=rooms,
        total_cost=round(rate * rooms, 2),
    )


def _meal_cost(stop_type: StopType, settings: TripSettings) -> float:
    per_meal = settings.meal_price_per_day / 3.0 * max(1, settings.num_travelers)
    if stop_type == StopType.QUICK_MEAL:
        per_meal *= QUICK_MEAL_COST_FACTOR
    return round(per_meal, 2)


class _PlannerState:
    """Running counters while walking the legs."""

    def __init__(self) -> None:
        self.fuel_used = 0.0  # litres since last fill
        self.since_stop = 0.0  # driving minutes since any stop
        self.day_drive = 0.0  # driving minutes today
        self.meals_today = 0

    def next_meal_at(self) -> float:
        return MEAL_INTERVAL_MINUTES * (self.meals_today + 1)

    def start_day(self) -> None:
        self.since_stop = 0.0
        self.day_drive = 0.0
        self.meals_today = 0


def plan_stops(
    segments: Sequence[RouteSegment],
    days: Sequence[TripDay],
    vehicle: Vehicle,
    settings: TripSettings,
) -> List[SuggestedStop]:
    """
    Decide where fuel, break, meal and overnight stops go.

    Stops are placed at the end of the previous leg when the next leg would
    cross a threshold, and inside a leg when the leg alone is too long.
    Dismissed stop ids are dropped from the result.
    """
    policy = policy_for(settings.stop_frequency)
    l_per_km = vehicle.litres_per_100km() / 100.0
    usable = vehicle.tank_litres() * (1.0 - policy.fuel_trigger)
    cadence = policy.break_cadence_minutes

    stops: List[SuggestedStop] = []
    state = _PlannerState()

    def add(
        stop_type: StopType,
        after: int,
        day_number: int,
        reason: str,
        en_route: Optional[float] = None,
        seq: int = 0,
    ) -> None:
        if stop_type == StopType.FUEL:
            cost = round(state.fuel_used * settings.gas_price, 2)
            priority = StopPriority.REQUIRED
        elif stop_type in (StopType.MEAL, StopType.QUICK_MEAL):
            cost = _meal_cost(stop_type, settings)
            priority = StopPriority.OPTIONAL
        elif stop_type == StopType.BREAK:
            cost = 0.0
            priority = StopPriority.OPTIONAL
        else:
            raise ValueError(f"Unexpected stop type: {stop_type}")

        sid = f"{stop_type.value}-{after}"
        if en_route is not None:
            sid = f"{sid}-enroute-{seq}"
        stops.append(SuggestedStop(
            id=sid,
            type=stop_type,
            after_segment_index=after,
            en_route_minutes=round(en_route, 1) if en_route is not None else None,
            duration_minutes=STOP_DURATIONS[stop_type],
            priority=priority,
            estimated_cost=cost,
            reason=reason,
            day_number=day_number,
            location_name=None if en_route is not None else segments[after].to_location.name,
        ))

    def meal_type() -> StopType:
        return StopType.MEAL if state.meals_today == 0 else StopType.QUICK_MEAL

    for day in days:
        state.start_day()

        for pos, i in enumerate(day.segment_indices):
            seg = segments[i]
            duration = max(0.0, seg.duration_minutes)
            leg_fuel = max(0.0, seg.distance_km) * l_per_km

            # ---- Stops at the end of the previous leg ----
            if i > 0:
                fuelled = False
                if state.fuel_used > 0 and state.fuel_used + leg_fuel > usable:
                    # At a day start the fill-up closes out the previous evening.
                    fuel_day = day.day_number if pos > 0 else max(1, day.day_number - 1)
                    add(StopType.FUEL, i - 1, fuel_day,
                        f"Top up before the next {seg.distance_km:.0f} km.")
                    state.fuel_used = 0.0
                    state.since_stop = 0.0
                    fuelled = True

                if pos > 0:
                    meal_due = (
                        state.day_drive + duration > state.next_meal_at()
                        and state.day_drive >= state.next_meal_at() - MEAL_INTERVAL_MINUTES / 2
                    )
                    if meal_due:
                        kind = meal_type()
                        add(kind, i - 1, day.day_number,
                            f"{state.day_drive / 60:.1f}h on the road today, time to eat.")
                        state.meals_today += 1
                        state.since_stop = 0.0
                    elif (
                        not fuelled
                        and state.since_stop > 0
                        and state.since_stop + duration > cadence
                    ):
                        add(StopType.BREAK, i - 1, day.day_number,
                            f"Stretch after {state.since_stop / 60:.1f}h of driving.")
                        state.since_stop = 0.0

            # ---- Stops inside this leg ----
            if duration > 0:
                fuel_per_min = leg_fuel / duration
                driven = 0.0
                seq = 0
                while True:
                    t_fuel = (
                        (usable - state.fuel_used) / fuel_per_min if fuel_per_min > 0 else math.inf
                    )
                    t_break = cadence - state.since_stop
                    t_meal = state.next_meal_at() - state.day_drive
                    t = max(min(t_fuel, t_break, t_meal), 1.0)
                    if driven + t >= duration - _EPS_MINUTES:
                        break

                    driven += t
                    state.fuel_used += fuel_per_min * t
                    state.day_drive += t
                    state.since_stop += t

                    if t_fuel <= t + _EPS_MINUTES:
                        add(StopType.FUEL, i, day.day_number,
                            "Leg is longer than a safe tank, refuel on the way.",
                            en_route=driven, seq=seq)
                        seq += 1
                        state.fuel_used = 0.0
                    if t_meal <= t + _EPS_MINUTES:
                        add(meal_type(), i, day.day_number,
                            "Meal stop on a long stretch.",
                            en_route=driven, seq=seq)
                        seq += 1
                        state.meals_today += 1
                    elif t_fuel > t + _EPS_MINUTES:
                        add(StopType.BREAK, i, day.day_number,
                            "Long stretch without a stop, take a break.",
                            en_route=driven, seq=seq)
                        seq += 1
                    state.since_stop = 0.0

                remaining = duration - driven
                state.fuel_used += fuel_per_min * remaining
                state.day_drive += remaining
                state.since_stop += remaining

    dismissed = set(settings.dismissed_stop_ids)
    kept = [s for s in stops if s.id not in dismissed]
    if len(kept) != len(stops):
        logger.debug("Dropped %d dismissed stops", len(stops) - len(kept))
    return kept


def fuel_stop_indices(stops: Iterable[SuggestedStop]) -> List[int]:
    """Leg indices after which a fuel stop happens (en-route stops included)."""
    return sorted({s.after_segment_index for s in stops if s.type == StopType.FUEL and s.accepted})


def assign_drivers(
    segments: Sequence[RouteSegment],
    num_drivers: int,
    fuel_stops: Iterable[int],
) -> DriverRotation:
    """
    Rotate the wheel at fuel stops.

    Driver 1 takes the first leg; whenever a fuel stop happens after a leg the
    next driver takes over. A single driver drives everything.
    """
    n = max(1, num_drivers)
    swaps = set(fuel_stops)
    stats = [DriverStats(driver_number=d + 1) for d in range(n)]
    assignments: List[DriverAssignment] = []

    current = 0
    for i, seg in enumerate(segments):
        assignments.append(DriverAssignment(segment_index=i, driver_number=current + 1))
        s = stats[current]
        s.segments += 1
        s.distance_km = round(s.distance_km + seg.distance_km, 1)
        s.drive_minutes = round(s.drive_minutes + seg.duration_minutes, 1)
        if i in swaps and n > 1:
            current = (current + 1) % n

    return DriverRotation(num_drivers=n, assignments=assignments, drivers=stats)
