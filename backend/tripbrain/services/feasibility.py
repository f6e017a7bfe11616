# backend/tripbrain/services/feasibility.py

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..config import FeasibilityPolicy, load_feasibility_policy
from ..schemas.budget import BudgetMode, DayBudget, TripBudget
from ..schemas.feasibility import (
    FeasibilityResult,
    FeasibilityStatus,
    FeasibilitySummary,
    FeasibilityWarning,
    RefinementComparison,
    WarningCategory,
)
from ..schemas.itinerary import TripDay
from ..schemas.route import RouteSegment, Vehicle, WarningSeverity
from ..schemas.settings import DayType, TripSettings

logger = logging.getLogger(__name__)


def _fmt_duration(minutes: float) -> str:
    h = int(minutes // 60)
    m = int(round(minutes - h * 60))
    if m == 60:
        h, m = h + 1, 0
    return f"{h}h {m}m" if m else f"{h}h"


def _total_used(day_budgets: Sequence[DayBudget]) -> float:
    return sum(d.day_total for d in day_budgets)


# ---------------------------------------------------------------------
# Analysis passes
# ---------------------------------------------------------------------

def analyze_segment_warnings(
    segments: Sequence[RouteSegment], settings: TripSettings
) -> List[FeasibilityWarning]:
    """Critical leg warnings the user has not marked as dealt with."""
    resolved = set(settings.resolved_warning_ids)
    out: List[FeasibilityWarning] = []
    for i, seg in enumerate(segments):
        for w in seg.warnings:
            if w.severity != WarningSeverity.CRITICAL or w.id in resolved:
                continue
            out.append(FeasibilityWarning(
                category=WarningCategory.ROUTE,
                severity=WarningSeverity.CRITICAL,
                message=f"{seg.from_location.name} → {seg.to_location.name}: {w.message}",
                detail=f"Warning {w.id}",
                suggestion="Add an overnight stop on this leg, or mark the warning as resolved.",
            ))
    return out


def analyze_budget(
    day_budgets: Sequence[DayBudget], budget: TripBudget, policy: FeasibilityPolicy
) -> List[FeasibilityWarning]:
    out: List[FeasibilityWarning] = []
    if budget.mode != BudgetMode.PLAN_TO_BUDGET or budget.total <= 0:
        return out

    used = _total_used(day_budgets)
    utilization = used / budget.total

    if utilization > policy.budget_over_ratio:
        out.append(FeasibilityWarning(
            category=WarningCategory.BUDGET,
            severity=WarningSeverity.CRITICAL,
            message=f"Over budget by ${round(used - budget.total)}",
            detail=f"Total estimated cost: ${round(used)}. Budget: ${budget.total}.",
            suggestion="Reduce hotel costs, cut a stop, or increase the budget.",
        ))
    elif utilization >= policy.budget_tight_ratio:
        out.append(FeasibilityWarning(
            category=WarningCategory.BUDGET,
            severity=WarningSeverity.WARNING,
            message=f"Budget is tight, ${round(budget.total - used)} remaining",
            detail=f"Using {round(utilization * 100)}% of your ${budget.total} budget.",
            suggestion="Leave some buffer for unexpected expenses.",
        ))

    for label, cap, spent in (
        ("Gas", budget.gas, sum(d.gas_used for d in day_budgets)),
        ("Hotel", budget.hotel, sum(d.hotel_cost for d in day_budgets)),
        ("Food", budget.food, sum(d.food_estimate for d in day_budgets)),
    ):
        if cap > 0 and spent > cap:
            out.append(FeasibilityWarning(
                category=WarningCategory.BUDGET,
                severity=WarningSeverity.WARNING,
                message=f"{label} budget exceeded by ${round(spent - cap)}",
                detail=f"{label} estimate: ${round(spent)}. {label} budget: ${cap}.",
            ))
    return out


def _driver_hint(num_drivers: int, max_drive_hours: float) -> str:
    if num_drivers < 2 or max_drive_hours <= 10:
        return ""
    comfort = 12 if num_drivers >= 4 else 11 if num_drivers == 3 else 10
    if max_drive_hours <= comfort:
        return ""
    per_shift = round(comfort / num_drivers, 1)
    return (
        f" With {num_drivers} rotating drivers, try {comfort}h max: "
        f"shifts drop to about {per_shift}h each."
    )


def analyze_drive_time(
    days: Sequence[TripDay], settings: TripSettings, policy: FeasibilityPolicy
) -> List[FeasibilityWarning]:
    out: List[FeasibilityWarning] = []
    max_minutes = settings.max_drive_hours * 60
    tight_minutes = max_minutes * policy.drive_tight_ratio
    hard_limit = max_minutes + policy.drive_grace_hours * 60

    day1 = next((d for d in days if d.day_number == 1 and d.totals.drive_time_minutes > 0), None)
    if day1 is not None and not settings.use_arrival_time:
        dep = settings.departure_time.hour + settings.departure_time.minute / 60.0
        drive_h = day1.totals.drive_time_minutes / 60.0
        eta = dep + drive_h
        if eta > settings.target_arrival_hour + policy.day1_arrival_buffer_hours:
            suggested = max(5, round(settings.target_arrival_hour - drive_h))
            out.append(FeasibilityWarning(
                category=WarningCategory.DRIVE_TIME,
                severity=WarningSeverity.INFO,
                message=(
                    f"Day 1: leaving at {settings.departure_time.strftime('%H:%M')} means "
                    f"arriving around {int(eta) % 24}:{int(round((eta % 1) * 60)) % 60:02d}"
                    + (", next day" if eta >= 24 else "")
                ),
                day_number=1,
                suggestion=(
                    f"Depart by {suggested}:00 to arrive near your "
                    f"{settings.target_arrival_hour}:00 target."
                    + _driver_hint(settings.num_drivers, settings.max_drive_hours)
                ),
            ))

    for day in days:
        minutes = day.totals.drive_time_minutes
        if minutes > hard_limit:
            over = round((minutes - max_minutes) / 60, 1)
            # beast mode drives through on purpose; the driver check rates the risk
            out.append(FeasibilityWarning(
                category=WarningCategory.DRIVE_TIME,
                severity=WarningSeverity.INFO if settings.beast_mode else WarningSeverity.CRITICAL,
                message=f"Day {day.day_number}: drive time exceeds the limit by {over}h",
                detail=f"{_fmt_duration(minutes)} driving vs {settings.max_drive_hours:g}h limit.",
                day_number=day.day_number,
                suggestion="Add an overnight stop to split this day.",
            ))
        elif minutes >= tight_minutes:
            out.append(FeasibilityWarning(
                category=WarningCategory.DRIVE_TIME,
                severity=WarningSeverity.WARNING,
                message=f"Day {day.day_number}: drive time is close to the daily limit",
                detail=f"{_fmt_duration(minutes)} driving vs {settings.max_drive_hours:g}h limit.",
                day_number=day.day_number,
                suggestion="Make sure rest stops are planned."
                + _driver_hint(settings.num_drivers, settings.max_drive_hours),
            ))
    return out


def analyze_driver_fatigue(
    days: Sequence[TripDay], settings: TripSettings, policy: FeasibilityPolicy
) -> List[FeasibilityWarning]:
    out: List[FeasibilityWarning] = []
    drivers = settings.num_drivers
    if drivers < 1:
        return out

    if drivers == 1:
        total_hours = sum(d.totals.drive_time_minutes for d in days) / 60
        for day in days:
            if day.totals.drive_time_minutes > settings.max_drive_hours * 60:
                out.append(FeasibilityWarning(
                    category=WarningCategory.DRIVER,
                    severity=WarningSeverity.WARNING,
                    message=f"Day {day.day_number}: {_fmt_duration(day.totals.drive_time_minutes)} with 1 driver",
                    detail=(
                        "Long drives with a single driver increase fatigue risk. "
                        f"Recommended: max {settings.max_drive_hours:g} hours per driver per day."
                    ),
                    day_number=day.day_number,
                    suggestion=(
                        "Add a second driver to share the load."
                        if total_hours > 16 else "Plan extra rest stops to break up the drive."
                    ),
                ))

    if drivers >= policy.min_drivers_for_rotation:
        for day in days:
            minutes = day.totals.drive_time_minutes
            if minutes < policy.min_breakdown_minutes:
                continue
            out.append(FeasibilityWarning(
                category=WarningCategory.DRIVER,
                severity=WarningSeverity.INFO,
                message=(
                    f"Day {day.day_number}: each driver takes about "
                    f"{_fmt_duration(round(minutes / drivers))} ({drivers} rotating)"
                ),
                day_number=day.day_number,
            ))

        if not settings.beast_mode and settings.max_drive_hours <= 8:
            suggested = 12 if drivers == 2 else 16
            out.append(FeasibilityWarning(
                category=WarningCategory.DRIVER,
                severity=WarningSeverity.INFO,
                message=f"{drivers} drivers: you could safely drive up to {suggested}h/day",
                suggestion=f"Raise max drive hours to {suggested}h to cut driving days.",
            ))

    if settings.beast_mode:
        if drivers <= 1:
            severity = WarningSeverity.CRITICAL
            message = "Beast mode with 1 driver: extreme fatigue risk"
            suggestion = "Add at least one more driver, or split the trip with overnight stops."
        elif drivers == 2:
            severity = WarningSeverity.WARNING
            message = "Beast mode: 2-driver relay, doable with rotation"
            suggestion = "Swap drivers at fuel stops to stay sharp."
        elif drivers == 3:
            severity = WarningSeverity.INFO
            message = "Beast mode: 3 drivers, good rotation coverage"
            suggestion = "Coordinate handoffs so each driver gets proper rest."
        else:
            severity = WarningSeverity.INFO
            message = f"Beast mode: {drivers} drivers, buddy system rotation"
            suggestion = "Keep one co-pilot awake with the driver at all times."
        out.append(FeasibilityWarning(
            category=WarningCategory.DRIVER,
            severity=severity,
            message=message,
            suggestion=suggestion,
        ))
    return out


def analyze_timing(
    days: Sequence[TripDay], policy: FeasibilityPolicy
) -> List[FeasibilityWarning]:
    out: List[FeasibilityWarning] = []
    for day in days:
        arrival = day.totals.arrival_time
        departure = day.totals.departure_time
        past_midnight = (
            arrival is not None and departure is not None and arrival.date() > departure.date()
        )
        if arrival is not None and (past_midnight or arrival.hour >= policy.late_arrival_hour):
            out.append(FeasibilityWarning(
                category=WarningCategory.TIMING,
                severity=WarningSeverity.WARNING,
                message=(
                    f"Day {day.day_number}: late arrival at {arrival.strftime('%H:%M')}"
                    + (" (next day)" if past_midnight else "")
                ),
                detail="Arriving late makes check-in harder and cuts into rest.",
                day_number=day.day_number,
                suggestion="Depart earlier or split the drive.",
            ))

        if departure is None or day.day_type == DayType.FREE:
            continue
        if departure.hour < policy.early_departure_hour and (departure.hour or departure.minute):
            out.append(FeasibilityWarning(
                category=WarningCategory.TIMING,
                severity=WarningSeverity.INFO,
                message=f"Day {day.day_number}: early departure at {departure.strftime('%H:%M')}",
                detail="Make sure the night before allows enough rest.",
                day_number=day.day_number,
            ))
    return out


def analyze_per_person(
    day_budgets: Sequence[DayBudget], settings: TripSettings, budget: TripBudget
) -> List[FeasibilityWarning]:
    out: List[FeasibilityWarning] = []
    travelers = settings.num_travelers
    if travelers <= 0 or budget.mode != BudgetMode.PLAN_TO_BUDGET or budget.total <= 0:
        return out

    per_person = round(_total_used(day_budgets) / travelers)
    per_person_budget = round(budget.total / travelers)
    if per_person > per_person_budget:
        out.append(FeasibilityWarning(
            category=WarningCategory.PASSENGER,
            severity=WarningSeverity.WARNING,
            message=f"Per-person cost (${per_person}) exceeds per-person budget (${per_person_budget})",
        ))
    return out


def _date_window_suggestion(settings: TripSettings, extra_days: int) -> str:
    parts: List[str] = []
    if settings.num_drivers >= 2 and settings.max_drive_hours < 12:
        parts.append(f"Increase max drive hours (with {settings.num_drivers} drivers, up to 12h is safe)")
    elif settings.num_drivers == 1 and settings.max_drive_hours < 8:
        parts.append("Increase max drive hours to 8h")
    if extra_days > 0:
        plural = "s" if extra_days > 1 else ""
        parts.append(f"Extend your return date by {extra_days}+ day{plural}")
    parts.append("Choose a closer destination")
    return ", or ".join(parts)


def analyze_date_window(
    days: Sequence[TripDay], settings: TripSettings
) -> List[FeasibilityWarning]:
    out: List[FeasibilityWarning] = []
    if settings.return_date is None:
        return out

    calendar_days = max(1, (settings.return_date - settings.departure_date).days + 1)
    transit_days = sum(1 for d in days if d.segment_indices and d.day_type != DayType.FREE)
    free_days = calendar_days - transit_days

    if free_days < 0:
        extra = -free_days
        out.append(FeasibilityWarning(
            category=WarningCategory.DATES,
            severity=WarningSeverity.CRITICAL,
            message=f"Trip doesn't fit: need {extra} more day{'s' if extra > 1 else ''}",
            detail=f"{transit_days} driving days but only {calendar_days} calendar days.",
            suggestion=_date_window_suggestion(settings, extra),
        ))
    elif free_days == 0:
        out.append(FeasibilityWarning(
            category=WarningCategory.DATES,
            severity=WarningSeverity.WARNING,
            message="No free days at the destination, the whole trip is driving",
            suggestion=_date_window_suggestion(settings, 1),
        ))
    elif free_days == 1 and calendar_days > 3:
        out.append(FeasibilityWarning(
            category=WarningCategory.DATES,
            severity=WarningSeverity.INFO,
            message=f"Only 1 free day at the destination out of {calendar_days}",
        ))
    return out


def analyze_fuel_range(
    segments: Sequence[RouteSegment], vehicle: Optional[Vehicle]
) -> List[FeasibilityWarning]:
    out: List[FeasibilityWarning] = []
    if vehicle is None:
        return out
    range_km = vehicle.range_km()
    if range_km <= 0:
        return out
    for seg in segments:
        if seg.distance_km > range_km:
            out.append(FeasibilityWarning(
                category=WarningCategory.FUEL,
                severity=WarningSeverity.INFO,
                message=(
                    f"{seg.from_location.name} → {seg.to_location.name} is "
                    f"{seg.distance_km:.0f} km, longer than one tank ({range_km:.0f} km)"
                ),
                suggestion="Refuel on the way; the plan includes en-route fuel stops.",
            ))
    return out


# ---------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------

def derive_status(
    warnings: Sequence[FeasibilityWarning],
    utilization: float,
    policy: FeasibilityPolicy,
) -> FeasibilityStatus:
    if any(w.severity == WarningSeverity.CRITICAL for w in warnings) or utilization > policy.budget_over_ratio:
        return FeasibilityStatus.OVER
    if any(w.severity == WarningSeverity.WARNING for w in warnings) or utilization >= policy.budget_tight_ratio:
        return FeasibilityStatus.TIGHT
    return FeasibilityStatus.ON_TRACK


STATUS_RANK = {
    FeasibilityStatus.NO_DATA: 0,
    FeasibilityStatus.ON_TRACK: 0,
    FeasibilityStatus.TIGHT: 1,
    FeasibilityStatus.OVER: 2,
}


def evaluate_feasibility(
    days: Sequence[TripDay],
    day_budgets: Sequence[DayBudget],
    segments: Sequence[RouteSegment],
    settings: TripSettings,
    budget: TripBudget,
    policy: Optional[FeasibilityPolicy] = None,
    vehicle: Optional[Vehicle] = None,
) -> FeasibilityResult:
    """
    One health verdict for the plan.

    No days means nothing to judge: status no_data with an empty summary.
    """
    policy = policy or load_feasibility_policy()
    if not days:
        return FeasibilityResult(status=FeasibilityStatus.NO_DATA, warnings=[], summary=FeasibilitySummary())

    warnings: List[FeasibilityWarning] = []
    warnings += analyze_segment_warnings(segments, settings)
    warnings += analyze_budget(day_budgets, budget, policy)
    warnings += analyze_drive_time(days, settings, policy)
    warnings += analyze_driver_fatigue(days, settings, policy)
    warnings += analyze_timing(days, policy)
    warnings += analyze_per_person(day_budgets, settings, budget)
    warnings += analyze_date_window(days, settings)
    warnings += analyze_fuel_range(segments, vehicle)

    used = _total_used(day_budgets)
    available = float(budget.total) if budget.mode == BudgetMode.PLAN_TO_BUDGET else 0.0
    utilization = used / available if available > 0 else 0.0

    longest = max(days, key=lambda d: d.totals.drive_time_minutes)
    summary = FeasibilitySummary(
        total_budget_used=round(used, 2),
        total_budget_available=available,
        budget_utilization=round(utilization, 4),
        longest_drive_day_minutes=longest.totals.drive_time_minutes,
        longest_drive_day_number=longest.day_number,
        max_drive_limit_minutes=settings.max_drive_hours * 60,
        per_person_cost=round(used / settings.num_travelers) if settings.num_travelers > 0 else None,
        total_days=len(days),
    )

    status = derive_status(warnings, utilization, policy)
    logger.debug("Feasibility %s with %d warnings", status.value, len(warnings))
    return FeasibilityResult(status=status, warnings=warnings, summary=summary)


def compare_refinements(
    before: FeasibilityResult,
    after: FeasibilityResult,
    change: str,
) -> RefinementComparison:
    """What a settings change did to the verdict."""
    before_msgs = {w.message for w in before.warnings}
    after_msgs = {w.message for w in after.warnings}
    return RefinementComparison(
        change=change,
        before_status=before.status,
        after_status=after.status,
        improved=STATUS_RANK[after.status] < STATUS_RANK[before.status],
        worsened=STATUS_RANK[after.status] > STATUS_RANK[before.status],
        resolved_warnings=sorted(before_msgs - after_msgs),
        new_warnings=sorted(after_msgs - before_msgs),
    )
