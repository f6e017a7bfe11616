# backend/tripbrain/api/routes/trip.py

from __future__ import annotations

from typing import List

from fastapi import APIRouter, HTTPException

from ...schemas.budget import BudgetProfile, TripBudget
from ...schemas.feasibility import RefinementComparison
from ...schemas.plan import (
    BudgetCategoryRequest,
    BudgetProfileRequest,
    BudgetTotalRequest,
    PlanRequest,
    RefineRequest,
    RouteRequest,
    TripPlan,
)
from ...services.budget import (
    UnknownBudgetProfile,
    apply_profile,
    estimate_budget,
    list_profiles,
    update_category,
    update_total,
)
from ...services.directions import route_with_fallback
from ...services.feasibility import compare_refinements
from ...services.planner import plan_trip

router = APIRouter()


# ---------------------------------------------------------------------
# Itinerary
# ---------------------------------------------------------------------

@router.post("/plan", response_model=TripPlan)
async def plan(req: PlanRequest) -> TripPlan:
    """
    Plan an itinerary from legs the caller already routed.
    """
    return plan_trip(
        req.segments,
        req.vehicle,
        req.settings,
        budget=req.budget,
        geometry=req.geometry,
    )


@router.post("/route", response_model=TripPlan)
async def route(req: RouteRequest) -> TripPlan:
    """
    Route the stops (Mapbox, or a straight-line estimate when unavailable)
    and plan the itinerary.
    """
    if len(req.locations) < 2:
        raise HTTPException(status_code=422, detail="At least two locations are required.")

    result = await route_with_fallback(req.locations)
    return plan_trip(
        result.segments,
        req.vehicle,
        req.settings,
        budget=req.budget,
        geometry=result.geometry,
    )


# ---------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------

@router.post("/budget/total", response_model=TripBudget)
async def budget_total(req: BudgetTotalRequest) -> TripBudget:
    return update_total(req.budget, req.new_total)


@router.post("/budget/category", response_model=TripBudget)
async def budget_category(req: BudgetCategoryRequest) -> TripBudget:
    return update_category(req.budget, req.category, req.value)


@router.post("/budget/profile", response_model=TripBudget)
async def budget_profile(req: BudgetProfileRequest) -> TripBudget:
    try:
        return apply_profile(req.budget, req.profile)
    except UnknownBudgetProfile as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/budget/profiles", response_model=List[BudgetProfile])
async def budget_profiles() -> List[BudgetProfile]:
    return list_profiles()


@router.post("/budget/estimate", response_model=TripBudget)
async def budget_estimate(req: PlanRequest) -> TripBudget:
    """
    Suggested budget for the planned trip: fuel, nights and meals.
    """
    result = plan_trip(req.segments, req.vehicle, req.settings, budget=req.budget)
    return estimate_budget(result.days, result.segments, req.settings)


# ---------------------------------------------------------------------
# Refinement
# ---------------------------------------------------------------------

@router.post("/refine", response_model=RefinementComparison)
async def refine(req: RefineRequest) -> RefinementComparison:
    """
    Re-plan with changed settings and report what happened to the verdict.
    """
    base = req.plan
    before = plan_trip(base.segments, base.vehicle, base.settings, budget=base.budget)
    after = plan_trip(base.segments, base.vehicle, req.settings, budget=base.budget)
    return compare_refinements(before.feasibility, after.feasibility, req.change)
