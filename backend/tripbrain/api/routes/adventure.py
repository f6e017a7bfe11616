# backend/tripbrain/api/routes/adventure.py

from fastapi import APIRouter, HTTPException

from ...schemas.adventure import AdventureBudgetRequest, AdventureConfig, AdventureResult
from ...schemas.budget import TripBudget
from ...services.adventure import build_adventure_budget, find_adventures

router = APIRouter()


@router.post("/search", response_model=AdventureResult)
async def search(config: AdventureConfig) -> AdventureResult:
    """
    Destinations reachable from the origin on this budget and number of days.
    """
    if config.days < 1:
        raise HTTPException(status_code=422, detail="Trip must be at least one day.")
    try:
        return find_adventures(config)
    except (FileNotFoundError, ValueError) as e:
        raise HTTPException(status_code=500, detail=f"Destination catalogue error: {e}")


@router.post("/budget", response_model=TripBudget)
async def budget(req: AdventureBudgetRequest) -> TripBudget:
    return build_adventure_budget(
        req.total_budget,
        req.distance_km,
        req.preferences,
        fuel_cost_per_km=req.fuel_cost_per_km,
        is_round_trip=req.is_round_trip,
    )
