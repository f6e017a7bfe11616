# backend/tripbrain/api/routes/discovery.py

from __future__ import annotations

from typing import List

import httpx
from fastapi import APIRouter, Depends, HTTPException

from ...schemas.discovery import DiscoveryResult, POISuggestion
from ...schemas.plan import (
    ActionRequest,
    CorridorRequest,
    DiscoverRequest,
    FilterRequest,
    RankRequest,
)
from ...services.corridor_search import CorridorSearchError, search_corridor
from ...services.discovery import (
    InvalidActionTransition,
    add_all_no_brainers,
    apply_action,
    discover_pois,
    filter_by_time_budget,
    rank_corridor_pois,
    rank_destination_pois,
    summarize,
)
from ...services.generations import GenerationGate

router = APIRouter()

_corridor_gate = GenerationGate()


def get_corridor_gate() -> GenerationGate:
    return _corridor_gate


@router.post("/discover", response_model=DiscoveryResult)
async def discover(req: DiscoverRequest) -> DiscoveryResult:
    """
    Tier and route-order the suggestions, then cut them to the detour budget.
    """
    pois = discover_pois(req.pois, total_segments=req.total_segments)
    return summarize(filter_by_time_budget(pois, req.budget_minutes))


@router.post("/filter", response_model=List[POISuggestion])
async def filter_pois(req: FilterRequest) -> List[POISuggestion]:
    return filter_by_time_budget(req.pois, req.budget_minutes)


@router.post("/add-no-brainers", response_model=List[POISuggestion])
async def add_no_brainers(req: FilterRequest) -> List[POISuggestion]:
    return add_all_no_brainers(req.pois, req.budget_minutes)


@router.post("/action", response_model=POISuggestion)
async def action(req: ActionRequest) -> POISuggestion:
    try:
        return apply_action(req.poi, req.state)
    except InvalidActionTransition as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/rank", response_model=List[POISuggestion])
async def rank(req: RankRequest) -> List[POISuggestion]:
    if req.destination:
        return rank_destination_pois(req.candidates, req.preferences, top_n=req.top_n)
    return rank_corridor_pois(
        req.candidates, req.preferences, segments=req.segments, top_n=req.top_n
    )


@router.post("/corridor")
async def corridor(req: CorridorRequest, gate: GenerationGate = Depends(get_corridor_gate)):
    """
    Search OpenStreetMap around every leg and rank what comes back.

    Legs whose query failed are listed in `failed_segments`; the rest still
    get suggestions. A search overtaken by a newer one with the same
    `query_key` answers 409 instead of returning stale results.
    """
    try:
        batch = await gate.submit(
            lambda: search_corridor(req.segments, radius_km=req.radius_km),
            key=req.query_key,
        )
    except (CorridorSearchError, httpx.HTTPError) as e:
        raise HTTPException(status_code=502, detail=f"Corridor search error: {e}")
    if batch is None:
        raise HTTPException(status_code=409, detail="Superseded by a newer corridor search.")

    ranked = rank_corridor_pois(
        batch.candidates, req.preferences, segments=req.segments, top_n=req.top_n
    )
    return {
        "pois": [p.model_dump() for p in discover_pois(ranked)],
        "partial_results": batch.partial_results,
        "failed_segments": batch.failed_segments,
    }
