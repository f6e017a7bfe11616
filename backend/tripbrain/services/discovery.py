# backend/tripbrain/services/discovery.py

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import quote

from ..config import DiscoveryPolicy, load_discovery_policy
from ..schemas.discovery import (
    TIER_PRIORITY,
    ActionState,
    Bucket,
    CorridorResult,
    DiscoveryBatch,
    DiscoveryResult,
    POICandidate,
    POISuggestion,
    Tier,
    TierCounts,
)
from ..schemas.itinerary import StopType, SuggestedStop
from ..schemas.route import RouteSegment
from .geo import haversine_km

logger = logging.getLogger(__name__)


class InvalidActionTransition(ValueError):
    """A POI may only leave `pending`, and only once."""


# ---------------------------------------------------------------------
# Ranking
# ---------------------------------------------------------------------

RANKING_WEIGHTS = {
    "category": 0.35,
    "popularity": 0.25,
    "detour": 0.25,
    "timing": 0.15,
}

MAX_CORRIDOR_KM = 20.0
MODERATE_CORRIDOR_KM = 10.0
QUICK_CORRIDOR_KM = 5.0
MAX_DETOUR_MINUTES = 30
DETOUR_SPEED_KMH = 60.0
BREAK_WINDOW_MINUTES = 15
MAX_PER_CATEGORY = 3

PREFERENCE_CATEGORIES: Dict[str, List[str]] = {
    "scenic": ["viewpoint", "park", "waterfall", "landmark"],
    "family": ["attraction", "park", "entertainment", "landmark"],
    "budget": ["viewpoint", "park", "cafe", "waterfall"],
    "foodie": ["restaurant", "cafe"],
}

# Always-interesting categories get a nudge, utilitarian ones a penalty.
CATEGORY_ADJUSTMENTS: Dict[str, int] = {
    "viewpoint": 10,
    "waterfall": 12,
    "landmark": 10,
    "attraction": 5,
    "museum": 5,
    "cafe": -10,
    "gas": -15,
    "restaurant": -5,
}

# Stop types a category slots into naturally, with the timing bonus it earns.
STOP_CATEGORY_FIT = {
    StopType.MEAL: ({"restaurant", "cafe"}, 30),
    StopType.QUICK_MEAL: ({"restaurant", "cafe"}, 30),
    StopType.BREAK: ({"viewpoint"}, 25),
    StopType.FUEL: ({"gas"}, 20),
    StopType.OVERNIGHT: ({"hotel"}, 20),
}


def estimate_detour_minutes(distance_from_route_km: float) -> int:
    """There and back again at detour speed."""
    return int(round(distance_from_route_km * 2 / DETOUR_SPEED_KMH * 60))


def category_match_score(category: str, preferences: Sequence[str]) -> float:
    if not preferences:
        return 50.0
    score = 30.0
    for pref in preferences:
        if category in PREFERENCE_CATEGORIES.get(pref, []):
            score += 20
    score += CATEGORY_ADJUSTMENTS.get(category, 0)
    return max(0.0, min(score, 100.0))


def detour_cost_score(distance_km: float, detour_minutes: float) -> float:
    score = 100.0
    if distance_km > MAX_CORRIDOR_KM:
        score -= 50
    elif distance_km > MODERATE_CORRIDOR_KM:
        score -= 30
    elif distance_km > QUICK_CORRIDOR_KM:
        score -= 15

    if detour_minutes > MAX_DETOUR_MINUTES:
        score -= 30
    elif detour_minutes > 20:
        score -= 20
    elif detour_minutes > 10:
        score -= 10
    return max(score, 0.0)


def timing_fit_score(
    category: str,
    segment_index: Optional[int],
    stops: Sequence[SuggestedStop],
) -> float:
    if segment_index is None:
        return 50.0
    score = 50.0
    for stop in stops:
        if stop.after_segment_index != segment_index:
            continue
        fit = STOP_CATEGORY_FIT.get(stop.type)
        if fit is not None and category in fit[0]:
            score += fit[1]
            break
    if category in ("viewpoint", "park"):
        score += 10
    return min(score, 100.0)


def nearest_segment_index(lat: float, lng: float, segments: Sequence[RouteSegment]) -> Optional[int]:
    best: Optional[int] = None
    best_d = float("inf")
    for i, seg in enumerate(segments):
        to = seg.to_location
        if not to.is_resolved:
            continue
        d = haversine_km(lat, lng, to.lat, to.lng)
        if d < best_d:
            best, best_d = i, d
    return best


def _diverse_top(pois: List[POISuggestion], top_n: int) -> List[POISuggestion]:
    counts: Dict[str, int] = {}
    picked: List[POISuggestion] = []
    for p in pois:
        if counts.get(p.category, 0) >= MAX_PER_CATEGORY:
            continue
        counts[p.category] = counts.get(p.category, 0) + 1
        picked.append(p)
        if len(picked) >= top_n:
            break
    return picked


def rank_corridor_pois(
    candidates: Sequence[POICandidate],
    preferences: Sequence[str] = (),
    segments: Sequence[RouteSegment] = (),
    stops: Sequence[SuggestedStop] = (),
    top_n: int = 5,
) -> List[POISuggestion]:
    """
    Score along-the-way candidates and keep a category-diverse top N.

    Anything more than MAX_CORRIDOR_KM off the route is dropped.
    """
    ranked: List[POISuggestion] = []
    for c in candidates:
        if c.distance_from_route_km > MAX_CORRIDOR_KM:
            continue
        seg_idx = c.segment_index
        if seg_idx is None and segments:
            seg_idx = nearest_segment_index(c.lat, c.lng, segments)

        detour = estimate_detour_minutes(c.distance_from_route_km)
        score = (
            category_match_score(c.category, preferences) * RANKING_WEIGHTS["category"]
            + c.popularity_score * RANKING_WEIGHTS["popularity"]
            + detour_cost_score(c.distance_from_route_km, detour) * RANKING_WEIGHTS["detour"]
            + timing_fit_score(c.category, seg_idx, stops) * RANKING_WEIGHTS["timing"]
        )
        ranked.append(POISuggestion(
            id=c.id,
            name=c.name,
            category=c.category,
            lat=c.lat,
            lng=c.lng,
            bucket=Bucket.ALONG_WAY,
            distance_from_route_km=round(c.distance_from_route_km, 2),
            detour_time_minutes=detour,
            fits_in_break_window=detour <= BREAK_WINDOW_MINUTES,
            popularity_score=c.popularity_score,
            ranking_score=round(score),
            segment_index=seg_idx,
            tags=c.tags,
        ))

    ranked.sort(key=lambda p: p.ranking_score, reverse=True)
    return _diverse_top(ranked, top_n)


def rank_destination_pois(
    candidates: Sequence[POICandidate],
    preferences: Sequence[str] = (),
    top_n: int = 5,
) -> List[POISuggestion]:
    """Places around the destination: category and popularity only, no detour."""
    ranked = [
        POISuggestion(
            id=c.id,
            name=c.name,
            category=c.category,
            lat=c.lat,
            lng=c.lng,
            bucket=Bucket.DESTINATION,
            distance_from_route_km=0.0,
            detour_time_minutes=0,
            fits_in_break_window=True,
            popularity_score=c.popularity_score,
            ranking_score=round(
                category_match_score(c.category, preferences) * 0.5 + c.popularity_score * 0.5
            ),
            segment_index=c.segment_index,
            tags=c.tags,
        )
        for c in candidates
    ]
    ranked.sort(key=lambda p: p.ranking_score, reverse=True)
    return _diverse_top(ranked, top_n)


# ---------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------

def assign_tier(poi: POISuggestion, policy: Optional[DiscoveryPolicy] = None) -> Tier:
    """
    No-brainer: strong score, short detour, fits a break.
    Worth the detour: decent score or a very short detour.
    Everything else: if time allows.
    """
    policy = policy or load_discovery_policy()
    if (
        poi.ranking_score >= policy.no_brainer_score
        and poi.detour_time_minutes <= policy.no_brainer_max_detour
        and poi.fits_in_break_window
    ):
        return Tier.NO_BRAINER
    if (
        poi.ranking_score >= policy.worth_detour_score
        or poi.detour_time_minutes <= policy.worth_detour_max_detour
    ):
        return Tier.WORTH_DETOUR
    return Tier.IF_TIME


_WIKI_LANG_RE = re.compile(r"^(\w+):(.+)$")


def extract_wiki_url(tags: Optional[dict]) -> Optional[str]:
    """
    Wikipedia link from OSM tags.

    Handles `wikipedia=en:Article`, a full URL in `wikipedia`, and falls back
    to `wikidata=Q123`.
    """
    if not tags:
        return None
    wiki = tags.get("wikipedia")
    if wiki:
        if wiki.startswith("http"):
            return wiki
        m = _WIKI_LANG_RE.match(wiki)
        if m:
            lang, article = m.group(1), m.group(2)
            return f"https://{lang}.wikipedia.org/wiki/{quote(article.replace(' ', '_'))}"
    wikidata = tags.get("wikidata")
    if wikidata:
        return f"https://www.wikidata.org/wiki/{wikidata}"
    return None


def _route_order(p: POISuggestion) -> int:
    return p.segment_index if p.segment_index is not None else 0


def discover_pois(
    pois: Sequence[POISuggestion],
    total_segments: Optional[int] = None,
    policy: Optional[DiscoveryPolicy] = None,
) -> List[POISuggestion]:
    """
    Tier, link and route-order the suggestions.

    Dismissed POIs are dropped. With `total_segments` (round trips) each POI
    also learns its twin leg on the way back.
    """
    policy = policy or load_discovery_policy()
    out: List[POISuggestion] = []
    for p in pois:
        if p.action_state == ActionState.DISMISSED:
            continue
        update = {
            "tier": assign_tier(p, policy),
            "wiki_url": extract_wiki_url(p.tags),
        }
        if total_segments is not None and p.segment_index is not None:
            update["mirror_segment_index"] = total_segments - 1 - p.segment_index
        out.append(p.model_copy(update=update))
    out.sort(key=_route_order)
    return out


def clamp_time_budget(budget_minutes: Optional[float], policy: Optional[DiscoveryPolicy] = None) -> float:
    policy = policy or load_discovery_policy()
    if budget_minutes is None:
        return float(policy.default_time_budget)
    return max(0.0, min(float(budget_minutes), float(policy.max_time_budget)))


def filter_by_time_budget(
    pois: Sequence[POISuggestion],
    budget_minutes: Optional[float] = None,
    policy: Optional[DiscoveryPolicy] = None,
) -> List[POISuggestion]:
    """
    Greedy pick within the detour budget.

    Best tier first, route order within a tier. The first POI that does not
    fit ends the selection, even if something later would. The selection is
    returned in route order.
    """
    policy = policy or load_discovery_policy()
    budget = clamp_time_budget(budget_minutes, policy)

    def priority(p: POISuggestion):
        tier = p.tier or assign_tier(p, policy)
        return (TIER_PRIORITY[tier], _route_order(p))

    picked: List[POISuggestion] = []
    used = 0.0
    for p in sorted(pois, key=priority):
        if used + p.detour_time_minutes > budget:
            break
        used += p.detour_time_minutes
        picked.append(p)

    picked.sort(key=_route_order)
    return picked


def apply_action(poi: POISuggestion, state: ActionState) -> POISuggestion:
    """Move a pending POI to added or dismissed. Anything else raises."""
    if poi.action_state != ActionState.PENDING or state == ActionState.PENDING:
        raise InvalidActionTransition(
            f"POI {poi.id}: cannot go from {poi.action_state.value} to {state.value}"
        )
    return poi.model_copy(update={"action_state": state})


def add_all_no_brainers(
    pois: Sequence[POISuggestion],
    budget_minutes: Optional[float] = None,
    policy: Optional[DiscoveryPolicy] = None,
) -> List[POISuggestion]:
    """
    Mark every pending no-brainer inside the budgeted selection as added.

    Returns the full list with those POIs updated; nothing else changes.
    """
    policy = policy or load_discovery_policy()
    selected = {p.id for p in filter_by_time_budget(pois, budget_minutes, policy)}
    out: List[POISuggestion] = []
    for p in pois:
        tier = p.tier or assign_tier(p, policy)
        if p.id in selected and tier == Tier.NO_BRAINER and p.action_state == ActionState.PENDING:
            p = apply_action(p, ActionState.ADDED)
        out.append(p)
    return out


def tier_counts(pois: Iterable[POISuggestion]) -> TierCounts:
    counts = TierCounts()
    for p in pois:
        if p.tier == Tier.NO_BRAINER:
            counts.no_brainer += 1
        elif p.tier == Tier.WORTH_DETOUR:
            counts.worth_detour += 1
        elif p.tier == Tier.IF_TIME:
            counts.if_time += 1
    return counts


def total_detour_minutes(pois: Iterable[POISuggestion]) -> float:
    return sum(p.detour_time_minutes for p in pois)


def summarize(pois: Sequence[POISuggestion]) -> DiscoveryResult:
    return DiscoveryResult(
        pois=list(pois),
        tier_counts=tier_counts(pois),
        total_detour_minutes=total_detour_minutes(pois),
    )


def merge_corridor_results(results: Sequence[CorridorResult]) -> DiscoveryBatch:
    """
    Union of every corridor query that came back.

    Failed corridors are skipped and flag the batch as partial. Duplicate
    POI ids keep their first occurrence.
    """
    seen = set()
    candidates: List[POICandidate] = []
    failed: List[Optional[int]] = []
    for r in results:
        if r.error is not None:
            failed.append(r.segment_index)
            continue
        for c in r.candidates:
            if c.id in seen:
                continue
            seen.add(c.id)
            candidates.append(c)

    if failed:
        logger.warning("Corridor search incomplete: %d of %d queries failed", len(failed), len(results))
    return DiscoveryBatch(candidates=candidates, partial_results=bool(failed), failed_segments=failed)
