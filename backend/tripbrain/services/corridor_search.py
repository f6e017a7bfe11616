from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import get_overpass_url
from ..schemas.discovery import CorridorResult, DiscoveryBatch, POICandidate
from ..schemas.route import RouteSegment
from .discovery import merge_corridor_results
from .geo import distance_to_segment_km, haversine_km

logger = logging.getLogger(__name__)

# (lat, lng)
Point = Tuple[float, float]


class CorridorSearchError(RuntimeError):
    pass


# (tag key, tag value) -> our category
OSM_CATEGORIES: Dict[Tuple[str, str], str] = {
    ("tourism", "viewpoint"): "viewpoint",
    ("tourism", "attraction"): "attraction",
    ("tourism", "museum"): "museum",
    ("natural", "waterfall"): "waterfall",
    ("historic", "monument"): "landmark",
    ("historic", "memorial"): "landmark",
    ("leisure", "park"): "park",
    ("amenity", "restaurant"): "restaurant",
    ("amenity", "cafe"): "cafe",
}


def build_query(path: Sequence[Point], radius_km: float, timeout_s: int = 25) -> str:
    """
    Overpass QL for every category within `radius_km` of `path`.

    With two or more points `around` buffers the whole polyline, not just
    the vertices.
    """
    radius_m = int(radius_km * 1000)
    coords = ",".join(f"{lat},{lng}" for lat, lng in path)
    selectors = "\n".join(
        f'  node["{k}"="{v}"](around:{radius_m},{coords});'
        for k, v in OSM_CATEGORIES
    )
    return f"[out:json][timeout:{timeout_s}];\n(\n{selectors}\n);\nout body 50;"


def _category(tags: Dict[str, str]) -> Optional[str]:
    for (k, v), category in OSM_CATEGORIES.items():
        if tags.get(k) == v:
            return category
    return None


def popularity_from_tags(tags: Dict[str, str]) -> float:
    """Rough 0-100 popularity from how well-documented the place is in OSM."""
    score = 30.0
    if tags.get("wikipedia") or tags.get("wikidata"):
        score += 30
    if tags.get("website"):
        score += 10
    if tags.get("opening_hours"):
        score += 5
    if tags.get("description"):
        score += 5
    score += min(20.0, len(tags) * 1.5)
    return min(score, 100.0)


def leg_path(seg: RouteSegment) -> List[Point]:
    a, b = seg.from_location, seg.to_location
    return [(a.lat, a.lng), (b.lat, b.lng)]


def distance_to_path_km(lat: float, lng: float, path: Sequence[Point]) -> float:
    if len(path) == 1:
        return haversine_km(path[0][0], path[0][1], lat, lng)
    return min(
        distance_to_segment_km(lat, lng, a[0], a[1], b[0], b[1])
        for a, b in zip(path, path[1:])
    )


def parse_elements(
    data: Dict[str, Any], segment_index: int, path: Sequence[Point]
) -> List[POICandidate]:
    elements = data.get("elements")
    if not isinstance(elements, list):
        raise CorridorSearchError("Overpass response missing 'elements'")

    out: List[POICandidate] = []
    for el in elements:
        tags = el.get("tags") or {}
        name = tags.get("name")
        lat, lng = el.get("lat"), el.get("lon")
        category = _category(tags)
        if not name or lat is None or lng is None or category is None:
            continue
        out.append(POICandidate(
            id=f"osm-{el.get('type', 'node')}-{el.get('id')}",
            name=name,
            category=category,
            lat=float(lat),
            lng=float(lng),
            distance_from_route_km=round(distance_to_path_km(float(lat), float(lng), path), 2),
            segment_index=segment_index,
            popularity_score=popularity_from_tags(tags),
            tags=tags,
        ))
    return out


async def _search_segment(
    client: httpx.AsyncClient,
    url: str,
    seg: RouteSegment,
    segment_index: int,
    radius_km: float,
) -> CorridorResult:
    path = leg_path(seg)
    query = build_query(path, radius_km)
    r = await client.post(url, data={"data": query})
    r.raise_for_status()
    return CorridorResult(
        segment_index=segment_index,
        candidates=parse_elements(r.json(), segment_index, path),
    )


async def search_corridor(
    segments: Sequence[RouteSegment],
    *,
    client: Optional[httpx.AsyncClient] = None,
    radius_km: float = 10.0,
    timeout_s: float = 25.0,
) -> DiscoveryBatch:
    """
    Look for POIs around every leg at once.

    One query per leg. Queries that fail are skipped and the batch is flagged
    partial; only when every query fails is CorridorSearchError raised.
    """
    targets = [
        (i, seg) for i, seg in enumerate(segments)
        if seg.from_location.is_resolved and seg.to_location.is_resolved
    ]
    if not targets:
        return DiscoveryBatch()

    url = get_overpass_url()

    async def run(c: httpx.AsyncClient) -> List[Any]:
        return await asyncio.gather(
            *[_search_segment(c, url, seg, i, radius_km) for i, seg in targets],
            return_exceptions=True,
        )

    if client is None:
        async with httpx.AsyncClient(timeout=timeout_s) as own_client:
            raw = await run(own_client)
    else:
        raw = await run(client)

    results: List[CorridorResult] = []
    for (i, _), res in zip(targets, raw):
        if isinstance(res, BaseException):
            logger.warning("Corridor search failed for segment %d: %s", i, res)
            results.append(CorridorResult(segment_index=i, error=str(res) or type(res).__name__))
        else:
            results.append(res)

    if all(r.error is not None for r in results):
        raise CorridorSearchError(f"All {len(results)} corridor queries failed")

    return merge_corridor_results(results)
