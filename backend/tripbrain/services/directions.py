from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import MAPBOX_DIRECTIONS_URL, get_mapbox_token, get_route_duration_factor
from ..schemas.route import Location, RouteResult, RouteSegment, RouteSource
from .geo import FALLBACK_SPEED_KMH, estimate_road_km

logger = logging.getLogger(__name__)


class DirectionsError(RuntimeError):
    pass


def _require_token() -> str:
    token = get_mapbox_token()
    if not token:
        raise DirectionsError("MAPBOX_TOKEN is not set in environment")
    return token


async def _fetch_mapbox(
    client: httpx.AsyncClient,
    locations: Sequence[Location],
    token: str,
) -> Dict[str, Any]:
    # Mapbox expects lon,lat order
    coords = ";".join(f"{loc.lng},{loc.lat}" for loc in locations)
    url = f"{MAPBOX_DIRECTIONS_URL}/{coords}"

    params = {
        "access_token": token,
        "alternatives": "false",
        "overview": "simplified",
        "geometries": "geojson",
        "steps": "false",
    }

    r = await client.get(url, params=params)
    if r.status_code == 401:
        raise DirectionsError("Mapbox token rejected (401). Check MAPBOX_TOKEN.")
    r.raise_for_status()
    return r.json()


async def get_route_segments(
    locations: Sequence[Location],
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: float = 12.0,
) -> RouteResult:
    """
    Route an ordered list of stops with Mapbox Directions.

    Returns one RouteSegment per consecutive pair. Durations are scaled by
    ROUTE_DURATION_FACTOR.
    """
    if len(locations) < 2:
        raise DirectionsError("Need at least two locations to build a route")
    if not all(loc.is_resolved for loc in locations):
        raise DirectionsError("Every location needs coordinates before routing")

    token = _require_token()

    if client is None:
        async with httpx.AsyncClient(timeout=timeout_s) as own_client:
            data = await _fetch_mapbox(own_client, locations, token)
    else:
        data = await _fetch_mapbox(client, locations, token)

    routes = data.get("routes") or []
    if not routes:
        code = data.get("code")
        msg = data.get("message")
        raise DirectionsError(f"No routes returned by Mapbox (code={code}, message={msg})")

    route0 = routes[0]
    legs = route0.get("legs") or []
    if len(legs) != len(locations) - 1:
        logger.warning("Mapbox route0 keys: %s", list(route0.keys()))
        raise DirectionsError(
            f"Mapbox returned {len(legs)} legs for {len(locations)} locations"
        )

    factor = get_route_duration_factor()
    segments: List[RouteSegment] = []
    for i, leg in enumerate(legs):
        dist_m = leg.get("distance")
        dur_s = leg.get("duration")
        if dist_m is None or dur_s is None:
            raise DirectionsError("Mapbox leg missing distance/duration fields")
        segments.append(RouteSegment(
            from_location=locations[i],
            to_location=locations[i + 1],
            distance_km=round(float(dist_m) / 1000.0, 2),
            duration_minutes=round(float(dur_s) / 60.0 * factor, 1),
        ))

    geometry = (route0.get("geometry") or {}).get("coordinates")
    return RouteResult(segments=segments, geometry=geometry, source=RouteSource.MAPBOX)


def estimate_route_segments(locations: Sequence[Location]) -> RouteResult:
    """
    Straight-line estimate for when the router is unavailable.

    Pairs with a missing coordinate get zero distance; the planner drops them.
    """
    segments: List[RouteSegment] = []
    for a, b in zip(locations, locations[1:]):
        if a.is_resolved and b.is_resolved:
            road_km = estimate_road_km(a.lat, a.lng, b.lat, b.lng)
        else:
            road_km = 0.0
        segments.append(RouteSegment(
            from_location=a,
            to_location=b,
            distance_km=round(road_km, 2),
            duration_minutes=round(road_km / FALLBACK_SPEED_KMH * 60.0, 1),
        ))
    return RouteResult(segments=segments, geometry=None, source=RouteSource.ESTIMATE)


async def route_with_fallback(
    locations: Sequence[Location],
    *,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: float = 12.0,
) -> RouteResult:
    """Mapbox when we can, haversine estimate when we can't."""
    try:
        return await get_route_segments(locations, client=client, timeout_s=timeout_s)
    except (DirectionsError, httpx.HTTPError) as e:
        logger.warning("Directions unavailable, using straight-line estimate: %s", e)
        return estimate_route_segments(locations)
