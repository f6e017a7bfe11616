import asyncio

import httpx
import pytest

from tripbrain.schemas.route import Location, RouteSource
from tripbrain.services.directions import (
    DirectionsError,
    estimate_route_segments,
    get_route_segments,
    route_with_fallback,
)

STOPS = [
    Location(id="a", name="Toronto, ON", lat=43.6532, lng=-79.3832),
    Location(id="b", name="Kingston, ON", lat=44.2312, lng=-76.4860),
    Location(id="c", name="Ottawa, ON", lat=45.4215, lng=-75.6972),
]

MAPBOX_OK = {
    "code": "Ok",
    "routes": [{
        "distance": 450000,
        "duration": 16200,
        "geometry": {"type": "LineString", "coordinates": [[-79.38, 43.65], [-75.69, 45.42]]},
        "legs": [
            {"distance": 260000, "duration": 9000},
            {"distance": 190000, "duration": 7200},
        ],
    }],
}


def _run(coro_factory, handler):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)
    return asyncio.run(run())


def test_mapbox_legs_become_segments(monkeypatch):
    monkeypatch.setenv("MAPBOX_TOKEN", "test-token")
    monkeypatch.setenv("ROUTE_DURATION_FACTOR", "1.1")
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json=MAPBOX_OK)

    result = _run(lambda c: get_route_segments(STOPS, client=c), handler)

    assert "-79.3832,43.6532;-76.486,44.2312;-75.6972,45.4215" in seen["url"]
    assert "access_token=test-token" in seen["url"]
    assert result.source == RouteSource.MAPBOX
    assert [s.distance_km for s in result.segments] == [260.0, 190.0]
    assert result.segments[0].duration_minutes == pytest.approx(165.0)
    assert result.segments[1].from_location.id == "b"
    assert result.geometry[0] == [-79.38, 43.65]


def test_missing_token_raises(monkeypatch):
    monkeypatch.delenv("MAPBOX_TOKEN", raising=False)
    with pytest.raises(DirectionsError):
        asyncio.run(get_route_segments(STOPS))


def test_rejected_token(monkeypatch):
    monkeypatch.setenv("MAPBOX_TOKEN", "bad")
    with pytest.raises(DirectionsError, match="401"):
        _run(lambda c: get_route_segments(STOPS, client=c), lambda r: httpx.Response(401))


def test_fallback_to_estimate_on_provider_error(monkeypatch):
    monkeypatch.setenv("MAPBOX_TOKEN", "test-token")
    result = _run(
        lambda c: route_with_fallback(STOPS, client=c),
        lambda r: httpx.Response(503),
    )
    assert result.source == RouteSource.ESTIMATE
    assert len(result.segments) == 2
    assert result.segments[0].distance_km > 200


def test_estimate_with_missing_coordinates():
    stops = [STOPS[0], Location(id="x", name="Unknown"), STOPS[2]]
    result = estimate_route_segments(stops)
    assert [s.distance_km for s in result.segments] == [0.0, 0.0]
    assert result.geometry is None
