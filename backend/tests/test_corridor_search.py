import asyncio
from urllib.parse import parse_qs

import httpx
import pytest
from conftest import make_segments

from tripbrain.services.corridor_search import (
    CorridorSearchError,
    build_query,
    distance_to_path_km,
    parse_elements,
    popularity_from_tags,
    search_corridor,
)

ELEMENTS = {
    "elements": [
        {"type": "node", "id": 1, "lat": 44.01, "lon": -79.2,
         "tags": {"name": "Scenic Lookout", "tourism": "viewpoint", "wikipedia": "en:Scenic Lookout"}},
        {"type": "node", "id": 2, "lat": 44.02, "lon": -79.3,
         "tags": {"name": "Corner Cafe", "amenity": "cafe"}},
        # no name, skipped
        {"type": "node", "id": 3, "lat": 44.0, "lon": -79.3, "tags": {"tourism": "viewpoint"}},
        # unknown category, skipped
        {"type": "node", "id": 4, "lat": 44.0, "lon": -79.3, "tags": {"name": "Bench", "amenity": "bench"}},
    ]
}


def _query_of(request: httpx.Request) -> str:
    return parse_qs(request.content.decode())["data"][0]


def test_build_query_uses_around_filter():
    q = build_query([(44.0, -79.0), (44.5, -80.0)], 5)
    assert q.startswith("[out:json]")
    assert '(around:5000,44.0,-79.0,44.5,-80.0)' in q
    assert 'node["tourism"="viewpoint"]' in q


def test_parse_elements():
    out = parse_elements(ELEMENTS, 2, [(44.0, -79.0), (44.0, -79.5)])
    assert [c.id for c in out] == ["osm-node-1", "osm-node-2"]
    assert out[0].category == "viewpoint"
    assert out[0].segment_index == 2
    assert out[0].distance_from_route_km == pytest.approx(1.11, abs=0.05)
    assert out[0].popularity_score > out[1].popularity_score


def test_parse_rejects_bad_payload():
    with pytest.raises(CorridorSearchError):
        parse_elements({"remark": "timeout"}, 0, [(0.0, 0.0)])


def test_distance_is_measured_to_the_whole_leg():
    # ~320 km leg; the POI sits near the start, far from the midpoint
    path = [(44.0, -79.0), (44.0, -83.0)]
    assert distance_to_path_km(44.02, -79.5, path) == pytest.approx(2.2, abs=0.1)
    # past the end of the leg the distance is to the endpoint
    assert distance_to_path_km(44.0, -78.0, path) == pytest.approx(80, abs=1)


def test_each_leg_is_searched_along_its_full_length():
    queries = []

    def handler(request):
        queries.append(_query_of(request))
        return httpx.Response(200, json={"elements": [
            {"type": "node", "id": 9, "lat": 44.01, "lon": -79.1,
             "tags": {"name": "Early Falls", "natural": "waterfall"}},
        ]})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await search_corridor(make_segments([240], lngs=[-79.0, -83.0]), client=client)

    batch = asyncio.run(run())
    assert "(around:10000,44.0,-79.0,44.0,-83.0)" in queries[0]
    assert batch.candidates[0].distance_from_route_km < 2


def test_popularity_is_capped():
    tags = {f"k{i}": "v" for i in range(40)}
    tags.update({"wikipedia": "en:X", "website": "x", "opening_hours": "24/7", "description": "x"})
    assert popularity_from_tags(tags) == 100


def test_search_corridor_merges_every_leg():
    def handler(request):
        return httpx.Response(200, json=ELEMENTS)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await search_corridor(make_segments([60, 60]), client=client)

    batch = asyncio.run(run())
    # the same OSM nodes come back for both legs; ids are deduplicated
    assert [c.id for c in batch.candidates] == ["osm-node-1", "osm-node-2"]
    assert batch.partial_results is False


def test_failed_leg_makes_batch_partial():
    seen = []

    def handler(request):
        q = _query_of(request)
        seen.append(q)
        if len(seen) == 2:
            return httpx.Response(504, text="Gateway Timeout")
        return httpx.Response(200, json=ELEMENTS)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await search_corridor(make_segments([60, 60]), client=client)

    batch = asyncio.run(run())
    assert batch.partial_results is True
    assert len(batch.failed_segments) == 1
    assert batch.candidates


def test_all_legs_failing_raises():
    def handler(request):
        return httpx.Response(500)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await search_corridor(make_segments([60]), client=client)

    with pytest.raises(CorridorSearchError):
        asyncio.run(run())


def test_no_resolved_legs_is_empty():
    async def run():
        return await search_corridor([])

    batch = asyncio.run(run())
    assert batch.candidates == []
