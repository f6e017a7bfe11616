import pytest
from fastapi.testclient import TestClient

from tripbrain.api.routes import discovery as discovery_routes
from tripbrain.api.routes import profile as profile_routes
from tripbrain.main import app
from tripbrain.schemas.discovery import DiscoveryBatch, POICandidate
from tripbrain.services.generations import GenerationGate
from tripbrain.services.profile import InMemoryProfileRepository


@pytest.fixture
def client():
    return TestClient(app)


def _leg(i, minutes):
    return {
        "from": {"id": f"l{i}", "name": f"Town {i}", "lat": 44.0, "lng": -79.0 - 0.5 * i},
        "to": {"id": f"l{i + 1}", "name": f"Town {i + 1}", "lat": 44.0, "lng": -79.5 - 0.5 * i},
        "distance_km": minutes,
        "duration_minutes": minutes,
    }


def _poi(pid, detour, score, segment=0, state="pending"):
    return {
        "id": pid, "name": pid, "category": "viewpoint", "lat": 44.0, "lng": -79.0,
        "detour_time_minutes": detour, "ranking_score": score,
        "fits_in_break_window": detour <= 15, "segment_index": segment, "action_state": state,
    }


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_plan_endpoint(client):
    body = {
        "segments": [_leg(0, 300), _leg(1, 300)],
        "settings": {"departure_date": "2026-07-01", "departure_time": "08:00:00"},
    }
    r = client.post("/trip/plan", json=body)
    assert r.status_code == 200
    data = r.json()
    assert len(data["days"]) == 2
    assert data["feasibility"]["status"] in ("on_track", "tight", "over")
    assert data["segments"][0]["from"]["name"] == "Town 0"
    assert data["days"][0]["overnight"]["check_in"].startswith("2026-07-01")


def test_plan_endpoint_empty_route(client):
    r = client.post("/trip/plan", json={"segments": []})
    assert r.status_code == 200
    assert r.json()["feasibility"]["status"] == "no_data"


def test_route_endpoint_falls_back_without_token(client, monkeypatch):
    monkeypatch.delenv("MAPBOX_TOKEN", raising=False)
    body = {
        "locations": [
            {"id": "a", "name": "Toronto, ON", "lat": 43.6532, "lng": -79.3832},
            {"id": "b", "name": "Ottawa, ON", "lat": 45.4215, "lng": -75.6972},
        ],
    }
    r = client.post("/trip/route", json=body)
    assert r.status_code == 200
    assert len(r.json()["segments"]) == 1


def test_route_endpoint_needs_two_locations(client):
    r = client.post("/trip/route", json={"locations": [{"id": "a", "name": "A", "lat": 1, "lng": 1}]})
    assert r.status_code == 422


def test_budget_endpoints(client):
    r = client.post("/trip/budget/total", json={"budget": {}, "new_total": "1,000"})
    assert r.status_code == 200
    b = r.json()
    assert (b["gas"], b["hotel"], b["food"], b["misc"]) == (350, 400, 200, 50)

    r = client.post("/trip/budget/category", json={"budget": b, "category": "misc", "value": 150})
    assert r.json()["total"] == 1100
    assert r.json()["profile"] == "custom"

    r = client.get("/trip/budget/profiles")
    assert r.status_code == 200
    assert {p["name"] for p in r.json()} >= {"standard", "foodie"}

    r = client.post("/trip/budget/profile", json={"budget": b, "profile": "nope"})
    assert r.status_code == 404


def test_discovery_endpoints(client):
    pois = [_poi("a", 5, 90, 0), _poi("b", 40, 20, 1), _poi("c", 8, 55, 2)]

    r = client.post("/discovery/discover", json={"pois": pois, "budget_minutes": 30})
    assert r.status_code == 200
    data = r.json()
    assert sum(p["detour_time_minutes"] for p in data["pois"]) <= 30
    assert data["tier_counts"]["no_brainer"] == 1

    r = client.post("/discovery/filter", json={"pois": pois, "budget_minutes": 10})
    assert [p["id"] for p in r.json()] == ["a"]

    r = client.post("/discovery/add-no-brainers", json={"pois": pois, "budget_minutes": 60})
    states = {p["id"]: p["action_state"] for p in r.json()}
    assert states["a"] == "added"
    assert states["b"] == "pending"


def test_action_endpoint(client):
    r = client.post("/discovery/action", json={"poi": _poi("a", 5, 90), "state": "dismissed"})
    assert r.status_code == 200
    assert r.json()["action_state"] == "dismissed"

    r = client.post("/discovery/action", json={"poi": _poi("a", 5, 90, state="added"), "state": "dismissed"})
    assert r.status_code == 409


def test_rank_endpoint(client):
    candidates = [
        {"id": "v", "name": "View", "category": "viewpoint", "lat": 44.0, "lng": -79.0,
         "distance_from_route_km": 1.0, "popularity_score": 90},
        {"id": "far", "name": "Far", "category": "museum", "lat": 44.0, "lng": -79.0,
         "distance_from_route_km": 50.0},
    ]
    r = client.post("/discovery/rank", json={"candidates": candidates, "preferences": ["scenic"]})
    assert r.status_code == 200
    assert [p["id"] for p in r.json()] == ["v"]


def test_adventure_search(client):
    body = {
        "origin": {"id": "yyz", "name": "Toronto, ON", "lat": 43.6532, "lng": -79.3832},
        "budget": 2000,
        "days": 3,
        "travelers": 2,
    }
    r = client.post("/adventure/search", json=body)
    assert r.status_code == 200
    data = r.json()
    assert data["max_reachable_km"] == 576
    assert any(d["name"] == "Niagara Falls" for d in data["destinations"])


def test_adventure_search_rejects_zero_days(client):
    body = {"origin": {"id": "x", "name": "X", "lat": 1, "lng": 1}, "budget": 100, "days": 0}
    assert client.post("/adventure/search", json=body).status_code == 422


def test_budget_estimate_endpoint(client):
    body = {
        "segments": [_leg(0, 300), _leg(1, 300)],
        "settings": {"departure_date": "2026-07-01", "departure_time": "08:00:00"},
    }
    r = client.post("/trip/budget/estimate", json=body)
    assert r.status_code == 200
    b = r.json()
    assert b["mode"] == "open"
    assert b["hotel"] > 0
    assert b["gas"] + b["hotel"] + b["food"] + b["misc"] == b["total"]


def test_refine_endpoint_reports_improvement(client):
    body = {
        "plan": {"segments": [_leg(0, 400)]},
        "settings": {"resolved_warning_ids": ["long_drive-0"]},
        "change": "Marked long drive as handled",
    }
    r = client.post("/trip/refine", json=body)
    assert r.status_code == 200
    data = r.json()
    assert data["before_status"] == "over"
    assert data["improved"] is True
    assert data["resolved_warnings"]


def test_adventure_budget_endpoint(client):
    body = {"total_budget": 1000, "distance_km": 300, "preferences": ["foodie"]}
    r = client.post("/adventure/budget", json=body)
    assert r.status_code == 200
    b = r.json()
    assert b["profile"] == "foodie"
    assert b["gas"] == 72
    assert min(b["gas"], b["hotel"], b["food"], b["misc"]) >= 0
    assert b["gas"] + b["hotel"] + b["food"] + b["misc"] == 1000


@pytest.fixture
def corridor_gate():
    gate = GenerationGate(debounce_s=0)
    app.dependency_overrides[discovery_routes.get_corridor_gate] = lambda: gate
    yield gate
    app.dependency_overrides.clear()


def _corridor_batch():
    return DiscoveryBatch(candidates=[
        POICandidate(id="v", name="View", category="viewpoint", lat=44.0, lng=-79.2,
                     distance_from_route_km=1.0, popularity_score=90, segment_index=0),
    ])


def test_corridor_endpoint(client, corridor_gate, monkeypatch):
    async def fake_search(segments, radius_km=10.0):
        return _corridor_batch()

    monkeypatch.setattr(discovery_routes, "search_corridor", fake_search)
    r = client.post("/discovery/corridor", json={"segments": [_leg(0, 60)], "preferences": ["scenic"]})
    assert r.status_code == 200
    data = r.json()
    assert [p["id"] for p in data["pois"]] == ["v"]
    assert data["partial_results"] is False


def test_corridor_endpoint_drops_superseded_search(client, corridor_gate, monkeypatch):
    async def overtaken_search(segments, radius_km=10.0):
        # a newer search with the same key starts while this one is in flight
        corridor_gate.begin("corridor")
        return _corridor_batch()

    monkeypatch.setattr(discovery_routes, "search_corridor", overtaken_search)
    r = client.post("/discovery/corridor", json={"segments": [_leg(0, 60)]})
    assert r.status_code == 409


@pytest.fixture
def profile_repo():
    repo = InMemoryProfileRepository()
    app.dependency_overrides[profile_routes.get_profile_repository] = lambda: repo
    yield repo
    app.dependency_overrides.clear()


def test_profile_learns_defaults(client, profile_repo):
    assert client.get("/profile/u1/defaults").json()["defaults"] is None

    trip = {"settings": {"hotel_price_per_night": 100, "meal_price_per_day": 40}}
    for _ in range(3):
        r = client.post("/profile/u1/trips", json=trip)
        assert r.status_code == 200
    assert len(profile_repo.list_trips("u1")) == 3

    data = client.get("/profile/u1/defaults").json()
    assert data["defaults"]["hotel_price_per_night"] == 100
    assert data["defaults"]["trip_count"] == 3
    assert data["meaningful"] is True

    personalized = client.post("/profile/u1/settings", json={}).json()
    assert personalized["hotel_price_per_night"] == 100
    assert personalized["meal_price_per_day"] == 40

    untouched = client.post("/profile/u2/settings", json={}).json()
    assert untouched["hotel_price_per_night"] == 150
