import pytest

from tripbrain.schemas.adventure import AccommodationTier, AdventureConfig
from tripbrain.schemas.budget import BudgetMode
from tripbrain.schemas.route import Location
from tripbrain.services.adventure import (
    budget_for_travel,
    build_adventure_budget,
    driving_ratio,
    find_adventures,
    fit_label,
    max_distance_km,
    preference_score,
)
from tripbrain.services.destination_catalog import CatalogDestination, load_destinations

TORONTO = Location(id="yyz", name="Toronto, ON", lat=43.6532, lng=-79.3832)


def _config(**kw):
    base = dict(origin=TORONTO, budget=2000, days=3, travelers=2)
    base.update(kw)
    return AdventureConfig(**base)


def test_budget_left_for_travel():
    assert budget_for_travel(_config()) == 2000 - 2 * 150 - 3 * 2 * 50
    cheap = _config(accommodation_tier=AccommodationTier.BUDGET)
    assert budget_for_travel(cheap) == 2000 - 2 * 80 - 3 * 2 * 50
    assert budget_for_travel(_config(budget=100)) == 0


def test_driving_ratio_shrinks_with_longer_trips():
    assert driving_ratio(2) == 0.8
    assert driving_ratio(4) == 0.6
    assert driving_ratio(7) == 0.4


def test_max_distance_is_capped_by_drive_days():
    # 3 days * 8h * 0.6 * 80 km/h, halved for the way back
    assert max_distance_km(_config()) == pytest.approx(576)
    # money runs out first: 100 left for travel at 0.24/km
    assert max_distance_km(_config(budget=700)) == pytest.approx(100 / 0.24)


def test_preference_score():
    score, reasons = preference_score(["scenic", "hiking"], ["scenic"])
    assert score == pytest.approx(100)
    assert reasons == ["Great for scenic trips"]

    neutral, reasons = preference_score(["city"], [])
    assert neutral == 50
    assert reasons == ["Popular destination"]


def test_fit_labels():
    assert fit_label(85) == "great fit"
    assert fit_label(60) == "good fit"
    assert fit_label(59) == "worth a look"


def test_find_adventures_with_custom_catalog():
    catalog = [
        CatalogDestination(name="Near Lake", lat=44.3, lng=-79.0, category="nature", tags=["nature", "lakes"]),
        CatalogDestination(name="Far Coast", lat=49.3, lng=-123.1, category="coastal", tags=["coastal"]),
    ]
    result = find_adventures(_config(preferences=["scenic"]), catalog=catalog)

    names = [d.name for d in result.destinations]
    assert names == ["Near Lake"]
    dest = result.destinations[0]
    assert dest.id == "dest-near-lake"
    assert 0 <= dest.score <= 100
    assert dest.estimated_costs.total <= 2000
    assert result.max_reachable_km == 576


def test_find_adventures_with_bundled_catalog():
    assert len(load_destinations()) > 20

    result = find_adventures(_config())
    names = {d.name for d in result.destinations}
    assert "Niagara Falls" in names
    assert "Banff" not in names
    assert len(result.destinations) <= 10
    scores = [d.score for d in result.destinations]
    assert scores == sorted(scores, reverse=True)


def test_unresolved_origin_finds_nothing():
    result = find_adventures(_config(origin=Location(id="x", name="Somewhere")), catalog=[])
    assert result.destinations == []


def test_adventure_budget_adds_up():
    b = build_adventure_budget(1000, 300, ["foodie"])
    assert b.mode == BudgetMode.PLAN_TO_BUDGET
    assert b.profile == "foodie"
    assert b.gas == 72
    assert b.category_sum() == b.total == 1000
