import pytest
from conftest import make_segments

from tripbrain.schemas.budget import BudgetCategory, BudgetMode, BudgetStatus, TripBudget
from tripbrain.services.budget import (
    UnknownBudgetProfile,
    apply_profile,
    build_day_budgets,
    ceil_to_nearest,
    coerce_amount,
    compute_sensitivity,
    cost_breakdown,
    estimate_budget,
    list_profiles,
    reconcile_budget_rounding,
    update_category,
    update_total,
)
from tripbrain.services.day_splitter import split_into_days
from tripbrain.services.planner import with_fuel


@pytest.mark.parametrize("raw,expected", [
    ("1,200", 1200),
    ("$450", 450),
    ("  99.6 ", 100),
    ("abc", 0),
    ("", 0),
    (None, 0),
    (-50, 0),
    (float("nan"), 0),
    (True, 0),
    (300, 300),
])
def test_coerce_amount(raw, expected):
    assert coerce_amount(raw) == expected


def test_first_total_uses_default_weights():
    b = update_total(TripBudget(), 1000)
    assert (b.gas, b.hotel, b.food, b.misc) == (350, 400, 200, 50)
    assert b.total == 1000


@pytest.mark.parametrize("total", [0, 1, 7, 333, 999, 1001, 12345])
def test_categories_always_add_up(total):
    b = update_total(TripBudget(), total)
    assert b.category_sum() == b.total == total

    rescaled = update_total(b, total * 2 + 1)
    assert rescaled.category_sum() == rescaled.total == total * 2 + 1


def test_rescale_keeps_shares():
    b = TripBudget(total=1000, gas=500, hotel=300, food=150, misc=50)
    out = update_total(b, 2000)
    assert (out.gas, out.hotel, out.food, out.misc) == (1000, 600, 300, 100)


def test_garbage_total_becomes_zero():
    b = update_total(TripBudget(total=1000, gas=350, hotel=400, food=200, misc=50), "lots")
    assert b.total == 0
    assert b.category_sum() == 0


def test_update_category_makes_profile_custom():
    b = update_total(TripBudget(), 1000)
    out = update_category(b, BudgetCategory.FOOD, "$500")

    assert out.food == 500
    assert out.total == 1300
    assert out.profile == "custom"
    assert out.weights.food == pytest.approx(38.5)


def test_reconcile_sends_residual_to_hotel():
    b = TripBudget(gas=333, hotel=333, food=333, misc=0)
    out = reconcile_budget_rounding(b, 1000)
    assert out.hotel == 334
    assert out.category_sum() == 1000


def test_apply_profile():
    b = update_total(TripBudget(), 1000)
    foodie = apply_profile(b, "foodie")
    assert foodie.profile == "foodie"
    assert foodie.food == 500
    assert foodie.category_sum() == 1000

    with pytest.raises(UnknownBudgetProfile):
        apply_profile(b, "yacht")


def test_profiles_listed():
    names = [p.name for p in list_profiles()]
    assert names[0] == "standard"
    assert "backpacker" in names
    for p in list_profiles():
        assert sum(p.weights.as_dict().values()) == pytest.approx(100)


def _two_day_trip(settings, vehicle):
    legs = with_fuel(make_segments([400, 400]), vehicle, settings)
    days = split_into_days(legs, settings)
    return legs, days


def test_day_budgets_in_plan_mode(settings, vehicle):
    legs, days = _two_day_trip(settings, vehicle)
    budget = TripBudget(mode=BudgetMode.PLAN_TO_BUDGET, total=500, gas=100, hotel=200, food=150, misc=50)
    out = build_day_budgets(days, legs, [], settings, budget)

    assert len(out) == 2
    assert out[0].hotel_cost == 150
    assert out[1].hotel_cost == 0
    # 400 km at 8.4 L/100km and 1.60/L
    assert out[0].gas_used == pytest.approx(53.76)
    assert out[0].gas_remaining == pytest.approx(100 - 53.76)
    assert out[0].status == BudgetStatus.TIGHT
    assert out[1].status == BudgetStatus.OVER


def test_open_mode_has_no_remaining(settings, vehicle):
    legs, days = _two_day_trip(settings, vehicle)
    out = build_day_budgets(days, legs, [], settings, TripBudget())
    assert out[0].status is None
    assert out[0].gas_remaining is None
    assert out[0].day_total == pytest.approx(out[0].gas_used + out[0].hotel_cost + out[0].food_estimate)


def test_estimate_budget(settings, vehicle):
    legs, days = _two_day_trip(settings, vehicle)
    b = estimate_budget(days, legs, settings)

    assert b.hotel == 150
    assert b.food == 120
    assert b.gas == round(2 * 53.76)
    assert b.total == b.category_sum()


def test_breakdown_and_sensitivity(settings, vehicle):
    legs, days = _two_day_trip(settings, vehicle)
    day_budgets = build_day_budgets(days, legs, [], settings, TripBudget())

    bd = cost_breakdown(day_budgets, 2)
    assert bd.total % 10 == 0
    assert all(item.amount % 5 == 0 for item in bd.items)
    assert bd.per_day == pytest.approx(bd.total / 2)

    scenarios = {s.label: s for s in compute_sensitivity(day_budgets, settings)}
    assert scenarios["+10% fuel"].delta == pytest.approx(round(2 * 53.76 * 0.1, 2))
    assert scenarios["+1 night"].delta == 150 + 60


def test_ceil_to_nearest():
    assert ceil_to_nearest(101, 5) == 105
    assert ceil_to_nearest(100, 5) == 100
    assert ceil_to_nearest(0, 10) == 0


@pytest.mark.parametrize("start,new_total", [
    (TripBudget(total=3, gas=1, hotel=0, food=1, misc=1), 5),
    (TripBudget(total=3, gas=1, hotel=0, food=1, misc=1), 7),
    (TripBudget(total=7, gas=3, hotel=1, food=2, misc=1), 11),
    (TripBudget(total=10, gas=3, hotel=1, food=3, misc=3), 19),
    (TripBudget(total=1000, gas=333, hotel=1, food=333, misc=333), 1999),
    (TripBudget(), 3),
    (TripBudget(), 101),
])
def test_rescale_never_goes_negative(start, new_total):
    out = update_total(start, new_total)
    assert min(out.gas, out.hotel, out.food, out.misc) >= 0
    assert out.category_sum() == out.total == new_total


@pytest.mark.parametrize("total", [1, 3, 7, 99, 1001])
def test_profiles_never_go_negative(total):
    base = update_total(TripBudget(), total)
    for profile in list_profiles():
        out = apply_profile(base, profile.name)
        assert min(out.gas, out.hotel, out.food, out.misc) >= 0
        assert out.category_sum() == total
