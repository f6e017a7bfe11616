import pytest

from tripbrain.config import DiscoveryPolicy
from tripbrain.schemas.discovery import (
    TIER_PRIORITY,
    ActionState,
    Bucket,
    CorridorResult,
    POICandidate,
    POISuggestion,
    Tier,
)
from tripbrain.services.discovery import (
    InvalidActionTransition,
    add_all_no_brainers,
    apply_action,
    assign_tier,
    clamp_time_budget,
    discover_pois,
    estimate_detour_minutes,
    extract_wiki_url,
    filter_by_time_budget,
    merge_corridor_results,
    rank_corridor_pois,
    rank_destination_pois,
    summarize,
)


def _poi(pid, detour=10.0, score=60.0, segment=0, tier=None, fits=None, state=ActionState.PENDING, **kw):
    return POISuggestion(
        id=pid,
        name=pid.title(),
        category=kw.pop("category", "viewpoint"),
        lat=44.0,
        lng=-79.0,
        detour_time_minutes=detour,
        ranking_score=score,
        segment_index=segment,
        tier=tier,
        fits_in_break_window=detour <= 15 if fits is None else fits,
        action_state=state,
        **kw,
    )


def _candidate(cid, category="viewpoint", km=2.0, popularity=60.0, segment=0):
    return POICandidate(
        id=cid, name=cid, category=category, lat=44.0, lng=-79.0,
        distance_from_route_km=km, segment_index=segment, popularity_score=popularity,
    )


def test_detour_minutes_is_a_round_trip():
    assert estimate_detour_minutes(5) == 10
    assert estimate_detour_minutes(0) == 0


@pytest.mark.parametrize("score,detour,fits,expected", [
    (80, 10, True, Tier.NO_BRAINER),
    (80, 10, False, Tier.WORTH_DETOUR),
    (80, 20, False, Tier.WORTH_DETOUR),
    (40, 8, True, Tier.WORTH_DETOUR),
    (40, 25, False, Tier.IF_TIME),
])
def test_assign_tier(score, detour, fits, expected):
    assert assign_tier(_poi("p", detour=detour, score=score, fits=fits), DiscoveryPolicy()) == expected


@pytest.mark.parametrize("score", [20, 55, 75, 95])
def test_more_detour_never_promotes(score):
    policy = DiscoveryPolicy()
    prev = None
    for detour in range(0, 61, 5):
        rank = TIER_PRIORITY[assign_tier(_poi("p", detour=detour, score=score), policy)]
        if prev is not None:
            assert rank >= prev
        prev = rank


@pytest.mark.parametrize("budget", [0, 5, 15, 30, 45, 60, 120, 500])
def test_filter_never_exceeds_budget(budget):
    pois = [
        _poi(f"p{i}", detour=d, score=s, segment=i)
        for i, (d, s) in enumerate([(5, 90), (12, 75), (25, 60), (8, 40), (40, 55), (3, 20)])
    ]
    picked = filter_by_time_budget(pois, budget, DiscoveryPolicy())
    assert sum(p.detour_time_minutes for p in picked) <= budget


def test_filter_keeps_route_order():
    pois = [
        _poi("late", detour=5, score=90, segment=4),
        _poi("early", detour=5, score=40, segment=1),
    ]
    picked = filter_by_time_budget(pois, 60, DiscoveryPolicy())
    assert [p.id for p in picked] == ["early", "late"]


def test_filter_stops_at_first_poi_that_does_not_fit():
    pois = [
        _poi("big", detour=30, tier=Tier.NO_BRAINER, segment=0),
        _poi("small", detour=5, tier=Tier.IF_TIME, segment=1),
    ]
    assert filter_by_time_budget(pois, 20, DiscoveryPolicy()) == []


def test_time_budget_is_clamped():
    policy = DiscoveryPolicy()
    assert clamp_time_budget(None, policy) == 60
    assert clamp_time_budget(999, policy) == 240
    assert clamp_time_budget(-5, policy) == 0


def test_discover_drops_dismissed_and_links_mirror():
    pois = [
        _poi("b", segment=2, tags={"wikipedia": "en:Niagara Falls"}),
        _poi("a", segment=0),
        _poi("gone", segment=1, state=ActionState.DISMISSED),
    ]
    out = discover_pois(pois, total_segments=6, policy=DiscoveryPolicy())

    assert [p.id for p in out] == ["a", "b"]
    assert out[1].mirror_segment_index == 3
    assert out[1].wiki_url == "https://en.wikipedia.org/wiki/Niagara_Falls"
    assert all(p.tier is not None for p in out)


def test_wiki_url_variants():
    assert extract_wiki_url(None) is None
    assert extract_wiki_url({"wikipedia": "https://fr.wikipedia.org/wiki/Québec"}).startswith("https://fr.")
    assert extract_wiki_url({"wikidata": "Q172"}) == "https://www.wikidata.org/wiki/Q172"


def test_action_transitions():
    poi = _poi("p")
    added = apply_action(poi, ActionState.ADDED)
    assert added.action_state == ActionState.ADDED
    assert poi.action_state == ActionState.PENDING

    with pytest.raises(InvalidActionTransition):
        apply_action(added, ActionState.DISMISSED)
    with pytest.raises(InvalidActionTransition):
        apply_action(poi, ActionState.PENDING)


def test_add_all_no_brainers():
    policy = DiscoveryPolicy()
    pois = discover_pois([
        _poi("nb", detour=5, score=90, segment=0),
        _poi("wd", detour=8, score=55, segment=1),
        _poi("done", detour=5, score=90, segment=2, state=ActionState.ADDED),
    ], policy=policy)
    out = {p.id: p for p in add_all_no_brainers(pois, 60, policy)}

    assert out["nb"].action_state == ActionState.ADDED
    assert out["wd"].action_state == ActionState.PENDING
    assert out["done"].action_state == ActionState.ADDED


def test_rank_corridor_drops_far_and_caps_categories():
    candidates = [_candidate(f"cafe-{i}", category="cafe", km=1.0 + i) for i in range(5)]
    candidates.append(_candidate("far", km=25.0))
    candidates.append(_candidate("view", km=1.0, popularity=90))

    ranked = rank_corridor_pois(candidates, ["scenic"], top_n=10)
    ids = [p.id for p in ranked]

    assert "far" not in ids
    assert ids[0] == "view"
    assert sum(1 for p in ranked if p.category == "cafe") == 3
    assert all(p.bucket == Bucket.ALONG_WAY for p in ranked)
    assert ranked[0].detour_time_minutes == 2


def test_rank_destination():
    ranked = rank_destination_pois([_candidate("m", category="museum"), _candidate("v")], ["scenic"])
    assert [p.id for p in ranked] == ["v", "m"]
    assert all(p.bucket == Bucket.DESTINATION and p.detour_time_minutes == 0 for p in ranked)


def test_summarize_counts_tiers():
    pois = discover_pois([_poi("a", detour=5, score=90), _poi("b", detour=25, score=10)],
                         policy=DiscoveryPolicy())
    result = summarize(pois)
    assert result.tier_counts.no_brainer == 1
    assert result.tier_counts.if_time == 1
    assert result.total_detour_minutes == 30


def test_merge_corridor_results_is_partial_on_failure():
    batch = merge_corridor_results([
        CorridorResult(segment_index=0, candidates=[_candidate("a"), _candidate("b")]),
        CorridorResult(segment_index=1, error="timeout"),
        CorridorResult(segment_index=2, candidates=[_candidate("b", segment=2), _candidate("c")]),
    ])
    assert [c.id for c in batch.candidates] == ["a", "b", "c"]
    assert batch.partial_results is True
    assert batch.failed_segments == [1]

    ok = merge_corridor_results([CorridorResult(segment_index=0, candidates=[_candidate("a")])])
    assert ok.partial_results is False
