from datetime import date, time
from typing import List, Optional, Sequence

import pytest

from tripbrain.schemas.route import Location, RouteSegment, Vehicle
from tripbrain.schemas.settings import TripSettings


def make_location(idx: int, lng: float = -79.0, lat: float = 44.0, name: Optional[str] = None) -> Location:
    return Location(id=f"loc-{idx}", name=name or f"Town {idx}", lat=lat, lng=lng)


def make_segments(
    durations: Sequence[float],
    km_per_minute: float = 1.0,
    lngs: Optional[Sequence[float]] = None,
) -> List[RouteSegment]:
    """
    Chain of legs Town 0 -> Town 1 -> ... with the given durations.

    Without `lngs` every stop sits in the same timezone band.
    """
    if lngs is None:
        lngs = [-79.0 - 0.5 * i for i in range(len(durations) + 1)]
    locs = [make_location(i, lng=lngs[i]) for i in range(len(durations) + 1)]
    return [
        RouteSegment(
            from_location=locs[i],
            to_location=locs[i + 1],
            distance_km=round(d * km_per_minute, 1),
            duration_minutes=d,
        )
        for i, d in enumerate(durations)
    ]


@pytest.fixture
def settings() -> TripSettings:
    return TripSettings(
        departure_date=date(2026, 7, 1),
        departure_time=time(8, 0),
    )


@pytest.fixture
def vehicle() -> Vehicle:
    return Vehicle()


@pytest.fixture
def two_legs() -> List[RouteSegment]:
    return make_segments([180, 130])


@pytest.fixture
def ten_legs() -> List[RouteSegment]:
    return make_segments([84] * 10)
