# backend/tripbrain/services/day_splitter.py

from __future__ import annotations

import logging
from typing import List, Sequence

from ..schemas.itinerary import DayTotals, TripDay
from ..schemas.route import RouteSegment
from ..schemas.settings import DayType, TripSettings
from .stop_planner import overnight_stop

logger = logging.getLogger(__name__)


def day_cap_minutes(settings: TripSettings) -> float:
    """Longest a day may run before it is closed: cap plus tolerance."""
    return (settings.max_drive_hours + settings.tolerance_hours) * 60.0


def _day_title(segments: Sequence[RouteSegment], indices: Sequence[int]) -> str:
    start = segments[indices[0]].from_location.name
    end = segments[indices[-1]].to_location.name
    return f"{start} → {end}"


def _close_day(
    day_number: int,
    indices: List[int],
    segments: Sequence[RouteSegment],
    settings: TripSettings,
) -> TripDay:
    distance = sum(segments[i].distance_km for i in indices)
    drive = sum(segments[i].duration_minutes for i in indices)

    day_type = DayType.PLANNED
    title = _day_title(segments, indices)
    override = settings.override_for(day_number)
    if override is not None:
        if override.day_type is not None:
            day_type = override.day_type
        if override.title:
            title = override.title

    return TripDay(
        day_number=day_number,
        segment_indices=list(indices),
        day_type=day_type,
        title=title,
        totals=DayTotals(
            distance_km=round(distance, 1),
            drive_time_minutes=round(drive, 1),
        ),
    )


def split_into_days(
    segments: Sequence[RouteSegment],
    settings: TripSettings,
) -> List[TripDay]:
    """
    Greedily pack legs into driving days.

    A day is closed before a leg that would push it past
    (max_drive_hours + tolerance_hours). Landing exactly on the cap still fits.
    A single leg longer than the cap is kept whole as its own day. Beast mode
    puts everything in one day. Every day but the last gets an overnight stop
    at its final location.
    """
    if not segments:
        return []

    cap = day_cap_minutes(settings)
    groups: List[List[int]] = []
    current: List[int] = []
    running = 0.0

    for i, seg in enumerate(segments):
        duration = seg.duration_minutes
        if not settings.beast_mode and current and running + duration > cap:
            groups.append(current)
            current = []
            running = 0.0
        current.append(i)
        running += duration
    groups.append(current)

    days: List[TripDay] = []
    for n, indices in enumerate(groups, start=1):
        day = _close_day(n, indices, segments, settings)
        if n < len(groups):
            terminal = segments[indices[-1]].to_location
            day = day.model_copy(update={"overnight": overnight_stop(n, terminal, settings)})
        days.append(day)

    logger.debug(
        "Split %d segments into %d days (cap %.0f min, beast_mode=%s)",
        len(segments), len(days), cap, settings.beast_mode,
    )
    return days
