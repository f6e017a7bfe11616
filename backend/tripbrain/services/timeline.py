# backend/tripbrain/services/timeline.py

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from ..schemas.itinerary import (
    EventType,
    StopType,
    SuggestedStop,
    Timeline,
    TimelineEvent,
    TimezoneChange,
    TripDay,
)
from ..schemas.route import RouteSegment
from ..schemas.settings import TripSettings
from .segment_analyzer import timezone_for_longitude

logger = logging.getLogger(__name__)

MIN_REST_HOURS = 7
EARLIEST_TRANSIT_HOUR = 5
LATEST_TRANSIT_HOUR = 10

# Stop types that show up as their own event inside a driving day.
STOP_EVENT_TYPES: Dict[StopType, Optional[EventType]] = {
    StopType.FUEL: EventType.FUEL,
    StopType.BREAK: EventType.BREAK,
    StopType.MEAL: EventType.MEAL,
    StopType.QUICK_MEAL: EventType.QUICK_MEAL,
    StopType.OVERNIGHT: None,  # rendered as the day's overnight event
    StopType.DRIVE: None,
}


# ---------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------

def mirror_round_trip(segments: Sequence[RouteSegment]) -> List[RouteSegment]:
    """
    Append the return journey: the outbound legs reversed, endpoints swapped.

    Analyzer annotations are cleared on the return legs so they can be
    analyzed fresh.
    """
    outbound = list(segments)
    back = [
        seg.model_copy(update={
            "from_location": seg.to_location,
            "to_location": seg.from_location,
            "warnings": [],
            "suggested_break": False,
            "timezone": None,
            "timezone_crossing": False,
            "timezone_shift_hours": 0.0,
        })
        for seg in reversed(outbound)
    ]
    return outbound + back


def mirror_index(after_segment_index: int, total_segments: int) -> int:
    return total_segments - 1 - after_segment_index


def apply_mirror_indices(stops: Sequence[SuggestedStop], total_segments: int) -> List[SuggestedStop]:
    """Tag accepted stops with their twin leg on the other half of a round trip."""
    out: List[SuggestedStop] = []
    for s in stops:
        if s.accepted:
            s = s.model_copy(update={
                "mirror_segment_index": mirror_index(s.after_segment_index, total_segments)
            })
        out.append(s)
    return out


# ---------------------------------------------------------------------
# Clock helpers
# ---------------------------------------------------------------------

def transit_hour(settings: TripSettings) -> int:
    """Default departure hour for days after the first."""
    h = round(settings.target_arrival_hour - settings.max_drive_hours)
    return max(EARLIEST_TRANSIT_HOUR, min(LATEST_TRANSIT_HOUR, int(h)))


def next_departure(prev_arrival: datetime, settings: TripSettings) -> datetime:
    """
    Departure after a night stop: the transit hour on the arrival's calendar
    day, or the day after when that would leave less than MIN_REST_HOURS.
    """
    dep = prev_arrival.replace(hour=transit_hour(settings), minute=0, second=0, microsecond=0)
    if dep - prev_arrival < timedelta(hours=MIN_REST_HOURS):
        dep += timedelta(days=1)
    return dep


def _minutes(n: float) -> timedelta:
    return timedelta(minutes=n)


# ---------------------------------------------------------------------
# Day simulation
# ---------------------------------------------------------------------

class _DayRun:
    """Result of laying one day's legs and stops onto a clock."""

    def __init__(self) -> None:
        self.events: List[TimelineEvent] = []
        self.arrival: Optional[datetime] = None
        self.stop_minutes = 0.0
        self.tz_changes: List[TimezoneChange] = []
        self.carry_hours = 0.0  # backward clock change still owed
        self.distance_end = 0.0
        self.timezone: Optional[str] = None


def _index_stops(
    stops: Sequence[SuggestedStop],
) -> Tuple[Dict[int, List[SuggestedStop]], Dict[int, List[SuggestedStop]]]:
    boundary: Dict[int, List[SuggestedStop]] = defaultdict(list)
    en_route: Dict[int, List[SuggestedStop]] = defaultdict(list)
    for s in stops:
        if not s.accepted or STOP_EVENT_TYPES[s.type] is None:
            continue
        if s.en_route_minutes is None:
            boundary[s.after_segment_index].append(s)
        else:
            en_route[s.after_segment_index].append(s)
    for lst in en_route.values():
        lst.sort(key=lambda s: s.en_route_minutes or 0.0)
    return boundary, en_route


def _run_day(
    day: TripDay,
    departure: datetime,
    segments: Sequence[RouteSegment],
    boundary: Dict[int, List[SuggestedStop]],
    en_route: Dict[int, List[SuggestedStop]],
    distance_start: float,
    timezone: Optional[str],
) -> _DayRun:
    run = _DayRun()
    d = day.day_number
    seq = 0

    def emit(
        etype: EventType,
        start: datetime,
        minutes: float,
        location: str,
        distance: float,
        segment_index: Optional[int] = None,
        stop: Optional[SuggestedStop] = None,
    ) -> datetime:
        nonlocal seq
        end = start + _minutes(minutes)
        run.events.append(TimelineEvent(
            id=f"d{d}-{seq}-{etype.value}",
            type=etype,
            day_number=d,
            start=start,
            end=end,
            duration_minutes=round(minutes, 1),
            segment_index=segment_index,
            stop=stop,
            location_name=location,
            distance_from_origin_km=round(distance, 1),
            timezone=timezone,
        ))
        seq += 1
        return end

    clock = departure
    distance = distance_start
    first = segments[day.segment_indices[0]].from_location
    emit(EventType.DEPARTURE, clock, 0.0, first.name, distance)

    for pos, i in enumerate(day.segment_indices):
        seg = segments[i]
        duration = max(0.0, seg.duration_minutes)
        speed = seg.distance_km / duration if duration > 0 else 0.0
        driven = 0.0

        for st in en_route.get(i, []):
            at = min(max(st.en_route_minutes or 0.0, driven), duration)
            if at > driven:
                clock = emit(EventType.DRIVE, clock, at - driven, seg.to_location.name,
                             distance + speed * at, segment_index=i)
            driven = at
            clock = emit(STOP_EVENT_TYPES[st.type], clock, st.duration_minutes,
                         st.location_name or f"En route to {seg.to_location.name}",
                         distance + speed * at, segment_index=i, stop=st)
            run.stop_minutes += st.duration_minutes

        if duration > driven or duration == 0:
            clock = emit(EventType.DRIVE, clock, duration - driven, seg.to_location.name,
                         distance + seg.distance_km, segment_index=i)
        distance += seg.distance_km

        # Local clock jumps at the end of a leg that changes zone.
        if seg.timezone_crossing and seg.timezone_shift_hours != 0:
            shift = seg.timezone_shift_hours
            applied = shift
            if shift < 0:
                room_hours = (clock - departure).total_seconds() / 3600.0
                applied = -min(-shift, room_hours)
                run.carry_hours += shift - applied
            clock = clock + timedelta(hours=applied)
            run.tz_changes.append(TimezoneChange(
                segment_index=i,
                from_timezone=timezone,
                to_timezone=seg.timezone,
                shift_hours=shift,
                applied_hours=applied,
            ))
        if seg.timezone:
            timezone = seg.timezone

        for st in boundary.get(i, []):
            clock = emit(STOP_EVENT_TYPES[st.type], clock, st.duration_minutes,
                         st.location_name or seg.to_location.name, distance,
                         segment_index=i, stop=st)
            run.stop_minutes += st.duration_minutes

        is_last = pos == len(day.segment_indices) - 1
        if not is_last and not boundary.get(i):
            emit(EventType.WAYPOINT, clock, 0.0, seg.to_location.name, distance, segment_index=i)

    last = segments[day.segment_indices[-1]].to_location
    emit(EventType.ARRIVAL, clock, 0.0, last.name, distance)

    run.arrival = clock
    run.distance_end = distance
    run.timezone = timezone
    return run


def _start_timezone(days: Sequence[TripDay], segments: Sequence[RouteSegment]) -> Optional[str]:
    for day in days:
        if day.segment_indices:
            loc = segments[day.segment_indices[0]].from_location
            if loc.is_resolved:
                return timezone_for_longitude(loc.lng)
            return None
    return None


def _target_arrival(settings: TripSettings) -> Optional[datetime]:
    if not settings.use_arrival_time or settings.arrival_date is None or settings.arrival_time is None:
        return None
    return datetime.combine(settings.arrival_date, settings.arrival_time)


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def build_timeline(
    days: Sequence[TripDay],
    segments: Sequence[RouteSegment],
    stops: Sequence[SuggestedStop],
    settings: TripSettings,
) -> Timeline:
    """
    Lay every day onto a clock.

    Day 1 leaves at the configured departure (or, when planning backward
    from an arrival time, the last day is placed so it lands on time and
    earlier days leave at the transit hour of the preceding calendar day).
    Clock changes at zone crossings move the displayed local time only.
    A backward change never moves an event before the day's departure; what
    is left over is applied overnight.
    """
    days = [d for d in days if d.segment_indices]
    if not days:
        return Timeline(events=[], days=[])

    boundary, en_route = _index_stops(stops)
    tz0 = _start_timezone(days, segments)

    # Distance from origin at the start of each day
    starts: List[float] = []
    acc = 0.0
    for day in days:
        starts.append(acc)
        acc += sum(segments[i].distance_km for i in day.segment_indices)

    target = _target_arrival(settings)
    fixed_departures: Optional[List[datetime]] = None
    if target is not None:
        # Probe the last day from an arbitrary start to learn its local span.
        probe_start = datetime.combine(target.date(), datetime.min.time())
        probe = _run_day(days[-1], probe_start, segments, boundary, en_route, starts[-1], None)
        last_dep = probe_start + (target - probe.arrival)
        fixed_departures = [last_dep]
        for _ in range(len(days) - 1):
            prev_date = fixed_departures[0].date() - timedelta(days=1)
            fixed_departures.insert(0, datetime.combine(prev_date, datetime.min.time()).replace(
                hour=transit_hour(settings)
            ))

    events: List[TimelineEvent] = []
    runs: List[_DayRun] = []
    departures: List[datetime] = []
    tz = tz0
    carry = 0.0

    for n, day in enumerate(days):
        if fixed_departures is not None:
            dep = fixed_departures[n]
        elif n == 0:
            dep = datetime.combine(settings.departure_date, settings.departure_time)
        else:
            basis = runs[-1].arrival + timedelta(hours=carry)
            dep = next_departure(basis, settings)

        run = _run_day(day, dep, segments, boundary, en_route, starts[n], tz)
        carry = run.carry_hours
        tz = run.timezone
        departures.append(dep)
        runs.append(run)

    out_days: List[TripDay] = []
    for n, (day, run) in enumerate(zip(days, runs)):
        events.extend(run.events)
        update = {
            "totals": day.totals.model_copy(update={
                "stop_time_minutes": round(run.stop_minutes, 1),
                "departure_time": departures[n],
                "arrival_time": run.arrival,
            }),
            "timezone_changes": run.tz_changes,
        }
        if n < len(days) - 1:
            next_dep = departures[n + 1]
            if day.overnight is not None:
                update["overnight"] = day.overnight.model_copy(update={
                    "check_in": run.arrival,
                    "check_out": next_dep,
                })
            loc = segments[day.segment_indices[-1]].to_location.name
            minutes = max(0.0, (next_dep - run.arrival).total_seconds() / 60.0)
            events.append(TimelineEvent(
                id=f"d{day.day_number}-overnight",
                type=EventType.OVERNIGHT,
                day_number=day.day_number,
                start=run.arrival,
                end=max(next_dep, run.arrival),
                duration_minutes=round(minutes, 1),
                location_name=loc,
                distance_from_origin_km=round(run.distance_end, 1),
                timezone=run.timezone,
            ))
        out_days.append(day.model_copy(update=update))

    logger.debug("Built timeline: %d events over %d days", len(events), len(out_days))
    return Timeline(events=events, days=out_days)
