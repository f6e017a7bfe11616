# backend/tripbrain/services/segment_analyzer.py

from __future__ import annotations

import logging
import math
import re
from typing import List, Optional, Sequence, Tuple

from ..config import SegmentPolicy, load_segment_policy
from ..schemas.route import (
    Location,
    RouteSegment,
    SegmentWarning,
    SegmentWarningType,
    WarningSeverity,
)
from ..schemas.settings import TripSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Country detection
# ---------------------------------------------------------------------

# Long names match as substrings; two/three-letter abbreviations only match a
# whole token ("ON" in "Toronto, ON", never the "on" inside "Toronto").
COUNTRY_INDICATORS = {
    "CA": [
        "canada", "ontario", "quebec", "québec", "alberta", "british columbia",
        "manitoba", "saskatchewan", "nova scotia", "new brunswick",
        "newfoundland", "prince edward island", "yukon", "nunavut",
        "northwest territories",
        "on", "qc", "ab", "bc", "mb", "sk", "ns", "nb", "nl", "pe", "yt", "nt", "nu",
    ],
    "US": [
        "usa", "united states", "new york", "washington", "michigan", "california",
        "oregon", "montana", "idaho", "north dakota", "minnesota", "wisconsin",
        "illinois", "ohio", "pennsylvania", "vermont", "maine", "new hampshire",
        "massachusetts", "texas", "arizona", "nevada", "utah", "colorado",
        "wyoming", "florida",
        "us", "ny", "wa", "mi", "or", "mt", "id", "nd", "mn", "wi", "il",
        "oh", "pa", "vt", "me", "nh", "ma", "tx", "az", "nv", "ut", "co", "wy", "fl",
    ],
    "MX": [
        "mexico", "méxico", "baja california", "sonora", "chihuahua",
        "coahuila", "nuevo león", "nuevo leon", "tamaulipas",
        "mx",
    ],
}

# "CA" is left out of the US list, it reads as Canada far more often.
_COUNTRY_ORDER = ("MX", "US", "CA")

_TOKEN_RE = re.compile(r"[a-zà-ÿ]+")


def _place_text(loc: Location) -> str:
    return (loc.address or loc.name or "").lower()


def detect_country(loc: Location) -> Optional[str]:
    """Best-effort country code from a location's administrative text."""
    text = _place_text(loc)
    if not text:
        return None
    tokens = set(_TOKEN_RE.findall(text))

    # Long names first so "New York" beats a stray "on" token.
    for code in _COUNTRY_ORDER:
        for ind in COUNTRY_INDICATORS[code]:
            if len(ind) > 3 and ind in text:
                return code
    for code in _COUNTRY_ORDER:
        for ind in COUNTRY_INDICATORS[code]:
            if len(ind) <= 3 and ind in tokens:
                return code
    return None


def crosses_border(from_loc: Location, to_loc: Location) -> bool:
    a = detect_country(from_loc)
    b = detect_country(to_loc)
    return a is not None and b is not None and a != b


# ---------------------------------------------------------------------
# Timezones (standard offsets, longitude bands)
# ---------------------------------------------------------------------

TIMEZONE_OFFSETS = {
    "America/Los_Angeles": -8.0,
    "America/Denver": -7.0,
    "America/Chicago": -6.0,
    "America/New_York": -5.0,
    "America/Toronto": -5.0,
    "America/Halifax": -4.0,
    "America/St_Johns": -3.5,
}


def timezone_for_longitude(lng: float) -> str:
    if lng < -120:
        return "America/Los_Angeles"
    if lng < -105:
        return "America/Denver"
    if lng < -90:
        return "America/Chicago"
    if lng < -75:
        return "America/New_York"
    if lng < -66:
        return "America/Toronto"
    if lng < -59:
        return "America/Halifax"
    return "America/St_Johns"


def timezone_shift_hours(from_lng: float, to_lng: float) -> float:
    """Local clock change when driving from one longitude band to another."""
    return (
        TIMEZONE_OFFSETS[timezone_for_longitude(to_lng)]
        - TIMEZONE_OFFSETS[timezone_for_longitude(from_lng)]
    )


def _detect_timezone_crossing(
    seg: RouteSegment, threshold: float
) -> Tuple[bool, Optional[str], float]:
    a, b = seg.from_location, seg.to_location
    if not a.is_resolved or not b.is_resolved:
        return False, None, 0.0

    label = timezone_for_longitude(b.lng)
    if abs(b.lng - a.lng) <= threshold:
        return False, label, 0.0
    return True, label, timezone_shift_hours(a.lng, b.lng)


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def analyze_segments(
    segments: Sequence[RouteSegment],
    policy: Optional[SegmentPolicy] = None,
) -> List[RouteSegment]:
    """
    Return annotated copies of the legs.

    Adds long-drive / border / timezone warnings, the break suggestion flag
    and the timezone label + clock shift. The input legs are left untouched.
    """
    policy = policy or load_segment_policy()
    out: List[RouteSegment] = []

    for i, seg in enumerate(segments):
        warnings: List[SegmentWarning] = []
        hours = seg.duration_minutes / 60.0

        if seg.duration_minutes >= policy.long_drive_critical_minutes:
            warnings.append(SegmentWarning(
                id=f"{SegmentWarningType.LONG_DRIVE.value}-{i}",
                type=SegmentWarningType.LONG_DRIVE,
                severity=WarningSeverity.CRITICAL,
                message=f"{hours:.1f}h drive. Consider breaking this leg into multiple days.",
            ))
        elif seg.duration_minutes >= policy.long_drive_warning_minutes:
            warnings.append(SegmentWarning(
                id=f"{SegmentWarningType.LONG_DRIVE.value}-{i}",
                type=SegmentWarningType.LONG_DRIVE,
                severity=WarningSeverity.WARNING,
                message=f"{hours:.1f}h drive. Take a break every 2 hours.",
            ))

        if crosses_border(seg.from_location, seg.to_location):
            warnings.append(SegmentWarning(
                id=f"{SegmentWarningType.BORDER_CROSSING.value}-{i}",
                type=SegmentWarningType.BORDER_CROSSING,
                severity=WarningSeverity.WARNING,
                message="International border crossing. Bring passports and check customs rules.",
            ))

        crosses_tz, tz_label, shift = _detect_timezone_crossing(
            seg, policy.timezone_threshold_degrees
        )
        if crosses_tz:
            if shift > 0:
                msg = f"Clocks move forward {abs(shift):g}h (now {tz_label})."
            elif shift < 0:
                msg = f"Clocks move back {abs(shift):g}h (now {tz_label})."
            else:
                msg = f"Long east-west leg, clocks stay on {tz_label}."
            warnings.append(SegmentWarning(
                id=f"{SegmentWarningType.TIMEZONE.value}-{i}",
                type=SegmentWarningType.TIMEZONE,
                severity=WarningSeverity.INFO,
                message=msg,
            ))

        out.append(seg.model_copy(update={
            "warnings": warnings,
            "suggested_break": seg.duration_minutes > policy.break_suggestion_minutes,
            "timezone": tz_label,
            "timezone_crossing": crosses_tz,
            "timezone_shift_hours": shift,
        }))

    logger.debug("Analyzed %d segments", len(out))
    return out


def generate_pacing_suggestions(
    max_day_minutes: float,
    settings: TripSettings,
    already_split: bool = False,
) -> List[str]:
    """
    Advisory text for the longest driving day.

    Never changes the plan. `already_split` suppresses the "split it" hint
    once the trip has been planned as multi-day.
    """
    suggestions: List[str] = []
    day_hours = max_day_minutes / 60.0
    cap = settings.max_drive_hours if settings.max_drive_hours > 0 else 8.0
    days_needed = math.ceil(day_hours / cap) if day_hours > 0 else 0

    if days_needed > 1 and not already_split:
        suggestions.append(
            f"This is a {day_hours:.1f}-hour drive. Consider splitting it into {days_needed} days."
        )

    if day_hours > 8 and settings.departure_time.hour > 12:
        suggestions.append(
            f"Leaving at {settings.departure_time.strftime('%H:%M')} means driving after dark. "
            "Consider departing between 6 and 8 AM instead."
        )

    if settings.num_drivers > 1:
        swap = day_hours / settings.num_drivers
        suggestions.append(
            f"With {settings.num_drivers} drivers, swap every {swap:.1f} hours to stay fresh."
        )

    breaks = int(day_hours // 2)
    if breaks > 0:
        plural = "s" if breaks > 1 else ""
        suggestions.append(
            f"Plan for {breaks} break{plural} (every 2-3 hours) to stretch and refuel."
        )

    return suggestions
