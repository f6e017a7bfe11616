# backend/tripbrain/config.py

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel


def _get_float(name: str, default: float) -> float:
    """
    Read a positive float from the environment.

    Empty, unparsable or non-positive values fall back to the default.
    """
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        v = float(raw)
        return v if v > 0 else default
    except ValueError:
        return default


def _get_str(name: str, default: str) -> str:
    raw = (os.getenv(name) or "").strip()
    return raw or default


# ---------------------------------------------------------------------
# Provider settings
# ---------------------------------------------------------------------

MAPBOX_DIRECTIONS_URL = "https://api.mapbox.com/directions/v5/mapbox/driving"
DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"


def get_mapbox_token() -> Optional[str]:
    token = (os.getenv("MAPBOX_TOKEN") or "").strip()
    return token or None


def get_route_duration_factor() -> float:
    """
    Multiplier applied to provider durations.
    Example: 1.10 = +10% time.
    """
    return _get_float("ROUTE_DURATION_FACTOR", 1.0)


def get_overpass_url() -> str:
    return _get_str("OVERPASS_URL", DEFAULT_OVERPASS_URL)


def get_search_debounce_seconds() -> float:
    return _get_float("SEARCH_DEBOUNCE_SECONDS", 0.3)


def get_log_level() -> str:
    return _get_str("TRIPBRAIN_LOG_LEVEL", "INFO").upper()


# ---------------------------------------------------------------------
# Engine policies
# ---------------------------------------------------------------------

class FeasibilityPolicy(BaseModel):
    budget_tight_ratio: float = 0.85
    budget_over_ratio: float = 1.0
    drive_grace_hours: float = 1.0
    drive_tight_ratio: float = 0.90
    late_arrival_hour: int = 22
    early_departure_hour: int = 4
    min_drivers_for_rotation: int = 2
    min_breakdown_minutes: int = 120
    day1_arrival_buffer_hours: float = 0.5


class DiscoveryPolicy(BaseModel):
    no_brainer_score: float = 70.0
    no_brainer_max_detour: float = 15.0
    worth_detour_score: float = 50.0
    worth_detour_max_detour: float = 10.0
    default_time_budget: int = 60
    max_time_budget: int = 240


class SegmentPolicy(BaseModel):
    timezone_threshold_degrees: float = 10.0
    long_drive_warning_minutes: float = 240.0
    long_drive_critical_minutes: float = 360.0
    break_suggestion_minutes: float = 180.0


def load_feasibility_policy() -> FeasibilityPolicy:
    d = FeasibilityPolicy()
    return FeasibilityPolicy(
        budget_tight_ratio=_get_float("TRIPBRAIN_BUDGET_TIGHT_RATIO", d.budget_tight_ratio),
        budget_over_ratio=_get_float("TRIPBRAIN_BUDGET_OVER_RATIO", d.budget_over_ratio),
        drive_grace_hours=_get_float("TRIPBRAIN_DRIVE_GRACE_HOURS", d.drive_grace_hours),
        late_arrival_hour=int(_get_float("TRIPBRAIN_LATE_ARRIVAL_HOUR", d.late_arrival_hour)),
    )


def load_discovery_policy() -> DiscoveryPolicy:
    d = DiscoveryPolicy()
    return DiscoveryPolicy(
        no_brainer_score=_get_float("TRIPBRAIN_NO_BRAINER_SCORE", d.no_brainer_score),
        no_brainer_max_detour=_get_float("TRIPBRAIN_NO_BRAINER_MAX_DETOUR", d.no_brainer_max_detour),
        worth_detour_score=_get_float("TRIPBRAIN_WORTH_DETOUR_SCORE", d.worth_detour_score),
        worth_detour_max_detour=_get_float("TRIPBRAIN_WORTH_DETOUR_MAX_DETOUR", d.worth_detour_max_detour),
    )


def load_segment_policy() -> SegmentPolicy:
    d = SegmentPolicy()
    return SegmentPolicy(
        timezone_threshold_degrees=_get_float(
            "TRIPBRAIN_TIMEZONE_THRESHOLD_DEGREES", d.timezone_threshold_degrees
        ),
    )
