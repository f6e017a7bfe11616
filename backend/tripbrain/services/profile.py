from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from ..schemas.profile import AdaptiveDefaults, TripRecord
from ..schemas.settings import TripSettings

logger = logging.getLogger(__name__)

MAX_TRIP_HISTORY = 10
# trips ~12 months old carry ~17% weight
DECAY_LAMBDA = 0.15
ADAPTIVE_CONFIDENCE_THRESHOLD = 3
DAYS_PER_MONTH = 30.0

BASELINE_HOTEL_PER_NIGHT = 150.0
BASELINE_MEAL_PER_DAY = 50.0
MEANINGFUL_DELTA = 0.10


class ProfileRepository(Protocol):
    def list_trips(self, user_id: str) -> List[TripRecord]:
        ...

    def save_trips(self, user_id: str, trips: Sequence[TripRecord]) -> None:
        ...


class InMemoryProfileRepository:
    def __init__(self) -> None:
        self._trips: Dict[str, List[TripRecord]] = {}

    def list_trips(self, user_id: str) -> List[TripRecord]:
        return list(self._trips.get(user_id, []))

    def save_trips(self, user_id: str, trips: Sequence[TripRecord]) -> None:
        self._trips[user_id] = list(trips)


def record_from_settings(settings: TripSettings, budget_profile: str = "standard", had_gas_buffer: bool = True) -> TripRecord:
    length = 0
    if settings.return_date is not None:
        length = max(0, (settings.return_date - settings.departure_date).days)
    return TripRecord(
        trip_length_days=length,
        budget_profile=budget_profile,
        hotel_price_per_night=settings.hotel_price_per_night,
        meal_price_per_day=settings.meal_price_per_day,
        num_travelers=settings.num_travelers,
        had_gas_buffer=had_gas_buffer,
    )


def record_trip(repo: ProfileRepository, user_id: str, record: TripRecord) -> List[TripRecord]:
    """Append a trip and keep only the most recent MAX_TRIP_HISTORY."""
    trips = repo.list_trips(user_id) + [record]
    trips = trips[-MAX_TRIP_HISTORY:]
    repo.save_trips(user_id, trips)
    return trips


def recency_weight(recorded_at: datetime, now: Optional[datetime] = None) -> float:
    now = now or datetime.now(timezone.utc)
    months_ago = max(0.0, (now - recorded_at).total_seconds() / 86400.0 / DAYS_PER_MONTH)
    return math.exp(-DECAY_LAMBDA * months_ago)


def _weighted_avg(pairs: Sequence[Tuple[float, float]]) -> float:
    total = sum(w for _, w in pairs)
    if total == 0:
        return 0.0
    return sum(v * w for v, w in pairs) / total


def compute_adaptive_defaults(
    trips: Sequence[TripRecord],
    now: Optional[datetime] = None,
) -> Optional[AdaptiveDefaults]:
    """
    Recency-weighted hotel and meal prices from past trips.

    None until there are at least ADAPTIVE_CONFIDENCE_THRESHOLD trips.
    """
    if len(trips) < ADAPTIVE_CONFIDENCE_THRESHOLD:
        return None

    weights = [recency_weight(t.recorded_at, now) for t in trips]
    hotel = _weighted_avg([(t.hotel_price_per_night, w) for t, w in zip(trips, weights)])
    meal = _weighted_avg([(t.meal_price_per_day, w) for t, w in zip(trips, weights)])
    return AdaptiveDefaults(
        hotel_price_per_night=round(hotel),
        meal_price_per_day=round(meal),
        trip_count=len(trips),
    )


def is_meaningful(defaults: AdaptiveDefaults) -> bool:
    """True when either price is more than 10% away from the baseline."""
    hotel_delta = abs(defaults.hotel_price_per_night - BASELINE_HOTEL_PER_NIGHT) / BASELINE_HOTEL_PER_NIGHT
    meal_delta = abs(defaults.meal_price_per_day - BASELINE_MEAL_PER_DAY) / BASELINE_MEAL_PER_DAY
    return hotel_delta > MEANINGFUL_DELTA or meal_delta > MEANINGFUL_DELTA


def apply_adaptive_defaults(settings: TripSettings, defaults: Optional[AdaptiveDefaults]) -> TripSettings:
    if defaults is None:
        return settings
    logger.debug("Applying adaptive defaults from %d trips", defaults.trip_count)
    return settings.model_copy(update={
        "hotel_price_per_night": defaults.hotel_price_per_night,
        "meal_price_per_day": defaults.meal_price_per_day,
    })
