# backend/tripbrain/api/routes/profile.py

from typing import List

from fastapi import APIRouter, Depends

from ...schemas.profile import ProfileDefaults, RecordTripRequest, TripRecord
from ...schemas.settings import TripSettings
from ...services.profile import (
    InMemoryProfileRepository,
    ProfileRepository,
    apply_adaptive_defaults,
    compute_adaptive_defaults,
    is_meaningful,
    record_from_settings,
    record_trip,
)

router = APIRouter()

_repository = InMemoryProfileRepository()


def get_profile_repository() -> ProfileRepository:
    return _repository


@router.post("/{user_id}/trips", response_model=List[TripRecord])
async def add_trip(
    user_id: str,
    req: RecordTripRequest,
    repo: ProfileRepository = Depends(get_profile_repository),
) -> List[TripRecord]:
    """
    Remember a committed trip. Only the most recent trips are kept.
    """
    record = record_from_settings(
        req.settings, budget_profile=req.budget_profile, had_gas_buffer=req.had_gas_buffer
    )
    return record_trip(repo, user_id, record)


@router.get("/{user_id}/defaults", response_model=ProfileDefaults)
async def defaults(
    user_id: str,
    repo: ProfileRepository = Depends(get_profile_repository),
) -> ProfileDefaults:
    learned = compute_adaptive_defaults(repo.list_trips(user_id))
    return ProfileDefaults(
        defaults=learned,
        meaningful=learned is not None and is_meaningful(learned),
    )


@router.post("/{user_id}/settings", response_model=TripSettings)
async def personalize(
    user_id: str,
    settings: TripSettings,
    repo: ProfileRepository = Depends(get_profile_repository),
) -> TripSettings:
    """
    Swap in learned hotel and meal prices when they differ enough from the
    stock ones.
    """
    learned = compute_adaptive_defaults(repo.list_trips(user_id))
    if learned is None or not is_meaningful(learned):
        return settings
    return apply_adaptive_defaults(settings, learned)
