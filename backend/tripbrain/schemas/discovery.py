# backend/tripbrain/schemas/discovery.py

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class Bucket(str, Enum):
    ALONG_WAY = "along_way"
    DESTINATION = "destination"


class Tier(str, Enum):
    NO_BRAINER = "no_brainer"
    WORTH_DETOUR = "worth_detour"
    IF_TIME = "if_time"


TIER_PRIORITY = {
    Tier.NO_BRAINER: 0,
    Tier.WORTH_DETOUR: 1,
    Tier.IF_TIME: 2,
}


class ActionState(str, Enum):
    PENDING = "pending"
    ADDED = "added"
    DISMISSED = "dismissed"


class POICandidate(BaseModel):
    """A raw place returned by a corridor or destination search."""
    id: str
    name: str
    category: str
    lat: float
    lng: float
    distance_from_route_km: float = 0.0
    segment_index: Optional[int] = None
    popularity_score: float = 50.0  # 0..100
    tags: dict = {}


class POISuggestion(BaseModel):
    id: str
    name: str
    category: str
    lat: float
    lng: float
    bucket: Bucket = Bucket.ALONG_WAY
    tier: Optional[Tier] = None
    distance_from_route_km: float = 0.0
    detour_time_minutes: float = 0.0
    fits_in_break_window: bool = False
    popularity_score: float = 50.0
    ranking_score: float = 0.0
    action_state: ActionState = ActionState.PENDING
    segment_index: Optional[int] = None
    mirror_segment_index: Optional[int] = None
    tags: dict = {}
    wiki_url: Optional[str] = None


# Alias used once a suggestion has been tiered by the discovery engine.
DiscoveredPOI = POISuggestion


class CorridorResult(BaseModel):
    segment_index: Optional[int] = None
    candidates: List[POICandidate] = []
    error: Optional[str] = None


class DiscoveryBatch(BaseModel):
    candidates: List[POICandidate] = []
    partial_results: bool = False
    failed_segments: List[Optional[int]] = []


class TierCounts(BaseModel):
    no_brainer: int = 0
    worth_detour: int = 0
    if_time: int = 0


class DiscoveryResult(BaseModel):
    pois: List[POISuggestion] = []
    tier_counts: TierCounts = TierCounts()
    total_detour_minutes: float = 0.0
