import json
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel


class CatalogDestination(BaseModel):
    """
    A curated road-trip target.

    Popular destinations in Canada and the US, reachable from central Canada.
    """
    name: str
    lat: float
    lng: float
    category: str
    description: str = ""
    tags: List[str] = []
    image_url: Optional[str] = None

    @property
    def slug(self) -> str:
        return re.sub(r"\s+", "-", self.name.strip().lower())


def _catalog_data_path() -> Path:
    """
    Return the path to destinations.json inside tripbrain/data.
    """
    # This file: backend/tripbrain/services/destination_catalog.py
    # data dir:  backend/tripbrain/data/destinations.json
    services_dir = Path(__file__).resolve().parent
    data_dir = services_dir.parent / "data"
    return data_dir / "destinations.json"


def _load_catalog(path: Optional[Path] = None) -> List[dict]:
    """
    Load the raw destination list from JSON.

    Raises FileNotFoundError or json.JSONDecodeError if the bundled file is
    missing or broken; the API layer turns that into a 500.
    """
    path = path or _catalog_data_path()
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    destinations = data.get("destinations", [])
    if not isinstance(destinations, list):
        raise ValueError("Invalid destinations.json format: 'destinations' should be a list")

    return destinations


def load_destinations(path: Optional[Path] = None) -> List[CatalogDestination]:
    return [CatalogDestination(**d) for d in _load_catalog(path)]
