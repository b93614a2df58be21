from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class PlacesConfig:
    # Server-side secret for geocoding and places search.
    api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    # Browser-exposed key, only used to build photo URLs.
    public_api_key: str = os.getenv("GOOGLE_MAPS_PUBLIC_KEY", "")
    places_base_url: str = "https://places.googleapis.com/v1"
    geocode_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    timeout: float = 15.0
    page_size: int = 20
    photo_max_height_px: int = 300


DEFAULT_PLACES_CONFIG = PlacesConfig()
