from __future__ import annotations

import logging
import urllib.parse
from typing import Any

import requests
from pydantic import ValidationError

from ..recommendations.models import (
    Candidate,
    Coordinate,
    GeocodeResponse,
    QueryMode,
    SearchPreferences,
    ServiceFlags,
)
from .config import DEFAULT_PLACES_CONFIG, PlacesConfig

logger = logging.getLogger(__name__)

FIELD_MASK = ",".join(
    [
        "places.id",
        "places.displayName",
        "places.location",
        "places.shortFormattedAddress",
        "places.googleMapsUri",
        "places.types",
        "places.rating",
        "places.userRatingCount",
        "places.priceLevel",
        "places.currentOpeningHours.openNow",
        "places.delivery",
        "places.dineIn",
        "places.takeout",
        "places.servesVegetarianFood",
        "places.photos",
    ]
)


class PlacesError(Exception):
    """Base error for the places provider. ``status_code`` is the HTTP status to report."""

    status_code = 502

    def __init__(self, message: str, upstream: str | None = None) -> None:
        super().__init__(message)
        self.upstream = upstream


class PlacesNotConfigured(PlacesError):
    status_code = 500


class PlacesProviderError(PlacesError):
    status_code = 502


class NoGeocodeResult(PlacesError):
    status_code = 404


def _require_key(config: PlacesConfig) -> str:
    if not config.api_key:
        raise PlacesNotConfigured("Server missing GOOGLE_MAPS_API_KEY")
    return config.api_key


def _check_response(response: requests.Response, what: str) -> None:
    if not response.ok:
        logger.warning("%s returned HTTP %s: %s", what, response.status_code, response.text[:500])
        raise PlacesProviderError(f"{what} error (HTTP {response.status_code})", upstream=response.text)


# ── Geocoding ───────────────────────────────────────────────────────────


def geocode(query: str, config: PlacesConfig = DEFAULT_PLACES_CONFIG) -> GeocodeResponse:
    """Resolve a free-text location to its first geocoding result."""
    key = _require_key(config)
    try:
        response = requests.get(
            config.geocode_url,
            params={"address": query, "key": key},
            timeout=config.timeout,
        )
    except requests.RequestException as exc:
        raise PlacesProviderError(f"Geocode provider unreachable: {exc}") from exc
    _check_response(response, "Geocode provider")

    try:
        data = response.json()
    except ValueError as exc:
        raise PlacesProviderError("Geocode provider returned invalid JSON", upstream=response.text) from exc
    status = data.get("status")
    if status not in (None, "OK", "ZERO_RESULTS"):
        raise PlacesProviderError(
            f"Geocode provider error: {status}",
            upstream=data.get("error_message"),
        )

    results = data.get("results") or []
    first = results[0] if results else {}
    location = (first.get("geometry") or {}).get("location") or {}
    lat, lng = location.get("lat"), location.get("lng")
    if lat is None or lng is None:
        raise NoGeocodeResult("No results")

    return GeocodeResponse(lat=lat, lng=lng, formatted=first.get("formatted_address"))


# ── Places search ───────────────────────────────────────────────────────


def _circle(prefs: SearchPreferences) -> dict[str, Any]:
    return {
        "circle": {
            "center": {
                "latitude": prefs.center.latitude,
                "longitude": prefs.center.longitude,
            },
            "radius": prefs.radius_meters,
        }
    }


def build_search_request(
    prefs: SearchPreferences,
    config: PlacesConfig = DEFAULT_PLACES_CONFIG,
) -> tuple[str, dict[str, Any], QueryMode]:
    """Return (url, json body, query mode) for a search.

    A cuisine keyword selects text search; otherwise a nearby search is used.
    """
    if prefs.cuisine.strip():
        body: dict[str, Any] = {
            "textQuery": f"{prefs.cuisine.strip()} restaurant",
            "includedType": "restaurant",
            "openNow": prefs.open_now,
            "minRating": prefs.min_rating,
            "locationBias": _circle(prefs),
            "pageSize": config.page_size,
        }
        if prefs.price_levels:
            body["priceLevels"] = sorted(level.value for level in prefs.price_levels)
        return f"{config.places_base_url}/places:searchText", body, QueryMode.keyword_search

    body = {
        "includedTypes": ["restaurant"],
        "locationRestriction": _circle(prefs),
        "maxResultCount": config.page_size,
        "rankPreference": "POPULARITY",
    }
    return f"{config.places_base_url}/places:searchNearby", body, QueryMode.proximity_search


def parse_place(raw: Any) -> Candidate | None:
    """Map a provider place record to a Candidate.

    Returns None for non-objects and for records with badly typed fields.
    """
    if not isinstance(raw, dict):
        return None
    try:
        return _build_candidate(raw)
    except ValidationError:
        logger.warning("Skipping malformed place record %r", raw.get("id"), exc_info=True)
        return None


def _build_candidate(raw: dict[str, Any]) -> Candidate:
    name = raw.get("displayName")
    if isinstance(name, dict):
        name = name.get("text")

    location = raw.get("location")
    if not isinstance(location, dict):
        location = {}
    coordinate = None
    if location.get("latitude") is not None and location.get("longitude") is not None:
        coordinate = Coordinate(latitude=location["latitude"], longitude=location["longitude"])

    hours = raw.get("currentOpeningHours")
    if not isinstance(hours, dict):
        hours = {}
    raw_photos = raw.get("photos")
    if not isinstance(raw_photos, list):
        raw_photos = []
    photos = [p["name"] for p in raw_photos if isinstance(p, dict) and p.get("name")]

    return Candidate(
        id=raw.get("id") or "",
        display_name=name or "",
        coordinate=coordinate,
        rating=raw.get("rating"),
        rating_count=raw.get("userRatingCount"),
        price_level=raw.get("priceLevel"),
        open_now=hours.get("openNow"),
        services=ServiceFlags(
            delivery=raw.get("delivery"),
            dine_in=raw.get("dineIn"),
            takeout=raw.get("takeout"),
        ),
        serves_vegetarian=raw.get("servesVegetarianFood"),
        address=raw.get("shortFormattedAddress") or "",
        maps_uri=raw.get("googleMapsUri") or "",
        photos=photos,
        types=raw.get("types") or [],
    )


def search_places(
    prefs: SearchPreferences,
    config: PlacesConfig = DEFAULT_PLACES_CONFIG,
) -> tuple[list[Candidate], QueryMode]:
    """Run one places search and return the parsed candidates with the query mode used."""
    key = _require_key(config)
    url, body, mode = build_search_request(prefs, config)
    headers = {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": key,
        "X-Goog-FieldMask": FIELD_MASK,
    }
    try:
        response = requests.post(url, headers=headers, json=body, timeout=config.timeout)
    except requests.RequestException as exc:
        raise PlacesProviderError(f"Places API unreachable: {exc}") from exc
    _check_response(response, "Places API")

    try:
        data = response.json()
    except ValueError as exc:
        raise PlacesProviderError("Places API returned invalid JSON", upstream=response.text) from exc

    places = data.get("places") if isinstance(data, dict) else None
    if not isinstance(places, list):
        places = []

    candidates = [c for c in (parse_place(p) for p in places) if c is not None]
    logger.info("Places %s returned %d candidates", mode.value, len(candidates))
    return candidates, mode


# ── Photos ──────────────────────────────────────────────────────────────


def photo_url(
    reference: str,
    api_key: str,
    max_height_px: int = 300,
    base_url: str = DEFAULT_PLACES_CONFIG.places_base_url,
) -> str | None:
    """Build a fetchable media URL for a photo reference using the browser key."""
    if not reference or not api_key:
        return None
    path = urllib.parse.quote(reference, safe="/")
    query = urllib.parse.urlencode({"key": api_key, "maxHeightPx": max_height_px})
    return f"{base_url}/{path}/media?{query}"
