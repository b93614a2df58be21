from __future__ import annotations

import math

from .config import DEFAULT_SCORING_CONFIG, ScoringConfig
from .geo import distance_meters
from .models import Candidate, Coordinate, Dietary, SearchPreferences


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def rating_quality(candidate: Candidate, config: ScoringConfig = DEFAULT_SCORING_CONFIG) -> float:
    """Average rating scaled by confidence in the review volume."""
    rating = candidate.rating or 0.0
    count = candidate.rating_count or 0
    confidence = 1.0 - math.exp(-count / config.rating_confidence_scale)
    return _clamp01((rating / 5.0) * confidence)


def service_match(candidate: Candidate, prefs: SearchPreferences) -> float:
    asked = prefs.services.stated()
    if not asked:
        return 1.0
    offered = candidate.services.model_dump()
    matches = sum(1 for k, wanted in asked.items() if bool(offered.get(k)) == wanted)
    return matches / len(asked)


def dietary_match(candidate: Candidate, prefs: SearchPreferences) -> float:
    # Only vegetarian-only is enforced; "nonveg" and "both" impose nothing.
    if prefs.dietary == Dietary.vegetarian_only:
        return 1.0 if candidate.serves_vegetarian is True else 0.0
    return 1.0


def price_fit(
    candidate: Candidate,
    prefs: SearchPreferences,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> float:
    if not prefs.price_levels:
        return 1.0
    wanted = {level.value for level in prefs.price_levels}
    return 1.0 if candidate.price_level in wanted else config.price_mismatch_score


def distance_score(candidate: Candidate, center: Coordinate, prefs: SearchPreferences) -> float:
    if candidate.coordinate is None or not prefs.radius_meters:
        return 1.0
    d = distance_meters(center, candidate.coordinate)
    return _clamp01(1.0 - d / prefs.radius_meters)


def score_breakdown(
    candidate: Candidate,
    center: Coordinate,
    prefs: SearchPreferences,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> dict[str, float]:
    return {
        "rating": rating_quality(candidate, config),
        "service": _clamp01(service_match(candidate, prefs)),
        "dietary": dietary_match(candidate, prefs),
        "distance": distance_score(candidate, center, prefs),
        "price": _clamp01(price_fit(candidate, prefs, config)),
    }


def score_candidate(
    candidate: Candidate,
    center: Coordinate,
    prefs: SearchPreferences,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> float:
    """Weighted sum of the five sub-scores. Pure and deterministic."""
    parts = score_breakdown(candidate, center, prefs, config)
    return (
        config.rating_weight * parts["rating"]
        + config.service_weight * parts["service"]
        + config.dietary_weight * parts["dietary"]
        + config.distance_weight * parts["distance"]
        + config.price_weight * parts["price"]
    )
