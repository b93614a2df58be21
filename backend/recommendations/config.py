from __future__ import annotations

from dataclasses import dataclass

from .models import QueryMode


@dataclass(frozen=True)
class ScoringConfig:
    """
    Weights and constants for the heuristic candidate score.

    Weights sum to 1.0 so the final score stays in [0, 1].
    """

    rating_weight: float = 0.50
    service_weight: float = 0.20
    dietary_weight: float = 0.15
    distance_weight: float = 0.10
    price_weight: float = 0.05
    # Review count at which rating confidence reaches ~63%.
    rating_confidence_scale: float = 200.0
    price_mismatch_score: float = 0.5


DEFAULT_SCORING_CONFIG = ScoringConfig()

# Whether the ranking pipeline applies the open-now filter itself.
# Keyword (text) search already sends openNow upstream.
LOCAL_OPEN_NOW_FILTER: dict[QueryMode, bool] = {
    QueryMode.keyword_search: False,
    QueryMode.proximity_search: True,
}
