from __future__ import annotations

import logging
import time

from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.groq_client import Reordered, try_reorder
from ..places.client import photo_url, search_places
from ..places.config import DEFAULT_PLACES_CONFIG, PlacesConfig
from .models import ScoredCandidate, SearchRequest, SearchResponse
from .ranking import rank

logger = logging.getLogger(__name__)


def _attach_photo_urls(
    ranked: list[ScoredCandidate],
    config: PlacesConfig,
) -> list[ScoredCandidate]:
    if not config.public_api_key:
        return ranked
    out: list[ScoredCandidate] = []
    for item in ranked:
        urls = [
            photo_url(ref, config.public_api_key, config.photo_max_height_px, config.places_base_url)
            for ref in item.candidate.photos
        ]
        out.append(item.model_copy(update={"photo_urls": [u for u in urls if u]}))
    return out


def search_restaurants(
    request: SearchRequest,
    places_config: PlacesConfig = DEFAULT_PLACES_CONFIG,
    llm_config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> SearchResponse:
    start_time = time.time()
    prefs = request.to_preferences()

    # --- Provider search ---
    candidates, mode = search_places(prefs, places_config)

    # --- Heuristic ranking ---
    ranked = rank(candidates, prefs, mode)
    ranked = _attach_photo_urls(ranked, places_config)

    # --- Optional LLM re-ranking ---
    outcome = try_reorder(ranked, prefs, llm_config)
    if isinstance(outcome, Reordered):
        response = SearchResponse(results=outcome.results, ai=outcome.annotation)
    else:
        response = SearchResponse(results=ranked, ai=None)

    elapsed_ms = round((time.time() - start_time) * 1000, 1)
    logger.info(
        "Search mode=%s candidates=%d returned=%d reranked=%s in %sms",
        mode.value,
        len(candidates),
        len(response.results),
        response.ai is not None,
        elapsed_ms,
    )
    return response
