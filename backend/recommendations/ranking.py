from __future__ import annotations

import logging
from typing import Iterable

from .config import DEFAULT_SCORING_CONFIG, LOCAL_OPEN_NOW_FILTER, ScoringConfig
from .models import Candidate, QueryMode, ScoredCandidate, SearchPreferences, clamp_top_k
from .scoring import score_candidate

logger = logging.getLogger(__name__)


def _passes_open_now(candidate: Candidate, prefs: SearchPreferences, query_mode: QueryMode) -> bool:
    if not prefs.open_now or not LOCAL_OPEN_NOW_FILTER[query_mode]:
        return True
    return candidate.open_now is True


def rank(
    candidates: Iterable[Candidate],
    prefs: SearchPreferences,
    query_mode: QueryMode,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> list[ScoredCandidate]:
    """
    Filter, score and order provider candidates.

    Steps:
    - Drop records without an id, and repeated ids (first one wins).
    - Apply the open-now filter when the query mode calls for it locally.
    - Score survivors against the search center.
    - Stable sort by score (descending) and keep the top ``top_k``.
    """
    if prefs.center is None:
        raise ValueError("Search center coordinate is required")

    survivors: list[Candidate] = []
    seen: set[str] = set()
    dropped = 0
    for candidate in candidates:
        if not candidate.id or candidate.id in seen:
            dropped += 1
            continue
        seen.add(candidate.id)
        if _passes_open_now(candidate, prefs, query_mode):
            survivors.append(candidate)
    if dropped:
        logger.debug("Dropped %d candidates without an id or with a repeated id", dropped)

    scored = [
        ScoredCandidate(
            candidate=c,
            score=score_candidate(c, prefs.center, prefs, config),
        )
        for c in survivors
    ]
    # sorted() is stable with reverse=True, so ties keep input order.
    scored = sorted(scored, key=lambda s: s.score, reverse=True)
    return scored[: clamp_top_k(prefs.top_k)]
