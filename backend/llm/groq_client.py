from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Union

from groq import Groq

from ..recommendations.models import RerankAnnotation, ScoredCandidate, SearchPreferences
from .config import DEFAULT_LLM_CONFIG, LLMConfig

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a careful multi-criteria re-ranker for restaurants. "
    "Given the user's preferences and a list of candidate restaurants "
    "(already ranked by a heuristic score), reorder them from best to worst "
    "match and give a short one-sentence reason for each.\n\n"
    "Return ONLY valid JSON in this exact format:\n"
    '{"rationale": "<one or two sentences>", '
    '"reordered": [{"id": "<candidate id>", "reason": "<one sentence>"}]}\n'
    "Use only ids from the provided list."
)


@dataclass(frozen=True)
class Reordered:
    results: list[ScoredCandidate]
    annotation: RerankAnnotation


@dataclass(frozen=True)
class RerankUnavailable:
    reason: str = ""
    results: list[ScoredCandidate] = field(default_factory=list)


RerankOutcome = Union[Reordered, RerankUnavailable]


def _candidate_payload(item: ScoredCandidate) -> dict[str, Any]:
    c = item.candidate
    return {
        "id": c.id,
        "name": c.display_name,
        "rating": c.rating,
        "rating_count": c.rating_count,
        "price_level": c.price_level,
        "address": c.address,
        "delivery": c.services.delivery,
        "dine_in": c.services.dine_in,
        "takeout": c.services.takeout,
        "serves_vegetarian": c.serves_vegetarian,
        "maps_uri": c.maps_uri,
        "score": round(item.score, 4),
    }


def _preferences_payload(prefs: SearchPreferences) -> dict[str, Any]:
    return {
        "cuisine": prefs.cuisine or None,
        "dietary": prefs.dietary.value,
        "services": prefs.services.stated(),
        "min_rating": prefs.min_rating,
        "open_now": prefs.open_now,
        "price_levels": sorted(level.value for level in prefs.price_levels),
    }


def _build_user_message(prefs: SearchPreferences, ranked: list[ScoredCandidate]) -> str:
    return (
        f"User prefs: {json.dumps(_preferences_payload(prefs))}\n"
        f"Candidates: {json.dumps([_candidate_payload(r) for r in ranked])}"
    )


def apply_reordering(
    ranked: list[ScoredCandidate],
    annotation: RerankAnnotation,
) -> list[ScoredCandidate] | None:
    """
    Merge an LLM reordering into the heuristic list.

    Returns None when the reordering is empty or names an unknown id.
    Unmentioned candidates follow in heuristic order; duplicates keep the
    first occurrence and the result never exceeds the heuristic length.
    """
    by_id = {item.candidate.id: item for item in ranked}
    if not annotation.reordered:
        return None
    if any(entry.id not in by_id for entry in annotation.reordered):
        return None

    reasons: dict[str, str] = {}
    for entry in annotation.reordered:
        reasons.setdefault(entry.id, entry.reason)

    merged = [by_id[entry.id] for entry in annotation.reordered] + list(ranked)
    seen: set[str] = set()
    final: list[ScoredCandidate] = []
    for item in merged:
        if item.candidate.id in seen:
            continue
        seen.add(item.candidate.id)
        final.append(item.model_copy(update={"reason": reasons.get(item.candidate.id)}))
    return final[: len(ranked)]


def try_reorder(
    ranked: list[ScoredCandidate],
    prefs: SearchPreferences,
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> RerankOutcome:
    """
    Ask Groq to reorder the heuristic top candidates.

    Advisory only: every failure (disabled, API error, bad JSON, schema
    mismatch, unknown id, empty list) returns ``RerankUnavailable`` carrying
    the heuristic ranking unchanged.
    """
    if not config.enabled or not config.api_key:
        return RerankUnavailable("disabled", list(ranked))

    if not ranked:
        return RerankUnavailable("no candidates", [])

    try:
        client = Groq(api_key=config.api_key, timeout=config.timeout)
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _build_user_message(prefs, ranked)},
            ],
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            response_format={"type": "json_object"},
        )

        content = response.choices[0].message.content or ""
        annotation = RerankAnnotation.model_validate(json.loads(content))
    except Exception:
        logger.warning("Groq re-rank failed, falling back to heuristic ranking", exc_info=True)
        return RerankUnavailable("llm error", list(ranked))

    final = apply_reordering(ranked, annotation)
    if final is None:
        logger.warning(
            "Groq re-rank returned an unusable ordering %s, keeping heuristic ranking",
            [entry.id for entry in annotation.reordered],
        )
        return RerankUnavailable("unusable ordering", list(ranked))

    return Reordered(results=final, annotation=annotation)
