"""
Restaurant search and ranking.

Responsibilities:
- Accept search preferences (location, radius, filters, top-K).
- Score provider candidates using deterministic heuristics.
- Filter, sort and truncate to the requested top-K.
- Return structured results ready for API serialisation.
"""
