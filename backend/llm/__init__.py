"""
LLM re-ranking layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Build prompts from search preferences and the heuristic top candidates.
- Ask the LLM for a reordering with a short rationale.
- Fall back to the heuristic order whenever the LLM output is unusable.
"""
