"""
Places provider integration.

Responsibilities:
- Geocode free-text locations to coordinates.
- Query the places-search provider in keyword or proximity mode.
- Parse provider place records into candidates.
- Build client-side photo URLs.
"""
