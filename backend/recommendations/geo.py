from __future__ import annotations

import math

from .models import Coordinate

EARTH_RADIUS_METERS = 6_371_000.0


def distance_meters(
    a: Coordinate,
    b: Coordinate,
    radius: float = EARTH_RADIUS_METERS,
) -> float:
    """Great-circle (haversine) distance between two coordinates in degrees.

    Inputs are not range-checked.
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lng = math.radians(b.longitude - a.longitude)

    s1 = math.sin(d_lat / 2)
    s2 = math.sin(d_lng / 2)
    q = s1 * s1 + math.cos(lat1) * math.cos(lat2) * s2 * s2
    # Rounding can push q a hair above 1 for antipodal points.
    return 2 * radius * math.asin(math.sqrt(min(1.0, q)))
