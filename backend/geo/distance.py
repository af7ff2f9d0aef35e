from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance in kilometers (haversine).

    NaN inputs propagate to a NaN result.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2.0) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2.0) ** 2
    )
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_KM * c


def planar_distance_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Euclidean distance in raw degrees.

    Only meaningful as a proxy over small radii (click-to-marker snapping).
    """
    return math.hypot(lat2 - lat1, lon2 - lon1)
