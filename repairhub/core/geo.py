from __future__ import annotations

import math
from typing import Optional, Tuple

# mean earth radius (IUGG), metres
EARTH_RADIUS_M = 6371008.8


def is_valid_point(latitude: Optional[float], longitude: Optional[float]) -> bool:
    """
    A stored location counts only if both parts are present and neither is 0
    (0 is what clients send before they have a fix).
    """
    if latitude is None or longitude is None:
        return False
    if latitude == 0 or longitude == 0:
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(a)))


def bounding_box(
    latitude: float, longitude: float, radius_m: float
) -> Tuple[float, float, float, float]:
    """
    (min_lat, max_lat, min_lng, max_lng) enclosing the circle. Used as an
    index-friendly prefilter before the exact haversine check.
    """
    dlat = math.degrees(radius_m / EARTH_RADIUS_M)
    min_lat = max(-90.0, latitude - dlat)
    max_lat = min(90.0, latitude + dlat)

    cos_lat = math.cos(math.radians(latitude))
    if cos_lat <= 1e-12 or max_lat >= 90.0 or min_lat <= -90.0:
        return min_lat, max_lat, -180.0, 180.0

    dlng = math.degrees(radius_m / (EARTH_RADIUS_M * cos_lat))
    # antimeridian crossing: give up on the longitude prefilter
    if dlng >= 180.0 or longitude - dlng < -180.0 or longitude + dlng > 180.0:
        return min_lat, max_lat, -180.0, 180.0
    return min_lat, max_lat, longitude - dlng, longitude + dlng
