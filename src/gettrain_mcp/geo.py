"""Great-circle distance and proximity tests."""

import math

from .models import Coordinate, Place

EARTH_RADIUS_KM = 6371.0
DEFAULT_THRESHOLD_KM = 0.5


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Return the haversine distance between two coordinates in kilometers."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def is_at_location(
    current: Coordinate, place: Place, threshold_km: float = DEFAULT_THRESHOLD_KM
) -> bool:
    """True if ``current`` is within ``threshold_km`` of ``place`` (inclusive)."""
    return distance_km(current, place.coordinate) <= threshold_km
