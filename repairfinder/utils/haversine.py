# Great-circle distance and the human-readable distance labels built from it.

import math
import re
from math import radians, sin, cos, sqrt, atan2
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from repairfinder.models.dto import GeoPoint

# Earth's radius in kilometers
R = 6371.0

_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")
_METERS_RE = re.compile(r"m\b")

def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points
    on the Earth (specified in decimal degrees) using the Haversine formula.

    Args:
        lat1: Latitude of point 1.
        lon1: Longitude of point 1.
        lat2: Latitude of point 2.
        lon2: Longitude of point 2.

    Returns:
        Distance between the two points in kilometers.
    """
    # Convert decimal degrees to radians
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])

    dlon = lon2 - lon1
    dlat = lat2 - lat1

    a = sin(dlat / 2)**2 + cos(lat1) * cos(lat2) * sin(dlon / 2)**2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return R * c

def distance_km(a: "GeoPoint", b: "GeoPoint") -> float:
    """Haversine distance between two GeoPoints, in kilometers."""
    return haversine(a.lat, a.lon, b.lat, b.lon)

def format_distance(km: float) -> str:
    """Render "850 m" below one kilometer, "1.2 km" otherwise."""
    if km < 1:
        return f"{math.floor(km * 1000 + 0.5)} m"
    return f"{km:.1f} km"

def parse_distance_km(text: str) -> float:
    """
    Parse a label such as "800 m", "1.2 km" or "3,500 m" back into kilometers.

    A bare number is taken as kilometers. Text without any number yields
    ``math.inf`` so it sorts after everything else.
    """
    if text is None:
        return math.inf
    value = str(text).lower().strip()
    match = _NUMBER_RE.search(value)
    if not match:
        return math.inf
    number = float(match.group(0).replace(",", ""))
    if "km" in value:
        return number
    if _METERS_RE.search(value):
        return number / 1000
    return number
