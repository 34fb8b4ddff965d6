import math
from typing import List, Sequence, TypeVar

from repairfinder.core.config import settings
from repairfinder.utils.haversine import parse_distance_km

T = TypeVar("T")

def resolve_distance_km(service) -> float:
    """Numeric distance when known and positive, otherwise parsed from the label."""
    value = getattr(service, "distance_km", None)
    if isinstance(value, (int, float)) and value > 0:
        return float(value)
    label = getattr(service, "distance_label", None)
    if label:
        return parse_distance_km(label)
    return math.inf

def rank_top(services: Sequence[T], n: int = settings.RANK_TOP_N) -> List[T]:
    """Closest ``n`` services; ties keep their input order. ``services`` is left untouched."""
    return sorted(services, key=resolve_distance_km)[:n]
