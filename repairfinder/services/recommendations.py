"""AI-assisted path: turn an external product analysis into a short list of nearby repairers.

The vision model runs elsewhere. Here we only read its recommendation and
category, and either rank the services it already found or run a regular
nearby search refined by its category.
"""

from typing import List, Optional, Sequence

import structlog

from repairfinder.core.config import settings
from repairfinder.models.dto import GeoPoint, ProductAnalysis, SuggestedService
from repairfinder.services.category_mapper import CategoryMapper
from repairfinder.services.ranker import rank_top
from repairfinder.services.search_service import SearchService
from repairfinder.utils.haversine import distance_km, format_distance

logger = structlog.get_logger(__name__)


def normalize_suggestions(services: Sequence[SuggestedService], origin: Optional[GeoPoint] = None) -> List[SuggestedService]:
    """Fill in ids and, when the user position is known, real distances for external services."""
    normalized: List[SuggestedService] = []
    for index, service in enumerate(services):
        updates = {}
        if not service.id:
            updates["id"] = f"ai-{index}"
        has_distance = service.distance_km is not None and service.distance_km > 0
        if origin is not None and not has_distance and service.lat is not None and service.lon is not None:
            km = distance_km(origin, GeoPoint(lat=service.lat, lon=service.lon))
            updates["distance_km"] = km
            updates["distance_label"] = format_distance(km)
        normalized.append(service.model_copy(update=updates) if updates else service)
    return normalized


async def recommend_services(
    analysis: ProductAnalysis,
    search_service: Optional[SearchService] = None,
    prefetched: Sequence[SuggestedService] = (),
    origin: Optional[GeoPoint] = None,
    n: int = settings.RANK_TOP_N,
) -> List[SuggestedService]:
    """Top ``n`` repair services for the analysed product, closest first.

    A "replace" recommendation yields no services. Pre-fetched services from
    the analyzer take precedence; otherwise a nearby search is run when the
    user position is known.
    """
    if analysis.recommendation != "repair":
        return []

    if prefetched:
        return rank_top(normalize_suggestions(prefetched, origin), n)

    if origin is None or search_service is None:
        logger.info("recommendation_without_location", category=analysis.category)
        return []

    category = CategoryMapper.resolve(analysis.category)
    records = await search_service.search(origin, category=category)
    return rank_top([SuggestedService.from_record(r) for r in records], n)
