# repairfinder/services/search_service.py
# Nearby repair-service search: cache lookup, Overpass fetch, classification,
# category/text filtering, distance sort and truncation.

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import structlog

from repairfinder.core.config import settings
from repairfinder.core.errors import EndpointExhaustedError, MalformedRecordError
from repairfinder.models.dto import GeoPoint, RawTagRecord, SearchQuery, ServiceRecord
from repairfinder.services.category_mapper import CategoryMapper, category_id
from repairfinder.services.classifier import filter_repair_candidates
from repairfinder.services.endpoint_client import EndpointClient
from repairfinder.services.result_cache import ResultCache, build_cache_key
from repairfinder.utils.haversine import distance_km

logger = structlog.get_logger(__name__)

# OSM tags fetched for every search; filtering happens locally afterwards
REPAIR_TYPE_TAGS = [
    "shop=electronics",
    "shop=mobile_phone",
    "shop=computer",
    "shop=car_repair",
    "amenity=car_repair",
    "craft=electronics_repair",
    "craft=tailor",
    "craft=shoemaker",
    "shop=bicycle",
    "amenity=bicycle_repair_station",
    "shop=appliance",
    "craft=watchmaker",
    "shop=hardware",
]

GEOMETRY_KINDS = ("node", "way", "relation")

def build_overpass_query(point: GeoPoint, radius_m: int, timeout: int = settings.OVERPASS_QUERY_TIMEOUT) -> str:
    """Overpass QL union of every repair tag around ``point`` for nodes, ways and relations."""
    around = f"(around:{radius_m},{point.lat},{point.lon})"
    clauses = "".join(
        f"{kind}[{tag}]{around};" for tag in REPAIR_TYPE_TAGS for kind in GEOMETRY_KINDS
    )
    return f"[out:json][timeout:{timeout}];({clauses});out body center;"

def to_service_record(raw: RawTagRecord, origin: GeoPoint) -> ServiceRecord:
    """Build the public record for ``raw``; raises MalformedRecordError without a name or coordinate."""
    if not raw.name:
        raise MalformedRecordError(f"{raw.service_id} has no name")
    if raw.lat is None or raw.lon is None:
        raise MalformedRecordError(f"{raw.service_id} has no coordinate")
    return ServiceRecord(
        id=raw.service_id,
        name=raw.name,
        address=raw.address,
        lat=raw.lat,
        lon=raw.lon,
        distance_km=distance_km(origin, GeoPoint(lat=raw.lat, lon=raw.lon)),
        type=raw.primary_type or "repair",
        phone=raw.phone,
    )

def parse_elements(payload: Dict[str, Any]) -> List[RawTagRecord]:
    """Raw elements that carry a name and a coordinate, first occurrence of each id only."""
    records: List[RawTagRecord] = []
    seen = set()
    dropped = 0
    elements = payload.get("elements") if isinstance(payload, dict) else None
    if not isinstance(elements, list):
        elements = []
    for element in elements:
        if not isinstance(element, dict):
            dropped += 1
            continue
        try:
            raw = RawTagRecord.from_element(element)
            if not raw.name or raw.lat is None or raw.lon is None:
                raise MalformedRecordError(f"{raw.service_id} lacks a name or coordinate")
            if not (-90 <= raw.lat <= 90 and -180 <= raw.lon <= 180):
                raise MalformedRecordError(f"{raw.service_id} has an out-of-range coordinate")
        except MalformedRecordError:
            dropped += 1
            continue
        if raw.service_id in seen:
            continue
        seen.add(raw.service_id)
        records.append(raw)
    if dropped:
        logger.debug("overpass_elements_dropped", dropped=dropped)
    return records

def filter_by_text(services: Iterable[ServiceRecord], text: Optional[str]) -> List[ServiceRecord]:
    needle = (text or "").strip().lower()
    if not needle:
        return list(services)
    return [
        s for s in services
        if needle in s.name.lower() or needle in s.address.lower() or needle in s.type.lower()
    ]

class SearchService:
    """Service layer for the nearby repair-service search."""

    def __init__(
        self,
        client: EndpointClient,
        cache: ResultCache,
        category_mapper: Optional[CategoryMapper] = None,
        max_results: int = settings.SEARCH_MAX_RESULTS,
        deadline_seconds: float = settings.SEARCH_DEADLINE_SECONDS,
    ):
        self.client = client
        self.cache = cache
        self.category_mapper = category_mapper or CategoryMapper()
        self.max_results = max_results
        self.deadline_seconds = deadline_seconds

    async def search(
        self,
        point: GeoPoint,
        category: Optional[str] = None,
        query: Optional[str] = None,
        radius_km: float = settings.SEARCH_DEFAULT_RADIUS_KM,
    ) -> List[ServiceRecord]:
        """
        Nearest repair services around ``point``, closest first, at most ``max_results``.

        Backend failures are logged and produce an empty list; they are never
        raised to the caller and never cached.
        """
        search_query = SearchQuery(point=point, category=category_id(category), query=query, radius_km=radius_km)
        cache_key = build_cache_key(search_query)

        cached = await self.cache.get(cache_key)
        if cached is not None:
            logger.info("search_cache_hit", cache_key=cache_key, results=len(cached))
            return cached

        overpass_query = build_overpass_query(point, search_query.clamped_radius_m)
        try:
            payload = await asyncio.wait_for(self.client.fetch(overpass_query), timeout=self.deadline_seconds)
        except EndpointExhaustedError as e:
            logger.error("search_backend_unavailable", cache_key=cache_key, error=str(e))
            return []
        except asyncio.TimeoutError:
            logger.error("search_deadline_exceeded", cache_key=cache_key, deadline_s=self.deadline_seconds)
            return []

        services = self._build_results(payload, search_query)
        await self.cache.put(cache_key, services)
        logger.info("search_completed", cache_key=cache_key, results=len(services))
        return services

    def _build_results(self, payload: Dict[str, Any], search_query: SearchQuery) -> List[ServiceRecord]:
        raw_records = parse_elements(payload)
        candidates = filter_repair_candidates(raw_records)
        services = [to_service_record(raw, search_query.point) for raw in candidates]
        services = self.category_mapper.apply(services, search_query.category)
        services = filter_by_text(services, search_query.query)
        services.sort(key=lambda s: s.distance_km)
        return services[: self.max_results]
