"""Time-bounded memoization of search results.

``SearchService`` depends only on the ``ResultCache`` protocol; the in-process
implementation is the default and ``RedisResultCache`` shares entries between
workers.
"""

import asyncio
import json
import time
from typing import Callable, Dict, List, Optional, Protocol, Sequence

import structlog
from pydantic import TypeAdapter, ValidationError

from repairfinder.core.config import settings
from repairfinder.models.dto import CacheEntry, SearchQuery, ServiceRecord
from repairfinder.services.area_bucketer import AreaBucketer
from repairfinder.services.redis_client import RealRedisClient

logger = structlog.get_logger(__name__)

_RECORDS = TypeAdapter(List[ServiceRecord])


class ResultCache(Protocol):
    async def get(self, key: str) -> Optional[List[ServiceRecord]]: ...
    async def put(self, key: str, results: Sequence[ServiceRecord]) -> None: ...


def build_cache_key(query: SearchQuery, precision: Optional[int] = None) -> str:
    """``lat:lon:category:query:radius`` with the point rounded to a ~111 m grid."""
    if precision is None:
        precision = settings.CACHE_KEY_PRECISION
    area = AreaBucketer.get_area_code(query.point.lat, query.point.lon, precision=precision)
    return f"{area}:{query.normalized_category}:{query.normalized_query}:{query.radius_km:g}"


class InMemoryResultCache:
    """Process-wide cache with lazy expiry; stale entries are simply overwritten."""

    def __init__(self, ttl_seconds: float = settings.CACHE_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Optional[List[ServiceRecord]]:
        async with self._lock:
            entry = self._entries.get(key)
        if entry is None or not entry.is_fresh(self._clock(), self.ttl_seconds):
            return None
        return list(entry.results)

    async def put(self, key: str, results: Sequence[ServiceRecord]) -> None:
        entry = CacheEntry(key=key, timestamp=self._clock(), results=list(results))
        async with self._lock:
            self._entries[key] = entry

    def __len__(self) -> int:
        return len(self._entries)


class RedisResultCache:
    """Stores results as JSON under ``repairfinder:search:<key>`` with a Redis TTL."""

    prefix = "repairfinder:search:"

    def __init__(self, client: RealRedisClient, ttl_seconds: int = settings.CACHE_TTL_SECONDS):
        self.client = client
        self.ttl_seconds = ttl_seconds

    async def get(self, key: str) -> Optional[List[ServiceRecord]]:
        raw = await self.client.get(self.prefix + key)
        if raw is None:
            return None
        try:
            return _RECORDS.validate_json(raw)
        except ValidationError as e:
            logger.error("cache_decode_error", key=key, error=str(e))
            return None

    async def put(self, key: str, results: Sequence[ServiceRecord]) -> None:
        payload = json.dumps([r.model_dump() for r in results])
        await self.client.setex(self.prefix + key, self.ttl_seconds, payload)


def build_result_cache() -> ResultCache:
    if settings.ENABLE_REDIS and settings.REDIS_URL:
        logger.info("result_cache_backend", backend="redis")
        return RedisResultCache(RealRedisClient(settings.REDIS_URL))
    logger.info("result_cache_backend", backend="memory")
    return InMemoryResultCache()
