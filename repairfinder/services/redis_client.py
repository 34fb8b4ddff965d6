# repairfinder/services/redis_client.py
"""Thin async wrapper around redis.asyncio exposing the get/setex calls the result cache uses.
Errors are logged and reported as a miss (get) or a skipped write (setex).
"""
from typing import Optional

import structlog
from redis.asyncio import Redis
from repairfinder.core.config import settings

logger = structlog.get_logger(__name__)

class RealRedisClient:
    def __init__(self, url: Optional[str] = None, redis: Optional[Redis] = None):
        if redis is not None:
            self._redis = redis
            return
        url = url or settings.REDIS_URL
        if not url:
            raise ValueError("REDIS_URL is not set in the environment")
        self._redis = Redis.from_url(url)

    async def get(self, key: str):
        try:
            return await self._redis.get(key)
        except Exception as e:
            logger.error("redis_get_error", key=key, error=str(e))
            return None

    async def setex(self, key: str, ttl: int, value: str):
        try:
            await self._redis.setex(key, ttl, value)
        except Exception as e:
            logger.error("redis_setex_error", key=key, error=str(e))

    async def close(self):
        await self._redis.aclose()
