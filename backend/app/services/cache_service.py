"""
Redis caching for session availability.

CACHING STRATEGY
================

What we cache:
  - Availability of an offering's scheduled sessions (JSON-serialized)
  - Cache key pattern: "availability:offering:{offering_id}"

Why:
  - Availability is read on every offering page view, far more often than
    it changes
  - Reservations never read from the cache; they always hit the store,
    so a stale entry can only mislead a browsing customer, never overbook

Invalidation strategy:
  - After checkout or cancellation: delete the offering's key
  - After a webhook or reaper sweep: delete all availability keys, since
    one sweep may touch many offerings
  - Short TTL as safety net

Cache failures are logged and swallowed: the cache is an optimization
and must never fail a request.
"""

import json
from typing import Optional

import redis.asyncio as redis

from app.core.logging import get_logger
from app.core.metrics import record_cache_operation

logger = get_logger(__name__)

KEY_PREFIX = "availability:offering:"


def _make_availability_key(offering_id: int) -> str:
    return f"{KEY_PREFIX}{offering_id}"


class AvailabilityCache:

    def __init__(self, client: Optional[redis.Redis], ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def get(self, offering_id: int) -> Optional[list[dict]]:
        if not self.client:
            return None

        key = _make_availability_key(offering_id)
        try:
            data = await self.client.get(key)
            record_cache_operation("get", hit=bool(data))
            if data:
                logger.debug("cache_hit", key=key)
                return json.loads(data)
            logger.debug("cache_miss", key=key)
        except Exception as e:
            logger.error("cache_get_error", key=key, error=str(e))

        return None

    async def set(self, offering_id: int, data: list[dict]) -> None:
        if not self.client:
            return

        key = _make_availability_key(offering_id)
        try:
            await self.client.setex(key, self.ttl_seconds, json.dumps(data, default=str))
            logger.debug("cache_set", key=key, ttl=self.ttl_seconds)
        except Exception as e:
            logger.error("cache_set_error", key=key, error=str(e))

    async def invalidate_offering(self, offering_id: int) -> None:
        if not self.client:
            return

        key = _make_availability_key(offering_id)
        try:
            await self.client.delete(key)
            logger.debug("cache_invalidated", key=key)
        except Exception as e:
            logger.error("cache_invalidation_error", key=key, error=str(e))

    async def invalidate_all(self) -> None:
        """Delete every availability key. Uses SCAN, fine for our small keyspace."""
        if not self.client:
            return

        try:
            deleted = 0
            async for key in self.client.scan_iter(match=f"{KEY_PREFIX}*", count=100):
                await self.client.delete(key)
                deleted += 1
            logger.info("cache_invalidated", keys_deleted=deleted)
        except Exception as e:
            logger.error("cache_invalidation_error", error=str(e))

    async def stats(self) -> dict:
        """Redis cache statistics for the health endpoint."""
        if not self.client:
            return {"status": "disabled"}

        try:
            info = await self.client.info("stats")
            hits = info.get("keyspace_hits", 0)
            misses = info.get("keyspace_misses", 0)
            return {
                "status": "connected",
                "hits": hits,
                "misses": misses,
                "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
            }
        except Exception as e:
            return {"status": "error", "error": str(e)}
