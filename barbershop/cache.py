# barbershop/cache.py
"""
Redis read-through cache of schedule snapshots for availability reads.

Owned by the HTTP layer: the allocator always loads the schedule itself.
Every schedule write must call invalidate() for the salon.

A snapshot is stored as JSON under schedule:{salon_id}. invalidate() also
bumps schedule:{salon_id}:gen, and a load only gets stored if that
generation is unchanged, so a write that lands while a read is loading is
never hidden behind the pre-write snapshot.

When Redis is not configured or not reachable every read goes to the
database.
"""

import json
import logging
from datetime import date
from typing import Any, Callable, Dict, Optional

import redis

from .engine.resolver import ScheduleSnapshot
from .models import BusinessHours, RecurringBreak, ScheduleException

logger = logging.getLogger(__name__)


def cache_key(salon_id: int) -> str:
    return f"schedule:{salon_id}"


def generation_key(salon_id: int) -> str:
    return f"schedule:{salon_id}:gen"


def snapshot_to_dict(snapshot: ScheduleSnapshot) -> Dict[str, Any]:
    return {
        "salon_id": snapshot.salon_id,
        "hours": [h.model_dump(mode="json") for h in snapshot.hours.values()],
        "breaks": [b.model_dump(mode="json") for b in snapshot.breaks],
        "exceptions": [e.model_dump(mode="json") for e in snapshot.exceptions],
    }


def snapshot_from_dict(data: Dict[str, Any]) -> ScheduleSnapshot:
    exceptions = []
    for item in data["exceptions"]:
        item = dict(item)
        item["start_date"] = date.fromisoformat(item["start_date"])
        item["end_date"] = date.fromisoformat(item["end_date"])
        exceptions.append(ScheduleException(**item))

    hours = [BusinessHours(**h) for h in data["hours"]]
    return ScheduleSnapshot(
        salon_id=data["salon_id"],
        hours={h.day_of_week: h for h in hours},
        breaks=tuple(RecurringBreak(**b) for b in data["breaks"]),
        exceptions=tuple(exceptions),
    )


class ScheduleCache:
    """Redis cache of ScheduleSnapshot, keyed per salon"""

    def __init__(
        self,
        ttl_seconds: int = 60,
        redis_url: Optional[str] = None,
        client: Optional[redis.Redis] = None,
    ):
        self.ttl_seconds = ttl_seconds
        self.redis_url = redis_url
        self.redis_client = client

    def _get_client(self) -> Optional[redis.Redis]:
        """Lazy load Redis client"""
        if self.ttl_seconds <= 0:
            return None
        if self.redis_client is None:
            if not self.redis_url:
                return None
            try:
                client = redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                )
                client.ping()
            except redis.RedisError as e:
                logger.warning(f"Redis schedule cache unavailable: {e}")
                return None
            self.redis_client = client
        return self.redis_client

    def get(self, salon_id: int) -> Optional[ScheduleSnapshot]:
        client = self._get_client()
        if client is None:
            return None

        key = cache_key(salon_id)
        try:
            value = client.get(key)
        except redis.RedisError as e:
            logger.error(f"Cache get error for {key}: {e}")
            return None
        if value is None:
            logger.debug(f"Schedule cache MISS: {key}")
            return None
        logger.debug(f"Schedule cache HIT: {key}")
        return snapshot_from_dict(json.loads(value))

    def _store(self, client: redis.Redis, salon_id: int, snapshot: ScheduleSnapshot, generation) -> bool:
        key = cache_key(salon_id)
        payload = json.dumps(snapshot_to_dict(snapshot))
        with client.pipeline() as pipe:
            try:
                pipe.watch(generation_key(salon_id))
                if pipe.get(generation_key(salon_id)) != generation:
                    logger.debug(f"Schedule cache SKIP: {key} changed while loading")
                    return False
                pipe.multi()
                pipe.setex(key, self.ttl_seconds, payload)
                pipe.execute()
            except redis.WatchError:
                logger.debug(f"Schedule cache SKIP: {key} invalidated while storing")
                return False
            except redis.RedisError as e:
                logger.error(f"Cache set error for {key}: {e}")
                return False
        logger.debug(f"Schedule cache SET: {key} (TTL: {self.ttl_seconds}s)")
        return True

    def get_or_load(self, salon_id: int, loader: Callable[[], ScheduleSnapshot]) -> ScheduleSnapshot:
        client = self._get_client()
        if client is None:
            return loader()

        snapshot = self.get(salon_id)
        if snapshot is not None:
            return snapshot

        try:
            generation = client.get(generation_key(salon_id))
        except redis.RedisError as e:
            logger.error(f"Cache generation read failed for salon {salon_id}: {e}")
            return loader()

        snapshot = loader()
        self._store(client, salon_id, snapshot, generation)
        return snapshot

    def invalidate(self, salon_id: int) -> bool:
        client = self._get_client()
        if client is None:
            return False
        try:
            with client.pipeline() as pipe:
                pipe.delete(cache_key(salon_id))
                pipe.incr(generation_key(salon_id))
                pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Cache invalidate error for salon {salon_id}: {e}")
            return False
        logger.debug(f"Schedule cache DELETE: {cache_key(salon_id)}")
        return True


_schedule_cache: Optional[ScheduleCache] = None


def get_schedule_cache() -> ScheduleCache:
    global _schedule_cache
    if _schedule_cache is None:
        from .config import get_settings
        settings = get_settings()
        _schedule_cache = ScheduleCache(
            ttl_seconds=settings.schedule_cache_ttl_seconds,
            redis_url=settings.redis_url,
        )
    return _schedule_cache
