import json
import logging
from datetime import date

from redis.exceptions import RedisError, WatchError

from .config import AVAILABILITY_CACHE_TTL
from .redis_client import redis_client

logger = logging.getLogger(__name__)

# outlives any in-flight availability read by a wide margin
GENERATION_TTL_SECONDS = 24 * 3600


def cache_key(court_id: int, day: date, slot_minutes: int) -> str:
    return f"availability:{court_id}:{day.isoformat()}:{slot_minutes}"


def day_index_key(court_id: int, day: date) -> str:
    return f"availability_keys:{court_id}:{day.isoformat()}"


def generation_key(court_id: int, day: date) -> str:
    return f"availability_gen:{court_id}:{day.isoformat()}"


class AvailabilityCache:
    """
    Short-TTL cache of availability responses keyed by (court, date, slot size).

    Every cached key is also registered in a per-(court, date) index set so a
    booking write can drop all slot-size variants of that day at once. The
    reservation path never reads from here; it always re-checks the database.

    Each (court, date) also carries a generation counter that ``invalidate``
    bumps. Readers take the generation before querying the database and
    ``set`` only stores the result if the generation is still the same, so a
    response computed before a booking committed is never written back.
    """

    def __init__(self, client=redis_client, ttl_seconds: int = AVAILABILITY_CACHE_TTL):
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.enabled = client is not None and ttl_seconds > 0

    async def get(self, court_id: int, day: date, slot_minutes: int) -> dict | None:
        if not self.enabled:
            return None
        try:
            raw = await self._client.get(cache_key(court_id, day, slot_minutes))
        except RedisError:
            logger.warning("availability cache read failed for court %s on %s", court_id, day, exc_info=True)
            return None
        if not raw:
            return None
        return json.loads(raw)

    async def generation(self, court_id: int, day: date) -> int | None:
        """Current generation for (court, day), or None when caching is off."""
        if not self.enabled:
            return None
        try:
            raw = await self._client.get(generation_key(court_id, day))
        except RedisError:
            logger.warning("availability generation read failed for court %s on %s", court_id, day, exc_info=True)
            return None
        return int(raw or 0)

    async def set(self, court_id: int, day: date, slot_minutes: int, value: dict, generation: int | None) -> bool:
        """
        Store ``value`` if (court, day) has not been invalidated since
        ``generation`` was read. Returns True when the value was written.
        """
        if not self.enabled or generation is None:
            return False
        key = cache_key(court_id, day, slot_minutes)
        index_key = day_index_key(court_id, day)
        gen_key = generation_key(court_id, day)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                await pipe.watch(gen_key)
                current = await pipe.get(gen_key)
                if int(current or 0) != generation:
                    logger.debug("skipping stale availability for court %s on %s", court_id, day)
                    return False
                pipe.multi()
                pipe.set(key, json.dumps(value, separators=(",", ":")), ex=self.ttl_seconds)
                pipe.sadd(index_key, key)
                pipe.expire(index_key, self.ttl_seconds + 5)  # keep index close to cache TTL
                await pipe.execute()
        except WatchError:
            logger.debug("availability for court %s on %s invalidated during write", court_id, day)
            return False
        except RedisError:
            logger.warning("availability cache write failed for court %s on %s", court_id, day, exc_info=True)
            return False
        return True

    async def invalidate(self, court_id: int, day: date) -> int:
        """
        Bump the generation and delete every cached variant for (court, day).
        Returns number of cache keys deleted.
        """
        if not self.enabled:
            return 0
        gen_key = generation_key(court_id, day)
        pipe = self._client.pipeline()
        pipe.incr(gen_key)
        pipe.expire(gen_key, GENERATION_TTL_SECONDS)
        await pipe.execute()

        index_key = day_index_key(court_id, day)
        keys = await self._client.smembers(index_key)
        if not keys:
            await self._client.delete(index_key)
            return 0

        pipe = self._client.pipeline()
        pipe.delete(*list(keys))
        pipe.delete(index_key)
        results = await pipe.execute()
        return results[0] if results and isinstance(results[0], int) else 0


availability_cache = AvailabilityCache()
