from datetime import date

import pytest
from fakeredis import FakeServer, aioredis

from booking_service.cache import AvailabilityCache, cache_key, day_index_key, generation_key

DAY = date(2024, 6, 1)


@pytest.fixture
def redis():
    return aioredis.FakeRedis(server=FakeServer(), decode_responses=True)


def test_keys():
    assert cache_key(5, DAY, 60) == "availability:5:2024-06-01:60"
    assert day_index_key(5, DAY) == "availability_keys:5:2024-06-01"
    assert generation_key(5, DAY) == "availability_gen:5:2024-06-01"


@pytest.mark.asyncio
async def test_disabled_cache_is_a_no_op():
    cache = AvailabilityCache(client=None)

    assert cache.enabled is False
    assert await cache.generation(5, DAY) is None
    assert await cache.set(5, DAY, 60, {"slots": []}, 0) is False
    assert await cache.get(5, DAY, 60) is None
    assert await cache.invalidate(5, DAY) == 0


@pytest.mark.asyncio
async def test_set_then_get(redis):
    cache = AvailabilityCache(client=redis, ttl_seconds=5)
    body = {"court_id": 5, "date": "2024-06-01", "slot_minutes": 60, "slots": []}

    assert await cache.set(5, DAY, 60, body, await cache.generation(5, DAY)) is True

    assert await cache.get(5, DAY, 60) == body
    assert await cache.get(5, DAY, 30) is None
    assert 0 < await redis.ttl(cache_key(5, DAY, 60)) <= 5


@pytest.mark.asyncio
async def test_set_without_generation_is_skipped(redis):
    cache = AvailabilityCache(client=redis, ttl_seconds=5)

    assert await cache.set(5, DAY, 60, {"slots": []}, None) is False
    assert await cache.get(5, DAY, 60) is None


@pytest.mark.asyncio
async def test_invalidate_drops_every_slot_size(redis):
    cache = AvailabilityCache(client=redis, ttl_seconds=5)
    await cache.set(5, DAY, 60, {"slots": [1]}, 0)
    await cache.set(5, DAY, 30, {"slots": [2]}, 0)
    await cache.set(5, date(2024, 6, 2), 60, {"slots": [3]}, 0)

    deleted = await cache.invalidate(5, DAY)

    assert deleted == 2
    assert await cache.get(5, DAY, 60) is None
    assert await cache.get(5, DAY, 30) is None
    assert await redis.exists(day_index_key(5, DAY)) == 0
    assert await cache.get(5, date(2024, 6, 2), 60) == {"slots": [3]}


@pytest.mark.asyncio
async def test_invalidate_bumps_generation(redis):
    cache = AvailabilityCache(client=redis, ttl_seconds=5)

    assert await cache.generation(5, DAY) == 0
    assert await cache.invalidate(5, DAY) == 0
    assert await cache.generation(5, DAY) == 1
    await cache.invalidate(5, DAY)
    assert await cache.generation(5, DAY) == 2
    assert await cache.generation(5, date(2024, 6, 2)) == 0


@pytest.mark.asyncio
async def test_result_read_before_invalidate_is_not_stored(redis):
    cache = AvailabilityCache(client=redis, ttl_seconds=5)
    seen = await cache.generation(5, DAY)

    # a booking commits while the read is still computing
    await cache.invalidate(5, DAY)

    assert await cache.set(5, DAY, 60, {"slots": ["stale"]}, seen) is False
    assert await cache.get(5, DAY, 60) is None

    fresh = await cache.generation(5, DAY)
    assert await cache.set(5, DAY, 60, {"slots": ["fresh"]}, fresh) is True
    assert await cache.get(5, DAY, 60) == {"slots": ["fresh"]}
