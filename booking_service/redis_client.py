import redis.asyncio as redis

from .config import REDIS_URL

# None when REDIS_URL is unset; the availability cache then stays disabled.
redis_client = redis.from_url(REDIS_URL, decode_responses=True) if REDIS_URL else None
