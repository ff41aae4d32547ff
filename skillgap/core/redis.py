"""
Redis client construction.

One async client per process entry point (API lifespan, Celery task run),
shared by the result cache, the job dedup markers and the provider rate
limiter. Key namespaces keep those uses apart:

    analysis:<fingerprint>      result cache (cache_key_prefix)
    queue:job:<analysis_id>     enqueue dedup markers
    ratelimit:provider:<window> provider call counters
"""
from typing import Optional

import redis.asyncio as redis

from skillgap.core.config import settings


def create_redis(redis_url: Optional[str] = None) -> redis.Redis:
    """Create an async Redis client that returns str values."""
    return redis.from_url(
        redis_url or settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        retry_on_timeout=False,
    )
