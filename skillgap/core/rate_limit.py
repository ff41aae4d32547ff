"""
Rate limiting.

Two independent limits live here:

* Inbound: slowapi limiter for the HTTP routes, keyed by anonymous session
  (falls back to client IP), backed by Redis so limits are shared across
  API workers.
* Outbound: ProviderRateLimiter, a fixed-window budget on generative-text
  provider calls shared by the whole worker pool. It governs aggregate call
  rate, not per-job latency.
"""
import asyncio
import time
from typing import Awaitable, Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError
from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from skillgap.core.config import settings
from skillgap.core.logging import get_logger

logger = get_logger(__name__)


def _get_session_or_ip(request: Request) -> str:
    """Rate-limit key: anonymous session id if assigned, otherwise client IP."""
    session_id = getattr(request.state, "session_id", None)
    if session_id:
        return f"session:{session_id}"
    return get_remote_address(request)


limiter = Limiter(
    key_func=_get_session_or_ip,
    storage_uri=settings.rate_limit_storage_uri or settings.redis_url,
    key_prefix="ratelimit:http",
    strategy="fixed-window",
)

# Pre-defined rate limit strings for use in route decorators:
#   @limiter.limit(RATE_SUBMIT)
RATE_SUBMIT = settings.rate_submit    # analysis submissions, provider cost control
RATE_POLL = settings.rate_poll        # status polling


class ProviderRateLimiter:
    """
    Pool-wide fixed-window limiter for provider calls.

    Each window is a Redis counter under ratelimit:provider:<window index>.
    When the budget of the current window is spent, acquire() sleeps until
    the next window opens and tries again. If Redis is unreachable the
    limiter lets the call through; the provider's own quota errors are then
    handled by the worker's retry loop.
    """

    KEY_PREFIX = "ratelimit:provider:"

    def __init__(
        self,
        redis_client: Redis,
        limit: int = settings.provider_rate_limit,
        window_seconds: int = settings.provider_rate_window_seconds,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self._redis = redis_client
        self._limit = limit
        self._window = window_seconds
        self._sleep = sleep
        self._clock = clock

    async def acquire(self) -> None:
        if self._limit <= 0:
            return

        while True:
            now = self._clock()
            window_index = int(now // self._window)
            key = f"{self.KEY_PREFIX}{window_index}"
            try:
                count = await self._redis.incr(key)
                if count == 1:
                    await self._redis.expire(key, self._window * 2)
            except (RedisError, OSError) as exc:
                logger.warning("provider_rate_limiter_unavailable", error=str(exc))
                return

            if count <= self._limit:
                return

            wait_seconds = (window_index + 1) * self._window - now
            logger.info("provider_rate_limited", wait_seconds=round(wait_seconds, 2))
            await self._sleep(max(wait_seconds, 0.01))
