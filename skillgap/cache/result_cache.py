"""
Redis-backed result cache, keyed by content fingerprint.

The cache is advisory: the analyses table is the source of truth and the
cache can be flushed and rebuilt from it at any time. Every Redis fault is
logged and swallowed here so callers only ever see a hit or a miss.
"""
import json
from typing import Optional

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from skillgap.core.config import settings
from skillgap.core.hashing import is_valid_hash
from skillgap.core.logging import get_logger
from skillgap.schemas.analysis import GapAnalysisResult

logger = get_logger(__name__)

# Transport faults the cache absorbs (redis-py raises RedisError subclasses;
# raw socket errors can still escape during connection setup)
_CACHE_FAULTS = (RedisError, OSError)


class ResultCache:

    def __init__(
        self,
        redis_client: Redis,
        ttl_seconds: int = settings.cache_ttl_seconds,
        key_prefix: str = settings.cache_key_prefix,
    ):
        self._redis = redis_client
        self._ttl = ttl_seconds
        self._prefix = key_prefix

    def _key(self, fingerprint: str) -> str:
        return f"{self._prefix}{fingerprint}"

    async def get(self, fingerprint: str) -> Optional[GapAnalysisResult]:
        """Cached result, or None on miss, fault, or an unreadable entry."""
        if not is_valid_hash(fingerprint):
            logger.warning("cache_invalid_fingerprint", fingerprint=str(fingerprint)[:80])
            return None

        try:
            raw = await self._redis.get(self._key(fingerprint))
        except _CACHE_FAULTS as exc:
            logger.error("cache_get_failed", fingerprint=fingerprint, error=str(exc))
            return None

        if raw is None:
            return None

        try:
            return GapAnalysisResult.model_validate(json.loads(raw))
        except (ValueError, ValidationError):
            logger.warning("cache_entry_unreadable", fingerprint=fingerprint)
            return None

    async def put(
        self,
        fingerprint: str,
        result: GapAnalysisResult,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Best-effort write with TTL."""
        if not is_valid_hash(fingerprint):
            logger.warning("cache_invalid_fingerprint", fingerprint=str(fingerprint)[:80])
            return

        payload = json.dumps(result.to_document())
        try:
            await self._redis.set(self._key(fingerprint), payload, ex=ttl_seconds or self._ttl)
        except _CACHE_FAULTS as exc:
            logger.error("cache_set_failed", fingerprint=fingerprint, error=str(exc))

    async def invalidate(self, fingerprint: str) -> None:
        """Best-effort delete."""
        if not is_valid_hash(fingerprint):
            return
        try:
            await self._redis.delete(self._key(fingerprint))
        except _CACHE_FAULTS as exc:
            logger.error("cache_delete_failed", fingerprint=fingerprint, error=str(exc))

    async def exists(self, fingerprint: str) -> bool:
        if not is_valid_hash(fingerprint):
            return False
        try:
            return await self._redis.exists(self._key(fingerprint)) == 1
        except _CACHE_FAULTS as exc:
            logger.error("cache_exists_failed", fingerprint=fingerprint, error=str(exc))
            return False
