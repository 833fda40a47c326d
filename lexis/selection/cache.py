"""Time-bounded cache for word selection sub-results.

Keys are built from the selection kind, the user, the strategy (algorithmic
selections only) and a stable serialization of the filter, so identical
requests always land on the same entry. Caching is an optimization only:
a selector with use_cache=False behaves the same, just slower.

Two backends:
- InMemorySelectionCache: per-process, for single-worker deployments and tests
- RedisSelectionCache: shared across workers via redis.asyncio
"""

import copy
import json
import logging
import time
from typing import Callable, Protocol

from redis.asyncio import Redis
from redis.exceptions import RedisError

from lexis.config import Config
from lexis.constants import CACHE_KEY_PREFIX
from lexis.db.models import SelectionFilter, SelectionStrategy, WordRecord
from lexis.errors import StoreUnavailable

logger = logging.getLogger(__name__)

ALGORITHMIC = "algorithmic"
RANDOM = "random"


def build_cache_key(
    kind: str,
    user_id: int,
    strategy: SelectionStrategy | None = None,
    selection_filter: SelectionFilter | None = None,
) -> str:
    """Build a deterministic cache key for a selection.

    Example:
        word_selection:algorithmic:42:WEAKEST_WORDS:{"categories": [], ...}
    """
    parts = [kind, str(user_id)]
    if strategy is not None:
        parts.append(strategy.value)
    if selection_filter is not None:
        parts.append(json.dumps(selection_filter.to_dict(), sort_keys=True))
    return f"{CACHE_KEY_PREFIX}:{':'.join(parts)}"


class SelectionCache(Protocol):
    """Key -> word list cache with per-entry TTL."""

    async def get(self, key: str) -> list[WordRecord] | None: ...

    async def set(self, key: str, words: list[WordRecord], ttl_seconds: int) -> None: ...

    async def clear(self) -> None: ...


class InMemorySelectionCache:
    """Process-local selection cache.

    Entries are copied on the way in and out so callers can't mutate cached
    words. Expired entries are dropped on read, and every write purges
    whatever else has expired.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, list[WordRecord]]] = {}

    async def get(self, key: str) -> list[WordRecord] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, words = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return copy.deepcopy(words)

    async def set(self, key: str, words: list[WordRecord], ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            self._entries.pop(key, None)
            return
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = (now + ttl_seconds, copy.deepcopy(words))

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisSelectionCache:
    """Selection cache shared through Redis.

    Words are stored as JSON. Any Redis failure surfaces as StoreUnavailable.

    Example:
        cache = RedisSelectionCache.from_url("redis://localhost:6379/0")
        await cache.set(key, words, 300)
        words = await cache.get(key)
        await cache.close()
    """

    def __init__(self, redis: Redis):
        self._redis = redis

    @classmethod
    def from_url(cls, url: str, timeout: float | None = None) -> "RedisSelectionCache":
        """Connect lazily to url. timeout bounds both connecting and each command."""
        return cls(Redis.from_url(url, decode_responses=True, socket_timeout=timeout, socket_connect_timeout=timeout))

    async def get(self, key: str) -> list[WordRecord] | None:
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            raise StoreUnavailable("Selection cache read failed", e, details={"key": key}) from e
        if raw is None:
            return None
        try:
            return [WordRecord.from_dict(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, AttributeError, TypeError, KeyError, ValueError) as e:
            # A corrupt entry is a miss; the caller will repopulate it
            logger.warning(f"Discarding unreadable cache entry {key}: {e}")
            return None

    async def set(self, key: str, words: list[WordRecord], ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        payload = json.dumps([word.to_dict() for word in words], ensure_ascii=False)
        try:
            await self._redis.set(key, payload, ex=ttl_seconds)
        except RedisError as e:
            raise StoreUnavailable("Selection cache write failed", e, details={"key": key}) from e

    async def clear(self) -> None:
        """Delete every selection entry (other keys in the database are left alone)."""
        try:
            keys = [key async for key in self._redis.scan_iter(match=f"{CACHE_KEY_PREFIX}:*")]
            if keys:
                await self._redis.delete(*keys)
        except RedisError as e:
            raise StoreUnavailable("Selection cache clear failed", e) from e

    async def close(self) -> None:
        await self._redis.aclose()


def build_selection_cache(config: Config) -> SelectionCache:
    """Create the cache backend named by config.cache_backend."""
    if config.cache_backend == "redis":
        logger.info(f"Using Redis selection cache at {config.redis_url}")
        return RedisSelectionCache.from_url(config.redis_url, timeout=config.store_timeout_seconds)
    return InMemorySelectionCache()
