"""Word selection for practice sessions.

A selection request is split into an algorithmic share, ranked by a strategy,
and a random share drawn uniformly from the same filtered pool. The two pools
are fetched concurrently and are not de-duplicated against each other; the
caller merges them.

Strategies:
- SPACED_REPETITION: words due for review, most overdue first
- WEAKEST_WORDS: lowest strength first
- LEAST_PRACTICED: least recently studied first, never-studied words leading
- MOST_ERRORS: most POOR results across past sessions first
- BALANCED: weighted blend of status, strength and time since last study
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable

from lexis.config import DEFAULT_STORE_TIMEOUT, Config
from lexis.constants import (
    ALGORITHMIC_CACHE_TTL,
    BALANCED_RECENCY_WEIGHT,
    BALANCED_STATUS_WEIGHT,
    BALANCED_STRENGTH_WEIGHT,
    CACHE_OVERFETCH_FACTOR,
    DEFAULT_RANDOM_PERCENTAGE,
    RANDOM_CACHE_TTL,
)
from lexis.db.models import (
    RANDOM_ORDER,
    LearningStatus,
    OrderSpec,
    SelectionFilter,
    SelectionRequest,
    SelectionResult,
    SelectionStrategy,
    WordRecord,
)
from lexis.db.store import WordStore, call_store
from lexis.errors import InvalidRequest
from lexis.selection.cache import ALGORITHMIC, RANDOM, SelectionCache, build_cache_key

logger = logging.getLogger(__name__)


STATUS_WEIGHTS = {
    LearningStatus.NEW: 1,
    LearningStatus.LEARNING: 2,
    LearningStatus.MASTERED: 3,
}


def split_count(count: int, random_percentage: int) -> tuple[int, int]:
    """Split count into (algorithmic, random) shares.

    The algorithmic share is floor(count * (1 - p/100)), computed in integers
    so 10 words at 30% always gives (7, 3).
    """
    algorithmic = count * (100 - random_percentage) // 100
    return algorithmic, count - algorithmic


def balanced_score(word: WordRecord, now: datetime) -> float:
    """Score a word for the BALANCED strategy. Higher scores are practiced first.

    score = 0.3 * status_weight + 0.3 * strength + 0.4 * seconds_since_last_studied

    The recency term is raw seconds and dominates the other two for any word
    studied more than a few seconds ago. Words never studied score +inf.
    """
    learning = word.learning
    if learning.last_studied is None:
        return float("inf")
    seconds_since = (now - learning.last_studied).total_seconds()
    return (
        BALANCED_STATUS_WEIGHT * STATUS_WEIGHTS[learning.status]
        + BALANCED_STRENGTH_WEIGHT * learning.strength
        + BALANCED_RECENCY_WEIGHT * seconds_since
    )


def validate_request(request: SelectionRequest) -> None:
    """Raise InvalidRequest for requests the selector can't serve."""
    if not isinstance(request.strategy, SelectionStrategy):
        raise InvalidRequest(f"Unknown selection strategy: {request.strategy!r}")
    if request.random_percentage is None:
        raise InvalidRequest("Random percentage is required")
    for name in ("count", "random_percentage"):
        value = getattr(request, name)
        if not _is_int(value):
            raise InvalidRequest(f"{name} must be an integer", details={name: value})
    if request.count < 0:
        raise InvalidRequest("Selection count must not be negative", details={"count": request.count})
    if not 0 <= request.random_percentage <= 100:
        raise InvalidRequest(
            "Random percentage must be between 0 and 100",
            details={"random_percentage": request.random_percentage},
        )
    validate_filter(request.filter)


def _is_int(value) -> bool:
    # bool is an int subclass but never a meaningful count
    return isinstance(value, int) and not isinstance(value, bool)


def validate_filter(selection_filter: SelectionFilter) -> None:
    low, high = selection_filter.min_strength, selection_filter.max_strength
    for bound in (low, high):
        if bound is not None and not 0.0 <= bound <= 1.0:
            raise InvalidRequest("Strength bounds must be within [0, 1]", details={"bound": bound})
    if low is not None and high is not None and low > high:
        raise InvalidRequest(
            "min_strength is greater than max_strength",
            details={"min_strength": low, "max_strength": high},
        )
    for status in selection_filter.statuses:
        if not isinstance(status, LearningStatus):
            raise InvalidRequest(f"Unknown learning status: {status!r}")


class WordSelector:
    """Selects algorithmic and random candidate words for a user.

    The word store and cache are injected. Store calls are synchronous, so
    they run in worker threads, each bounded by store_timeout seconds.
    """

    def __init__(
        self,
        store: WordStore,
        cache: SelectionCache,
        *,
        algorithmic_ttl: int = ALGORITHMIC_CACHE_TTL,
        random_ttl: int = RANDOM_CACHE_TTL,
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
        default_random_percentage: int = DEFAULT_RANDOM_PERCENTAGE,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.cache = cache
        self.algorithmic_ttl = algorithmic_ttl
        self.random_ttl = random_ttl
        self.store_timeout = store_timeout
        self.default_random_percentage = default_random_percentage
        self._clock = clock

    @classmethod
    def from_config(cls, store: WordStore, cache: SelectionCache, config: Config) -> "WordSelector":
        return cls(
            store,
            cache,
            algorithmic_ttl=config.algorithmic_cache_ttl,
            random_ttl=config.random_cache_ttl,
            store_timeout=config.store_timeout_seconds,
            default_random_percentage=config.default_random_percentage,
        )

    async def select_words(self, request: SelectionRequest) -> SelectionResult:
        """Select words for a request.

        Returns at most request.count words in total. Fewer words than
        requested is a valid result, not an error.

        Raises:
            InvalidRequest: The request is malformed.
            StoreUnavailable: The store or cache failed or timed out.
        """
        if request.random_percentage is None:
            request = replace(request, random_percentage=self.default_random_percentage)
        validate_request(request)
        algorithmic_count, random_count = split_count(request.count, request.random_percentage)

        logger.debug(
            f"Selecting words for user {request.user_id} with strategy {request.strategy.value}: "
            f"{algorithmic_count} algorithmic, {random_count} random"
        )

        algorithmic_words, random_words = await asyncio.gather(
            self.get_algorithmic_words(
                request.user_id, algorithmic_count, request.strategy, request.filter, request.use_cache
            ),
            self.get_random_words(request.user_id, random_count, request.filter, request.use_cache),
        )

        logger.debug(
            f"Selected {len(algorithmic_words)} algorithmic words and {len(random_words)} random words "
            f"for user {request.user_id}"
        )
        return SelectionResult(algorithmic_words=algorithmic_words, random_words=random_words)

    async def get_algorithmic_words(
        self,
        user_id: int,
        count: int,
        strategy: SelectionStrategy,
        selection_filter: SelectionFilter,
        use_cache: bool = True,
    ) -> list[WordRecord]:
        """Get up to count words ranked by strategy."""
        if count <= 0:
            return []
        if not use_cache:
            return await self._rank(user_id, count, strategy, selection_filter)

        key = build_cache_key(ALGORITHMIC, user_id, strategy, selection_filter)
        return await self._through_cache(
            key,
            count,
            self.algorithmic_ttl,
            lambda limit: self._rank(user_id, limit, strategy, selection_filter),
        )

    async def get_random_words(
        self,
        user_id: int,
        count: int,
        selection_filter: SelectionFilter,
        use_cache: bool = True,
    ) -> list[WordRecord]:
        """Get up to count words in uniformly random order."""
        if count <= 0:
            return []
        if not use_cache:
            return await self._draw_random(user_id, count, selection_filter)

        key = build_cache_key(RANDOM, user_id, None, selection_filter)
        return await self._through_cache(
            key,
            count,
            self.random_ttl,
            lambda limit: self._draw_random(user_id, limit, selection_filter),
        )

    async def _through_cache(self, key: str, count: int, ttl: int, fetch) -> list[WordRecord]:
        """Serve count words from the cache, or fetch extra and cache them.

        On a miss twice the requested count is fetched and cached, so a
        following request for more words can still be served from the entry.
        """
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"Selection cache hit for {key} ({len(cached)} words)")
            return cached[:count]

        logger.debug(f"Selection cache miss for {key}")
        words = await fetch(count * CACHE_OVERFETCH_FACTOR)
        await self.cache.set(key, words, ttl)
        return words[:count]

    async def _rank(
        self,
        user_id: int,
        limit: int,
        strategy: SelectionStrategy,
        selection_filter: SelectionFilter,
    ) -> list[WordRecord]:
        """Filter, rank and truncate a user's words for a strategy."""
        now = self._clock()

        if strategy == SelectionStrategy.SPACED_REPETITION:
            order = OrderSpec(field="next_review", due_before=now)
            return await self._call_store(self.store.find_words_by_filter, user_id, selection_filter, order, limit)

        if strategy == SelectionStrategy.WEAKEST_WORDS:
            order = OrderSpec(field="strength")
            return await self._call_store(self.store.find_words_by_filter, user_id, selection_filter, order, limit)

        if strategy == SelectionStrategy.LEAST_PRACTICED:
            order = OrderSpec(field="last_studied")
            return await self._call_store(self.store.find_words_by_filter, user_id, selection_filter, order, limit)

        # The remaining strategies rank in Python over the whole filtered pool
        words = await self._call_store(self.store.find_words_by_filter, user_id, selection_filter, None, None)

        if strategy == SelectionStrategy.MOST_ERRORS:
            errors = await self._call_store(self.store.count_session_errors_by_word, user_id)
            ranked = sorted(words, key=lambda word: errors.get(word.id, 0), reverse=True)
        elif strategy == SelectionStrategy.BALANCED:
            ranked = sorted(words, key=lambda word: balanced_score(word, now), reverse=True)
        else:
            raise InvalidRequest(f"Unknown selection strategy: {strategy!r}")

        return ranked[:limit]

    async def _draw_random(self, user_id: int, limit: int, selection_filter: SelectionFilter) -> list[WordRecord]:
        return await self._call_store(self.store.find_words_by_filter, user_id, selection_filter, RANDOM_ORDER, limit)

    async def _call_store(self, method, *args):
        return await call_store(method, *args, timeout=self.store_timeout)
