"""Practice session lifecycle.

A session is created with its full word list in one step, mutated by
performance recordings and updates, and ends when it is deleted. Every
operation is scoped to the owning user; a session belonging to someone else
looks exactly like a missing one.

Concurrent writers to the same session are serialized with an optimistic
version check: a write that loses the race re-reads the session and tries
again.
"""

import logging
import random
from datetime import datetime
from typing import Callable

from lexis.config import DEFAULT_STORE_TIMEOUT, Config
from lexis.constants import MAX_SESSION_WRITE_ATTEMPTS
from lexis.db.models import (
    CORRECT_PERFORMANCES,
    RESULT_FIELDS,
    Difficulty,
    LearningStatus,
    PerformanceUpdate,
    PracticeSession,
    PracticeSessionType,
    SelectionFilter,
    SelectionRequest,
    SelectionStrategy,
    SessionResults,
    SessionSettings,
    SessionWordEntry,
    WordPerformance,
    WordRecord,
)
from lexis.db.store import SessionStore, WordProgress, call_store
from lexis.errors import InsufficientContent, InvalidRequest, NotFound, StoreUnavailable
from lexis.learning.progress import apply_performance
from lexis.selection.selector import WordSelector

logger = logging.getLogger(__name__)


# Session type -> (ranking strategy, share of random words in percent)
SESSION_STRATEGIES: dict[PracticeSessionType, tuple[SelectionStrategy, int]] = {
    PracticeSessionType.FLASHCARD: (SelectionStrategy.SPACED_REPETITION, 20),
    PracticeSessionType.QUIZ: (SelectionStrategy.BALANCED, 40),
    PracticeSessionType.WRITING: (SelectionStrategy.WEAKEST_WORDS, 30),
    PracticeSessionType.SPEAKING: (SelectionStrategy.WEAKEST_WORDS, 30),
    PracticeSessionType.LISTENING: (SelectionStrategy.MOST_ERRORS, 30),
}

# Difficulty -> (min_strength, max_strength)
DIFFICULTY_STRENGTH_BOUNDS: dict[Difficulty, tuple[float, float]] = {
    Difficulty.EASY: (0.2, 1.0),
    Difficulty.MEDIUM: (0.0, 1.0),
    Difficulty.HARD: (0.0, 0.8),
}


def selection_plan(session_type: PracticeSessionType) -> tuple[SelectionStrategy, int]:
    """Look up the strategy and random percentage for a session type."""
    try:
        return SESSION_STRATEGIES[session_type]
    except KeyError:
        raise InvalidRequest(f"Unknown session type: {session_type!r}") from None


def build_session_filter(difficulty: Difficulty) -> SelectionFilter:
    """Candidate filter for a session: every status, strength bounded by difficulty."""
    try:
        min_strength, max_strength = DIFFICULTY_STRENGTH_BOUNDS[difficulty]
    except KeyError:
        raise InvalidRequest(f"Unknown difficulty: {difficulty!r}") from None
    return SelectionFilter(
        statuses=frozenset(LearningStatus),
        min_strength=min_strength,
        max_strength=max_strength,
    )


def compute_results(words: list[SessionWordEntry], previous: SessionResults | None = None) -> SessionResults:
    """Recompute aggregate results from every entry in the session.

    streak and xp_earned aren't derived from entries; they carry over from
    previous and only change through an explicit session update.
    """
    previous = previous or SessionResults()
    total = len(words)
    correct = sum(1 for entry in words if entry.performance in CORRECT_PERFORMANCES)
    total_time = sum(entry.time_spent for entry in words)
    return SessionResults(
        total_words=total,
        correct_words=correct,
        incorrect_words=total - correct,
        accuracy=correct / total if total else 0.0,
        average_time_per_word=total_time / total if total else 0.0,
        streak=previous.streak,
        xp_earned=previous.xp_earned,
    )


def merge_selection(algorithmic: list[WordRecord], randoms: list[WordRecord], rng: random.Random) -> list[WordRecord]:
    """Merge both pools, drop repeated words, then shuffle."""
    seen: set[int] = set()
    merged = []
    for word in algorithmic + randoms:
        if word.id in seen:
            continue
        seen.add(word.id)
        merged.append(word)
    rng.shuffle(merged)
    return merged


class PracticeSessionManager:
    """Creates practice sessions and records what happens in them."""

    def __init__(
        self,
        store: SessionStore,
        selector: WordSelector,
        *,
        store_timeout: float = DEFAULT_STORE_TIMEOUT,
        track_learning: bool = True,
        use_cache: bool = True,
        max_write_attempts: int = MAX_SESSION_WRITE_ATTEMPTS,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.selector = selector
        self.store_timeout = store_timeout
        self.track_learning = track_learning
        self.use_cache = use_cache
        self.max_write_attempts = max_write_attempts
        self._rng = rng or random.Random()
        self._clock = clock

    @classmethod
    def from_config(cls, store: SessionStore, selector: WordSelector, config: Config) -> "PracticeSessionManager":
        return cls(store, selector, store_timeout=config.store_timeout_seconds)

    async def start_session(
        self,
        user_id: int,
        session_type: PracticeSessionType,
        settings: SessionSettings,
    ) -> PracticeSession:
        """Select words and create a new session holding all of them.

        Raises:
            InsufficientContent: The user has no eligible words.
            InvalidRequest: Unknown session type/difficulty or a bad words_limit.
            StoreUnavailable: Selection or persistence failed.
        """
        if settings.words_limit <= 0:
            raise InvalidRequest("words_limit must be positive", details={"words_limit": settings.words_limit})

        strategy, random_percentage = selection_plan(session_type)
        logger.debug(f"Starting {session_type.value} session for user {user_id} using {strategy.value}")

        result = await self.selector.select_words(
            SelectionRequest(
                user_id=user_id,
                count=settings.words_limit,
                strategy=strategy,
                random_percentage=random_percentage,
                filter=build_session_filter(settings.difficulty),
                use_cache=self.use_cache,
            )
        )
        words = merge_selection(result.algorithmic_words, result.random_words, self._rng)

        if not words:
            logger.warning(f"No words available for practice session (user: {user_id}, type: {session_type.value})")
            raise InsufficientContent(
                "No words available for practice. Please add some words first.",
                details={"user_id": user_id, "session_type": session_type.value},
            )
        if len(words) < settings.words_limit:
            logger.warning(
                f"Not enough words available for user {user_id}. "
                f"Requested: {settings.words_limit}, Available: {len(words)}"
            )

        entries = [SessionWordEntry(word_id=word.id) for word in words]
        session = PracticeSession(
            user_id=user_id,
            session_type=session_type,
            settings=settings,
            words=entries,
            results=compute_results(entries),
        )
        session_id = await self._call_store(self.store.create_practice_session, session)
        logger.debug(f"Created practice session {session_id} with {len(entries)} words")
        return await self.get_session(user_id, session_id)

    async def get_all_sessions(self, user_id: int) -> list[PracticeSession]:
        """All of a user's sessions, newest first."""
        return await self._call_store(self.store.get_practice_sessions, user_id)

    async def get_session(self, user_id: int, session_id: int) -> PracticeSession:
        session = await self._call_store(self.store.get_practice_session, user_id, session_id)
        if session is None:
            raise NotFound("Practice session not found", details={"session_id": session_id})
        return session

    async def update_session(
        self,
        user_id: int,
        session_id: int,
        *,
        duration: int | None = None,
        score: float | None = None,
        results: dict | None = None,
    ) -> PracticeSession:
        """Shallow-merge the given fields into a session.

        results is a partial mapping of SessionResults fields.
        """
        if duration is not None and duration < 0:
            raise InvalidRequest("duration must not be negative", details={"duration": duration})
        if results:
            unknown = set(results) - RESULT_FIELDS
            if unknown:
                raise InvalidRequest(f"Unknown result fields: {sorted(unknown)}")

        def apply(session: PracticeSession) -> None:
            if duration is not None:
                session.duration = duration
            if score is not None:
                session.score = score
            if results:
                session.results = SessionResults.from_dict({**session.results.to_dict(), **results})

        return await self._write(user_id, session_id, apply)

    async def record_word_performance(
        self,
        user_id: int,
        session_id: int,
        update: PerformanceUpdate,
    ) -> PracticeSession:
        """Record how a word went and recompute the session's results.

        Metadata is merged into the entry's existing metadata. When learning
        tracking is on, the first recording of an entry also advances the
        word's learning state, in the same write as the session. Recording the
        entry again only overwrites it, so one entry counts as one practice.

        Raises:
            NotFound: The session isn't the user's, or the word isn't in it.
            InvalidRequest: Negative time_spent or attempts.
        """
        if not isinstance(update.performance, WordPerformance):
            raise InvalidRequest(f"Unknown performance: {update.performance!r}")
        if update.time_spent < 0 or update.attempts < 0:
            raise InvalidRequest(
                "time_spent and attempts must not be negative",
                details={"time_spent": update.time_spent, "attempts": update.attempts},
            )

        def apply(session: PracticeSession) -> WordProgress | None:
            entry = session.find_entry(update.word_id)
            if entry is None:
                raise NotFound(
                    "Word not found in this practice session",
                    details={"session_id": session_id, "word_id": update.word_id},
                )
            first_recording = not entry.recorded
            entry.performance = update.performance
            entry.time_spent = update.time_spent
            entry.attempts = update.attempts
            entry.metadata = {**entry.metadata, **(update.metadata or {})}
            entry.recorded = True
            session.results = compute_results(session.words, session.results)

            if not (self.track_learning and first_recording):
                return None
            now = self._clock()
            return WordProgress(
                word_id=update.word_id,
                advance=lambda learning: apply_performance(learning, update.performance, now),
            )

        return await self._write(user_id, session_id, apply)

    async def delete_session(self, user_id: int, session_id: int) -> None:
        deleted = await self._call_store(self.store.delete_practice_session, user_id, session_id)
        if not deleted:
            raise NotFound("Practice session not found", details={"session_id": session_id})

    async def _write(self, user_id: int, session_id: int, apply) -> PracticeSession:
        """Read-modify-write a session under the optimistic version check.

        apply mutates a freshly loaded session and may raise to abort before
        anything is written. It may return a WordProgress, which is saved in
        the same transaction as the session.
        """
        for attempt in range(1, self.max_write_attempts + 1):
            session = await self.get_session(user_id, session_id)
            progress = apply(session)
            if await self._call_store(self.store.save_practice_session, session, progress):
                return session
            logger.info(f"Session {session_id} changed concurrently, retrying (attempt {attempt})")

        raise StoreUnavailable(
            "Practice session is being modified concurrently",
            details={"session_id": session_id, "attempts": self.max_write_attempts},
        )

    async def _call_store(self, method, *args):
        return await call_store(method, *args, timeout=self.store_timeout)
