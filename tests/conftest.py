"""Shared pytest fixtures for the Lexis test suite."""

import random
from datetime import datetime, timedelta

import pytest

from lexis.config import Config
from lexis.db.database import Database
from lexis.db.models import (
    Learning,
    LearningStatus,
    PracticeSession,
    PracticeSessionType,
    SessionSettings,
    SessionWordEntry,
    WordPerformance,
    WordRecord,
)
from lexis.practice.sessions import PracticeSessionManager
from lexis.selection.cache import InMemorySelectionCache
from lexis.selection.selector import WordSelector


@pytest.fixture
def memory_db(tmp_path):
    """Create a temporary SQLite database for fast tests.

    Note: We use a temp file instead of :memory: because store calls run in
    worker threads, and each thread opens its own connection.
    """
    db_path = tmp_path / "memory_test.db"
    db = Database(str(db_path))
    db.init_schema()
    return db


@pytest.fixture
def sample_word():
    """Sample enriched word for testing."""
    return WordRecord(
        user_id=1,
        word="ephemeral",
        translation="efímero",
        pronunciation="/ɪˈfem(ə)rəl/",
        categories=["Nature"],
        examples=["The beauty of the cherry blossom is ephemeral."],
    )


@pytest.fixture
def add_word(memory_db):
    """Factory that inserts a word with the given learning state and returns its ID."""

    def _add_word(
        word: str = "palabra",
        user_id: int = 1,
        status: LearningStatus = LearningStatus.NEW,
        strength: float = 0.0,
        next_review: datetime | None = None,
        last_studied: datetime | None = None,
        categories: list[str] | None = None,
    ) -> int:
        return memory_db.add_word(
            WordRecord(
                user_id=user_id,
                word=word,
                translation=f"{word} (translation)",
                categories=categories or [],
                learning=Learning(
                    status=status,
                    strength=strength,
                    next_review=next_review,
                    last_studied=last_studied,
                ),
            )
        )

    return _add_word


@pytest.fixture
def add_session(memory_db):
    """Factory that stores a session with the given (word_id, performance) entries."""

    def _add_session(entries: list[tuple[int, WordPerformance]], user_id: int = 1) -> int:
        return memory_db.create_practice_session(
            PracticeSession(
                user_id=user_id,
                session_type=PracticeSessionType.LISTENING,
                settings=SessionSettings(),
                words=[SessionWordEntry(word_id=word_id, performance=performance) for word_id, performance in entries],
            )
        )

    return _add_session


@pytest.fixture
def past():
    """Helper for timestamps relative to now."""

    def _past(**kwargs) -> datetime:
        return datetime.now() - timedelta(**kwargs)

    return _past


@pytest.fixture
def cache():
    return InMemorySelectionCache()


@pytest.fixture
def selector(memory_db, cache):
    return WordSelector(memory_db, cache)


@pytest.fixture
def manager(memory_db, selector):
    return PracticeSessionManager(memory_db, selector, rng=random.Random(7))


@pytest.fixture
def config():
    """Test configuration."""
    return Config(
        database_path=":memory:",
        cache_backend="memory",
        store_timeout_seconds=1.0,
    )
