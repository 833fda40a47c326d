"""Tests for database models."""

from dataclasses import FrozenInstanceError
from datetime import datetime

import pytest

from lexis.db.models import (
    CORRECT_PERFORMANCES,
    Learning,
    LearningStatus,
    PracticeSession,
    SelectionFilter,
    SelectionRequest,
    SelectionStrategy,
    SessionResults,
    SessionSettings,
    SessionWordEntry,
    WordPerformance,
    WordRecord,
)


class TestLearning:
    """Tests for the Learning dataclass."""

    def test_defaults(self):
        learning = Learning()
        assert learning.status == LearningStatus.NEW
        assert learning.strength == 0.0
        assert learning.next_review is None
        assert learning.easiness_factor == 2.5

    def test_strength_clamped_high(self):
        assert Learning(strength=1.7).strength == 1.0

    def test_strength_clamped_low(self):
        assert Learning(strength=-0.3).strength == 0.0

    def test_from_dict_with_missing_fields(self):
        """Missing keys should fall back to defaults."""
        learning = Learning.from_dict({"status": "learning"})
        assert learning.status == LearningStatus.LEARNING
        assert learning.strength == 0.0
        assert learning.repetitions == 0


class TestWordRecord:
    """Tests for WordRecord serialization used by cache backends."""

    def test_to_dict_is_json_friendly(self, sample_word):
        """Enums and datetimes should be converted to strings."""
        sample_word.learning = Learning(
            status=LearningStatus.LEARNING,
            strength=0.4,
            next_review=datetime(2026, 1, 2, 3, 4, 5),
        )
        data = sample_word.to_dict()
        assert data["learning"]["status"] == "learning"
        assert data["learning"]["next_review"] == "2026-01-02T03:04:05.000000"
        assert data["categories"] == ["Nature"]

    def test_from_dict_restores_word(self, sample_word):
        sample_word.id = 7
        sample_word.learning = Learning(status=LearningStatus.MASTERED, strength=0.9, last_studied=datetime(2026, 2, 1))
        assert WordRecord.from_dict(sample_word.to_dict()) == sample_word


class TestSelectionFilter:
    """Tests for SelectionFilter."""

    def test_accepts_lists(self):
        """List arguments should be stored as frozensets."""
        selection_filter = SelectionFilter(statuses=[LearningStatus.NEW], categories=["Food", "Food"])
        assert selection_filter.statuses == frozenset({LearningStatus.NEW})
        assert selection_filter.categories == frozenset({"Food"})

    def test_is_immutable_and_hashable(self):
        selection_filter = SelectionFilter(min_strength=0.2)
        with pytest.raises(FrozenInstanceError):
            selection_filter.min_strength = 0.5
        assert hash(selection_filter) == hash(SelectionFilter(min_strength=0.2))

    def test_to_dict_is_order_independent(self):
        """Set members should serialize sorted regardless of input order."""
        first = SelectionFilter(
            statuses=[LearningStatus.MASTERED, LearningStatus.NEW],
            categories=["Travel", "Food"],
        )
        second = SelectionFilter(
            statuses=[LearningStatus.NEW, LearningStatus.MASTERED],
            categories=["Food", "Travel"],
        )
        assert first.to_dict() == second.to_dict()
        assert first.to_dict()["categories"] == ["Food", "Travel"]
        assert first.to_dict()["statuses"] == ["mastered", "new"]


class TestSelectionRequest:
    def test_defaults(self):
        request = SelectionRequest(user_id=1, count=10, strategy=SelectionStrategy.BALANCED)
        assert request.random_percentage is None
        assert request.use_cache is True
        assert request.filter == SelectionFilter()


class TestSessionModels:
    """Tests for practice session models."""

    def test_correct_performances(self):
        assert CORRECT_PERFORMANCES == {WordPerformance.PERFECT, WordPerformance.GOOD}

    def test_word_entry_defaults_to_fair(self):
        entry = SessionWordEntry(word_id=3)
        assert entry.performance == WordPerformance.FAIR
        assert entry.time_spent == 0
        assert entry.attempts == 0
        assert entry.metadata == {}

    def test_word_entry_from_dict(self):
        entry = SessionWordEntry.from_dict({"word_id": 3, "performance": "poor", "metadata": {"hint": True}})
        assert entry.performance == WordPerformance.POOR
        assert entry.metadata == {"hint": True}

    def test_settings_from_dict(self):
        settings = SessionSettings.from_dict({"difficulty": "hard", "review_type": "weak-words", "words_limit": 5})
        assert settings.words_limit == 5
        assert settings.review_type.value == "weak-words"
        assert settings.time_limit == 300

    def test_results_from_dict_ignores_unknown_keys(self):
        results = SessionResults.from_dict({"total_words": 4, "legacy_field": 1})
        assert results.total_words == 4
        assert results.correct_words == 0

    def test_find_entry(self):
        session = PracticeSession(words=[SessionWordEntry(word_id=1), SessionWordEntry(word_id=2)])
        assert session.find_entry(2).word_id == 2
        assert session.find_entry(99) is None
