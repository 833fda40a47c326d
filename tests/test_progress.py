"""Tests for learning-state updates after practice."""

from datetime import datetime, timedelta

from lexis.db.models import Learning, LearningStatus, WordPerformance
from lexis.learning.progress import advance_status, apply_performance

NOW = datetime(2026, 5, 4, 18, 30)


class TestAdvanceStatus:
    """Status only ever moves forward."""

    def test_new_becomes_learning(self):
        assert advance_status(LearningStatus.NEW, 0.0, 0) == LearningStatus.LEARNING

    def test_learning_becomes_mastered(self):
        assert advance_status(LearningStatus.LEARNING, 0.95, 3) == LearningStatus.MASTERED

    def test_strength_alone_is_not_mastery(self):
        """High strength without enough repetitions stays LEARNING."""
        assert advance_status(LearningStatus.LEARNING, 1.0, 2) == LearningStatus.LEARNING

    def test_mastered_never_regresses(self):
        assert advance_status(LearningStatus.MASTERED, 0.1, 0) == LearningStatus.MASTERED


class TestApplyPerformance:
    """Tests for apply_performance."""

    def test_first_practice_moves_new_word_to_learning(self):
        """Practicing a NEW word should mark it LEARNING and schedule it."""
        updated = apply_performance(Learning(), WordPerformance.GOOD, NOW)
        assert updated.status == LearningStatus.LEARNING
        assert updated.strength == 0.1
        assert updated.last_studied == NOW
        assert updated.next_review == NOW + timedelta(days=1)
        assert updated.repetitions == 1

    def test_does_not_mutate_input(self):
        learning = Learning()
        apply_performance(learning, WordPerformance.PERFECT, NOW)
        assert learning.status == LearningStatus.NEW
        assert learning.strength == 0.0

    def test_strength_clamped_at_one(self):
        learning = Learning(status=LearningStatus.LEARNING, strength=0.95)
        assert apply_performance(learning, WordPerformance.PERFECT, NOW).strength == 1.0

    def test_strength_clamped_at_zero(self):
        learning = Learning(status=LearningStatus.LEARNING, strength=0.1)
        assert apply_performance(learning, WordPerformance.POOR, NOW).strength == 0.0

    def test_poor_resets_interval_but_keeps_status(self):
        """A POOR result resets SM-2 but doesn't demote the word."""
        learning = Learning(
            status=LearningStatus.MASTERED,
            strength=1.0,
            repetitions=5,
            interval_days=40,
        )
        updated = apply_performance(learning, WordPerformance.POOR, NOW)
        assert updated.status == LearningStatus.MASTERED
        assert updated.repetitions == 0
        assert updated.interval_days == 1
        assert updated.strength == 0.8

    def test_reaches_mastery(self):
        """Strong, repeatedly recalled words become MASTERED."""
        learning = Learning(
            status=LearningStatus.LEARNING,
            strength=0.8,
            repetitions=2,
            interval_days=6,
        )
        updated = apply_performance(learning, WordPerformance.PERFECT, NOW)
        assert updated.status == LearningStatus.MASTERED
        assert updated.repetitions == 3
