"""Learning-state updates driven by practice outcomes.

Only recorded performances move a word's learning state; selection never
does. Status only advances: NEW -> LEARNING -> MASTERED.
"""

from dataclasses import replace
from datetime import datetime

from lexis.constants import MASTERY_REPETITIONS, MASTERY_STRENGTH
from lexis.db.models import Learning, LearningStatus, WordPerformance
from lexis.learning.sm2 import calculate_sm2, quality_from_performance

STRENGTH_DELTAS = {
    WordPerformance.PERFECT: 0.2,
    WordPerformance.GOOD: 0.1,
    WordPerformance.FAIR: 0.0,
    WordPerformance.POOR: -0.2,
}

_STATUS_ORDER = [LearningStatus.NEW, LearningStatus.LEARNING, LearningStatus.MASTERED]


def advance_status(current: LearningStatus, strength: float, repetitions: int) -> LearningStatus:
    """Return the status after one practice, never lower than current."""
    target = LearningStatus.LEARNING
    if strength >= MASTERY_STRENGTH and repetitions >= MASTERY_REPETITIONS:
        target = LearningStatus.MASTERED
    if _STATUS_ORDER.index(target) > _STATUS_ORDER.index(current):
        return target
    return current


def apply_performance(learning: Learning, performance: WordPerformance, now: datetime | None = None) -> Learning:
    """Return the learning state after practicing a word once.

    The SM-2 fields and next_review follow calculate_sm2; strength moves by
    STRENGTH_DELTAS and stays within [0, 1].
    """
    now = now or datetime.now()
    sm2 = calculate_sm2(
        quality_from_performance(performance),
        easiness_factor=learning.easiness_factor,
        interval_days=learning.interval_days,
        repetitions=learning.repetitions,
        now=now,
    )
    strength = max(0.0, min(1.0, learning.strength + STRENGTH_DELTAS[performance]))

    return replace(
        learning,
        status=advance_status(learning.status, strength, sm2.repetitions),
        strength=strength,
        next_review=sm2.next_review,
        last_studied=now,
        easiness_factor=sm2.easiness_factor,
        interval_days=sm2.interval_days,
        repetitions=sm2.repetitions,
    )
