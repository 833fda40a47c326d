"""SM-2 review scheduling.

Based on the SuperMemo SM-2 algorithm by Piotr Wozniak.
https://www.supermemo.com/en/blog/application-of-a-computer-to-improve-the-results-obtained-in-working-with-the-supermemo-method
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from lexis.db.models import WordPerformance

MIN_EASINESS = 1.3
PASSING_QUALITY = 3


@dataclass
class SM2Result:
    """Scheduling state after one review."""

    easiness_factor: float
    interval_days: int
    repetitions: int
    next_review: datetime


# SM-2 quality grade (0-5) for each session performance
PERFORMANCE_QUALITY = {
    WordPerformance.PERFECT: 5,  # no hesitation
    WordPerformance.GOOD: 4,  # recalled after hesitation
    WordPerformance.FAIR: 3,  # recalled with difficulty
    WordPerformance.POOR: 1,  # only remembered once shown the answer
}


def calculate_sm2(
    quality: int,
    easiness_factor: float = 2.5,
    interval_days: int = 0,
    repetitions: int = 0,
    now: datetime | None = None,
) -> SM2Result:
    """Schedule the next review of a word.

    Args:
        quality: Recall quality from 0 (blackout) to 5 (perfect). Values
            outside that range are clamped. Anything below 3 is a failed
            recall and restarts the repetition count.
        easiness_factor: Current easiness factor, never below 1.3
        interval_days: Current interval in days
        repetitions: Consecutive successful recalls so far
        now: Reference time for next_review (defaults to datetime.now())
    """
    quality = max(0, min(5, quality))
    miss = 5 - quality
    easiness = max(MIN_EASINESS, easiness_factor + 0.1 - miss * (0.08 + miss * 0.02))

    if quality < PASSING_QUALITY:
        # Lapse: start over, but the lowered easiness sticks
        interval, streak = 1, 0
    elif repetitions == 0:
        interval, streak = 1, 1
    elif repetitions == 1:
        interval, streak = 6, 2
    else:
        interval, streak = round(interval_days * easiness), repetitions + 1

    return SM2Result(
        easiness_factor=easiness,
        interval_days=interval,
        repetitions=streak,
        next_review=(now or datetime.now()) + timedelta(days=interval),
    )


def quality_from_performance(performance: WordPerformance) -> int:
    """Convert a session performance grade to SM-2 quality (0-5)."""
    return PERFORMANCE_QUALITY[performance]
