"""Database models for Lexis."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class LearningStatus(Enum):
    NEW = "new"
    LEARNING = "learning"
    MASTERED = "mastered"


class SelectionStrategy(Enum):
    """Ranking policy for the algorithmic (non-random) share of a selection."""

    SPACED_REPETITION = "SPACED_REPETITION"  # Due for review, most overdue first
    WEAKEST_WORDS = "WEAKEST_WORDS"  # Lowest strength first
    LEAST_PRACTICED = "LEAST_PRACTICED"  # Stalest last_studied first
    MOST_ERRORS = "MOST_ERRORS"  # Most POOR results in past sessions first
    BALANCED = "BALANCED"  # Weighted status/strength/recency score


class PracticeSessionType(Enum):
    FLASHCARD = "flashcard"
    QUIZ = "quiz"
    WRITING = "writing"
    SPEAKING = "speaking"
    LISTENING = "listening"


class Difficulty(Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class ReviewType(Enum):
    SPACED = "spaced"
    RANDOM = "random"
    WEAK_WORDS = "weak-words"


class WordPerformance(Enum):
    PERFECT = "perfect"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


CORRECT_PERFORMANCES = frozenset({WordPerformance.PERFECT, WordPerformance.GOOD})

# Counted as an error by the MOST_ERRORS strategy. FAIR is the default for
# entries nobody has answered yet, so it never counts.
ERROR_PERFORMANCE = WordPerformance.POOR


def parse_datetime(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def format_datetime(value: datetime | None) -> str | None:
    return value.isoformat(timespec="microseconds") if value else None


@dataclass
class Learning:
    """Per-word learning state, including SM-2 bookkeeping."""

    status: LearningStatus = LearningStatus.NEW
    strength: float = 0.0  # 0 = unknown, 1 = fully learned
    next_review: datetime | None = None
    last_studied: datetime | None = None

    # SM-2 state
    easiness_factor: float = 2.5
    interval_days: int = 0
    repetitions: int = 0

    def __post_init__(self) -> None:
        self.strength = max(0.0, min(1.0, float(self.strength)))

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "strength": self.strength,
            "next_review": format_datetime(self.next_review),
            "last_studied": format_datetime(self.last_studied),
            "easiness_factor": self.easiness_factor,
            "interval_days": self.interval_days,
            "repetitions": self.repetitions,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Learning":
        return cls(
            status=LearningStatus(data.get("status", LearningStatus.NEW.value)),
            strength=data.get("strength", 0.0),
            next_review=parse_datetime(data.get("next_review")),
            last_studied=parse_datetime(data.get("last_studied")),
            easiness_factor=data.get("easiness_factor", 2.5),
            interval_days=data.get("interval_days", 0),
            repetitions=data.get("repetitions", 0),
        )


@dataclass
class WordRecord:
    """A word in a user's vocabulary, as enriched by the content generator."""

    id: int | None = None
    user_id: int = 0
    word: str = ""
    translation: str = ""
    pronunciation: str | None = None
    categories: list[str] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    learning: Learning = field(default_factory=Learning)
    created_at: datetime | None = None

    def to_dict(self) -> dict:
        """Return a JSON-serializable dict, used by cache backends."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "word": self.word,
            "translation": self.translation,
            "pronunciation": self.pronunciation,
            "categories": list(self.categories),
            "examples": list(self.examples),
            "learning": self.learning.to_dict(),
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WordRecord":
        return cls(
            id=data.get("id"),
            user_id=data.get("user_id", 0),
            word=data.get("word", ""),
            translation=data.get("translation", ""),
            pronunciation=data.get("pronunciation"),
            categories=list(data.get("categories") or []),
            examples=list(data.get("examples") or []),
            learning=Learning.from_dict(data.get("learning") or {}),
            created_at=parse_datetime(data.get("created_at")),
        )


@dataclass(frozen=True)
class SelectionFilter:
    """Narrows the candidate pool before ranking.

    Empty sets and None bounds mean "no restriction". A word matches the
    categories filter when it carries any of the listed categories.
    """

    statuses: frozenset[LearningStatus] = frozenset()
    min_strength: float | None = None
    max_strength: float | None = None
    categories: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        # Accept any iterable for the set fields so callers can pass lists
        object.__setattr__(self, "statuses", frozenset(self.statuses))
        object.__setattr__(self, "categories", frozenset(self.categories))

    def to_dict(self) -> dict:
        """Stable, JSON-serializable form used in cache keys."""
        return {
            "statuses": sorted(status.value for status in self.statuses),
            "min_strength": self.min_strength,
            "max_strength": self.max_strength,
            "categories": sorted(self.categories),
        }


@dataclass(frozen=True)
class SelectionRequest:
    """Everything the selector needs for one selection."""

    user_id: int
    count: int
    strategy: SelectionStrategy
    random_percentage: int | None = None  # None: the selector's default
    filter: SelectionFilter = field(default_factory=SelectionFilter)
    use_cache: bool = True


@dataclass
class SelectionResult:
    """Algorithmic and random pools. The caller merges them."""

    algorithmic_words: list[WordRecord] = field(default_factory=list)
    random_words: list[WordRecord] = field(default_factory=list)


@dataclass(frozen=True)
class OrderSpec:
    """Ordering a word store applies to a filtered query.

    field is one of ORDER_FIELDS. due_before restricts results to words with
    next_review <= due_before.
    """

    field: str
    descending: bool = False
    due_before: datetime | None = None


ORDER_FIELDS = ("next_review", "strength", "last_studied", "random")

RANDOM_ORDER = OrderSpec(field="random")


@dataclass
class SessionSettings:
    difficulty: Difficulty = Difficulty.MEDIUM
    review_type: ReviewType = ReviewType.SPACED
    time_limit: int = 300  # seconds
    words_limit: int = 10

    def to_dict(self) -> dict:
        return {
            "difficulty": self.difficulty.value,
            "review_type": self.review_type.value,
            "time_limit": self.time_limit,
            "words_limit": self.words_limit,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionSettings":
        return cls(
            difficulty=Difficulty(data.get("difficulty", Difficulty.MEDIUM.value)),
            review_type=ReviewType(data.get("review_type", ReviewType.SPACED.value)),
            time_limit=data.get("time_limit", 300),
            words_limit=data.get("words_limit", 10),
        )


@dataclass
class SessionWordEntry:
    """One word's outcome within a practice session."""

    word_id: int
    performance: WordPerformance = WordPerformance.FAIR
    time_spent: int = 0  # seconds
    attempts: int = 0
    metadata: dict = field(default_factory=dict)
    recorded: bool = False  # set once a performance has been recorded

    def to_dict(self) -> dict:
        return {
            "word_id": self.word_id,
            "performance": self.performance.value,
            "time_spent": self.time_spent,
            "attempts": self.attempts,
            "metadata": self.metadata,
            "recorded": self.recorded,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionWordEntry":
        return cls(
            word_id=data["word_id"],
            performance=WordPerformance(data.get("performance", WordPerformance.FAIR.value)),
            time_spent=data.get("time_spent", 0),
            attempts=data.get("attempts", 0),
            metadata=dict(data.get("metadata") or {}),
            recorded=bool(data.get("recorded", False)),
        )


@dataclass
class SessionResults:
    """Aggregate statistics, recomputed from the session's entries."""

    total_words: int = 0
    correct_words: int = 0
    incorrect_words: int = 0
    accuracy: float = 0.0
    average_time_per_word: float = 0.0
    streak: int = 0
    xp_earned: int = 0

    def to_dict(self) -> dict:
        return {
            "total_words": self.total_words,
            "correct_words": self.correct_words,
            "incorrect_words": self.incorrect_words,
            "accuracy": self.accuracy,
            "average_time_per_word": self.average_time_per_word,
            "streak": self.streak,
            "xp_earned": self.xp_earned,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionResults":
        return cls(**{key: value for key, value in data.items() if key in RESULT_FIELDS})


RESULT_FIELDS = frozenset(SessionResults().to_dict())


@dataclass
class PerformanceUpdate:
    """Outcome of practicing one word, as reported by the client."""

    word_id: int
    performance: WordPerformance
    time_spent: int = 0
    attempts: int = 0
    metadata: dict = field(default_factory=dict)


@dataclass
class PracticeSession:
    """One bounded practice attempt over a fixed list of words."""

    id: int | None = None
    user_id: int = 0
    session_type: PracticeSessionType = PracticeSessionType.FLASHCARD
    settings: SessionSettings = field(default_factory=SessionSettings)
    words: list[SessionWordEntry] = field(default_factory=list)
    duration: int = 0  # seconds
    score: float = 0.0
    results: SessionResults = field(default_factory=SessionResults)
    version: int = 0  # Bumped on every save, for optimistic concurrency
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_entry(self, word_id: int) -> SessionWordEntry | None:
        """Return the entry for word_id, or None if the word isn't in this session."""
        for entry in self.words:
            if entry.word_id == word_id:
                return entry
        return None
