"""Storage interfaces consumed by the selector and the session manager.

Database implements both; tests and alternative backends can supply their own.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from lexis.db.models import Learning, OrderSpec, PracticeSession, SelectionFilter, WordRecord
from lexis.errors import StoreUnavailable

logger = logging.getLogger(__name__)


@dataclass
class WordProgress:
    """A learning-state change to apply to one word in the same write as a session.

    advance receives the word's current Learning, read inside the write
    transaction, and returns the new one.
    """

    word_id: int
    advance: Callable[[Learning], Learning]


class WordStore(Protocol):
    """Read access to a user's words."""

    def find_words_by_filter(
        self,
        user_id: int,
        selection_filter: SelectionFilter,
        order: OrderSpec | None = None,
        limit: int | None = None,
    ) -> list[WordRecord]: ...

    def count_session_errors_by_word(self, user_id: int) -> dict[int, int]: ...


class SessionStore(Protocol):
    """Persistence for practice sessions, plus the learning updates practice causes."""

    def create_practice_session(self, session: PracticeSession) -> int: ...

    def get_practice_session(self, user_id: int, session_id: int) -> PracticeSession | None: ...

    def get_practice_sessions(self, user_id: int) -> list[PracticeSession]: ...

    def save_practice_session(self, session: PracticeSession, progress: WordProgress | None = None) -> bool: ...

    def delete_practice_session(self, user_id: int, session_id: int) -> bool: ...


async def call_store(method, *args, timeout: float):
    """Run a blocking store call in a worker thread, bounded by timeout seconds.

    Timeouts and connection-level failures are raised as StoreUnavailable so
    callers never mistake a failed query for an empty result.
    """
    operation = getattr(method, "__name__", repr(method))
    try:
        return await asyncio.wait_for(asyncio.to_thread(method, *args), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Word store call {operation} timed out after {timeout}s")
        raise StoreUnavailable(
            f"Word store timed out after {timeout}s",
            e,
            details={"operation": operation},
        ) from e
    except OSError as e:
        logger.error(f"Word store call {operation} failed: {e}")
        raise StoreUnavailable("Word store unreachable", e, details={"operation": operation}) from e
