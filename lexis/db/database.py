"""SQLite database setup and operations."""

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from lexis.db.models import (
    ERROR_PERFORMANCE,
    ORDER_FIELDS,
    Learning,
    LearningStatus,
    OrderSpec,
    PracticeSession,
    PracticeSessionType,
    SelectionFilter,
    SessionResults,
    SessionSettings,
    SessionWordEntry,
    WordRecord,
    format_datetime,
    parse_datetime,
)
from lexis.db.store import WordProgress
from lexis.errors import InvalidRequest, StoreUnavailable

logger = logging.getLogger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS words (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    word TEXT NOT NULL,
    translation TEXT NOT NULL DEFAULT '',
    pronunciation TEXT,
    categories TEXT DEFAULT '[]',
    examples TEXT DEFAULT '[]',
    status TEXT NOT NULL DEFAULT 'new',
    strength REAL NOT NULL DEFAULT 0.0,
    next_review TIMESTAMP,
    last_studied TIMESTAMP,
    easiness_factor REAL DEFAULT 2.5,
    interval_days INTEGER DEFAULT 0,
    repetitions INTEGER DEFAULT 0,
    created_at TIMESTAMP
);

CREATE TABLE IF NOT EXISTS practice_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    session_type TEXT NOT NULL,
    settings TEXT NOT NULL DEFAULT '{}',
    words TEXT NOT NULL DEFAULT '[]',
    duration INTEGER DEFAULT 0,
    score REAL DEFAULT 0,
    results TEXT NOT NULL DEFAULT '{}',
    version INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_words_user ON words(user_id);
CREATE INDEX IF NOT EXISTS idx_words_next_review ON words(user_id, next_review);
CREATE INDEX IF NOT EXISTS idx_words_strength ON words(user_id, strength);
CREATE INDEX IF NOT EXISTS idx_words_last_studied ON words(user_id, last_studied);
CREATE INDEX IF NOT EXISTS idx_sessions_user ON practice_sessions(user_id);
"""


class Database:
    """SQLite database wrapper with thread-local connection pooling.

    Selection runs store calls in worker threads, so every thread gets its
    own connection.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._local = threading.local()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create a thread-local database connection."""
        if not hasattr(self._local, "conn") or self._local.conn is None:
            self._local.conn = sqlite3.connect(self.db_path)
            self._local.conn.row_factory = sqlite3.Row
        return self._local.conn

    @contextmanager
    def connection(self):
        """Get a database connection (reuses thread-local connection).

        Commits on success and rolls back on any error. SQLite failures are
        raised as StoreUnavailable.
        """
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise StoreUnavailable("Could not open word store", e) from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Word store operation failed: {e}")
            raise StoreUnavailable("Word store operation failed", e) from e
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        """Close the thread-local connection if open."""
        if hasattr(self._local, "conn") and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None

    def init_schema(self) -> None:
        """Initialize the database schema and run migrations."""
        with self.connection() as conn:
            conn.executescript(SCHEMA)
            self._migrate(conn)

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Run schema migrations for existing databases."""
        # Sessions created before optimistic locking have no version column
        cursor = conn.execute("PRAGMA table_info(practice_sessions)")
        columns = {row[1] for row in cursor.fetchall()}
        if "version" not in columns:
            conn.execute("ALTER TABLE practice_sessions ADD COLUMN version INTEGER NOT NULL DEFAULT 0")

        cursor = conn.execute("PRAGMA table_info(words)")
        columns = {row[1] for row in cursor.fetchall()}
        if "pronunciation" not in columns:
            conn.execute("ALTER TABLE words ADD COLUMN pronunciation TEXT")

    # Word operations
    def add_word(self, word: WordRecord) -> int:
        """Add a word and return its ID.

        Words without a review date are due immediately.
        """
        now = datetime.now()
        learning = word.learning
        next_review = learning.next_review or now
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO words
                (user_id, word, translation, pronunciation, categories, examples, status, strength,
                 next_review, last_studied, easiness_factor, interval_days, repetitions, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    word.user_id,
                    word.word,
                    word.translation,
                    word.pronunciation,
                    json.dumps(word.categories),
                    json.dumps(word.examples),
                    learning.status.value,
                    learning.strength,
                    format_datetime(next_review),
                    format_datetime(learning.last_studied),
                    learning.easiness_factor,
                    learning.interval_days,
                    learning.repetitions,
                    format_datetime(word.created_at or now),
                ),
            )
            return cursor.lastrowid

    def get_word(self, user_id: int, word_id: int) -> WordRecord | None:
        """Get one of a user's words by ID."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM words WHERE id = ? AND user_id = ?",
                (word_id, user_id),
            ).fetchone()
            if row:
                return self._row_to_word(row)
            return None

    def get_words(self, user_id: int) -> list[WordRecord]:
        """Get all of a user's words in insertion order."""
        with self.connection() as conn:
            rows = conn.execute("SELECT * FROM words WHERE user_id = ? ORDER BY id", (user_id,)).fetchall()
            return [self._row_to_word(row) for row in rows]

    def update_word_learning(self, user_id: int, word_id: int, learning: Learning) -> bool:
        """Replace a word's learning state. Returns False if the word doesn't exist."""
        with self.connection() as conn:
            return self._write_learning(conn, user_id, word_id, learning)

    def _write_learning(self, conn: sqlite3.Connection, user_id: int, word_id: int, learning: Learning) -> bool:
        cursor = conn.execute(
            """
            UPDATE words
            SET status = ?, strength = ?, next_review = ?, last_studied = ?,
                easiness_factor = ?, interval_days = ?, repetitions = ?
            WHERE id = ? AND user_id = ?
            """,
            (
                learning.status.value,
                learning.strength,
                format_datetime(learning.next_review),
                format_datetime(learning.last_studied),
                learning.easiness_factor,
                learning.interval_days,
                learning.repetitions,
                word_id,
                user_id,
            ),
        )
        return cursor.rowcount == 1

    def delete_word(self, user_id: int, word_id: int) -> bool:
        """Delete one of a user's words."""
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM words WHERE id = ? AND user_id = ?", (word_id, user_id))
            return cursor.rowcount == 1

    def find_words_by_filter(
        self,
        user_id: int,
        selection_filter: SelectionFilter,
        order: OrderSpec | None = None,
        limit: int | None = None,
    ) -> list[WordRecord]:
        """Find a user's words matching a filter, ordered and limited.

        Without an order, words come back in insertion order.
        """
        clauses = ["user_id = ?"]
        params: list = [user_id]

        if selection_filter.statuses:
            statuses = sorted(status.value for status in selection_filter.statuses)
            clauses.append(f"status IN ({', '.join('?' for _ in statuses)})")
            params.extend(statuses)
        if selection_filter.min_strength is not None:
            clauses.append("strength >= ?")
            params.append(selection_filter.min_strength)
        if selection_filter.max_strength is not None:
            clauses.append("strength <= ?")
            params.append(selection_filter.max_strength)
        if selection_filter.categories:
            categories = sorted(selection_filter.categories)
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(words.categories) "
                f"WHERE json_each.value IN ({', '.join('?' for _ in categories)}))"
            )
            params.extend(categories)

        order_by = "id"
        if order is not None:
            if order.field not in ORDER_FIELDS:
                raise InvalidRequest(f"Unknown order field: {order.field}")
            if order.due_before is not None:
                clauses.append("next_review IS NOT NULL AND next_review <= ?")
                params.append(format_datetime(order.due_before))
            if order.field == "random":
                order_by = "RANDOM()"
            else:
                direction = "DESC" if order.descending else "ASC"
                order_by = f"{order.field} {direction}, id"

        query = f"SELECT * FROM words WHERE {' AND '.join(clauses)} ORDER BY {order_by}"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self.connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_word(row) for row in rows]

    def count_session_errors_by_word(self, user_id: int) -> dict[int, int]:
        """Count POOR results per word across all of a user's practice sessions."""
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT json_extract(entry.value, '$.word_id') AS word_id, COUNT(*) AS errors
                FROM practice_sessions s, json_each(s.words) AS entry
                WHERE s.user_id = ? AND json_extract(entry.value, '$.performance') = ?
                GROUP BY word_id
                """,
                (user_id, ERROR_PERFORMANCE.value),
            ).fetchall()
            return {int(row["word_id"]): row["errors"] for row in rows}

    def _row_to_word(self, row: sqlite3.Row) -> WordRecord:
        """Convert a database row to a WordRecord."""
        return WordRecord(
            id=row["id"],
            user_id=row["user_id"],
            word=row["word"],
            translation=row["translation"],
            pronunciation=row["pronunciation"],
            categories=json.loads(row["categories"]) if row["categories"] else [],
            examples=json.loads(row["examples"]) if row["examples"] else [],
            learning=Learning(
                status=LearningStatus(row["status"]),
                strength=row["strength"],
                next_review=parse_datetime(row["next_review"]),
                last_studied=parse_datetime(row["last_studied"]),
                easiness_factor=row["easiness_factor"],
                interval_days=row["interval_days"],
                repetitions=row["repetitions"],
            ),
            created_at=parse_datetime(row["created_at"]),
        )

    # Practice session operations
    def create_practice_session(self, session: PracticeSession) -> int:
        """Create a practice session with its full word list and return its ID."""
        now = format_datetime(datetime.now())
        with self.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO practice_sessions
                (user_id, session_type, settings, words, duration, score, results, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.user_id,
                    session.session_type.value,
                    json.dumps(session.settings.to_dict()),
                    json.dumps([entry.to_dict() for entry in session.words]),
                    session.duration,
                    session.score,
                    json.dumps(session.results.to_dict()),
                    session.version,
                    now,
                    now,
                ),
            )
            return cursor.lastrowid

    def get_practice_session(self, user_id: int, session_id: int) -> PracticeSession | None:
        """Get a session by ID, only if it belongs to user_id."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM practice_sessions WHERE id = ? AND user_id = ?",
                (session_id, user_id),
            ).fetchone()
            if row:
                return self._row_to_session(row)
            return None

    def get_practice_sessions(self, user_id: int) -> list[PracticeSession]:
        """Get all of a user's sessions, newest first."""
        with self.connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM practice_sessions
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                """,
                (user_id,),
            ).fetchall()
            return [self._row_to_session(row) for row in rows]

    def save_practice_session(self, session: PracticeSession, progress: WordProgress | None = None) -> bool:
        """Write back a session's mutable state, plus an optional learning update.

        The write only applies if the stored version still matches
        session.version. Returns False when another writer got there first;
        on success session.version is bumped to match the stored row.

        Both writes share one IMMEDIATE transaction, which holds SQLite's write
        lock from the start, so the word's learning state is read and replaced
        without another writer in between. If either write fails, neither is
        kept.
        """
        now = datetime.now()
        with self.connection() as conn:
            if not conn.in_transaction:
                conn.execute("BEGIN IMMEDIATE")
            cursor = conn.execute(
                """
                UPDATE practice_sessions
                SET words = ?, duration = ?, score = ?, results = ?,
                    version = version + 1, updated_at = ?
                WHERE id = ? AND user_id = ? AND version = ?
                """,
                (
                    json.dumps([entry.to_dict() for entry in session.words]),
                    session.duration,
                    session.score,
                    json.dumps(session.results.to_dict()),
                    format_datetime(now),
                    session.id,
                    session.user_id,
                    session.version,
                ),
            )
            if cursor.rowcount != 1:
                return False
            if progress is not None:
                self._apply_progress(conn, session.user_id, progress)
        session.version += 1
        session.updated_at = now
        return True

    def _apply_progress(self, conn: sqlite3.Connection, user_id: int, progress: WordProgress) -> None:
        row = conn.execute(
            "SELECT * FROM words WHERE id = ? AND user_id = ?",
            (progress.word_id, user_id),
        ).fetchone()
        if row is None:
            logger.warning(f"Word {progress.word_id} no longer exists; skipping learning update for user {user_id}")
            return
        learning = progress.advance(self._row_to_word(row).learning)
        self._write_learning(conn, user_id, progress.word_id, learning)

    def delete_practice_session(self, user_id: int, session_id: int) -> bool:
        """Delete a session owned by user_id. Returns False if nothing was deleted."""
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM practice_sessions WHERE id = ? AND user_id = ?",
                (session_id, user_id),
            )
            return cursor.rowcount == 1

    def _row_to_session(self, row: sqlite3.Row) -> PracticeSession:
        """Convert a database row to a PracticeSession."""
        return PracticeSession(
            id=row["id"],
            user_id=row["user_id"],
            session_type=PracticeSessionType(row["session_type"]),
            settings=SessionSettings.from_dict(json.loads(row["settings"]) if row["settings"] else {}),
            words=[SessionWordEntry.from_dict(entry) for entry in json.loads(row["words"] or "[]")],
            duration=row["duration"],
            score=row["score"],
            results=SessionResults.from_dict(json.loads(row["results"]) if row["results"] else {}),
            version=row["version"],
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )
