"""
Progress repository for flashcard, section and content progress records
"""

import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any

from ....errors import ConcurrencyConflict, CorruptState
from ..connection import DatabaseConnection
from ..models import (
    ContentProgressRecord,
    FlashcardProgressRecord,
    MasteryLevel,
    SectionProgressRecord,
)

logger = logging.getLogger(__name__)


def _flashcard_from_row(row: sqlite3.Row) -> FlashcardProgressRecord:
    try:
        level = MasteryLevel(row["mastery_level"])
    except ValueError:
        raise CorruptState(
            f"Unknown mastery level {row['mastery_level']!r} for flashcard "
            f"{row['flashcard_id']}"
        ) from None
    return FlashcardProgressRecord(
        user_id=row["user_id"],
        flashcard_id=row["flashcard_id"],
        mastery_level=level,
        review_count=row["review_count"],
        last_reviewed_at=row["last_reviewed_at"],
        next_due_at=row["next_due_at"],
        ease_factor=row["ease_factor"],
        interval_days=row["interval_days"],
        ever_mastered=bool(row["ever_mastered"]),
        version=row["version"],
    )


def _section_from_row(row: sqlite3.Row) -> SectionProgressRecord:
    return SectionProgressRecord(
        user_id=row["user_id"],
        section_id=row["section_id"],
        questions_answered=row["questions_answered"],
        correct_answers=row["correct_answers"],
        total_questions=row["total_questions"],
        score=row["score"],
        completed=bool(row["completed"]),
        unlocked=bool(row["unlocked"]),
        completed_at=row["completed_at"],
        version=row["version"],
    )


def _content_from_row(row: sqlite3.Row) -> ContentProgressRecord:
    return ContentProgressRecord(
        user_id=row["user_id"],
        content_id=row["content_id"],
        content_type=row["content_type"],
        attempts=row["attempts"],
        completed=bool(row["completed"]),
        first_completed_at=row["first_completed_at"],
        best_score=row["best_score"],
        last_repeat_xp_on=row["last_repeat_xp_on"],
        total_xp_earned=row["total_xp_earned"],
        version=row["version"],
    )


class ProgressRepository:
    """Repository for per-user progress records"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    @contextmanager
    def _use(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        """Run inside the caller's transaction, or in a short one of our own"""
        if conn is not None:
            yield conn
            return
        with self.db_connection.get_connection() as own:
            yield own
            own.commit()

    # Flashcard progress

    def get_flashcard_progress(
        self, user_id: str, flashcard_id: str, conn: sqlite3.Connection | None = None
    ) -> FlashcardProgressRecord | None:
        """Get review state of one flashcard for a user"""
        with self._use(conn) as c:
            row = c.execute(
                "SELECT * FROM flashcard_progress WHERE user_id = ? AND flashcard_id = ?",
                (user_id, flashcard_id),
            ).fetchone()
            return _flashcard_from_row(row) if row else None

    def upsert_flashcard_progress(
        self, record: FlashcardProgressRecord, conn: sqlite3.Connection | None = None
    ) -> FlashcardProgressRecord:
        """
        Write a flashcard record if nobody changed it since it was read

        Raises:
            ConcurrencyConflict: if the stored version moved on
        """
        values = (
            record.mastery_level.value,
            record.review_count,
            record.last_reviewed_at,
            record.next_due_at,
            record.ease_factor,
            record.interval_days,
            record.ever_mastered,
            datetime.now(),
        )
        with self._use(conn) as c:
            if record.version == 0:
                try:
                    c.execute(
                        """
                        INSERT INTO flashcard_progress (
                            mastery_level, review_count, last_reviewed_at, next_due_at,
                            ease_factor, interval_days, ever_mastered, updated_at,
                            user_id, flashcard_id, version
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        values + (record.user_id, record.flashcard_id),
                    )
                except sqlite3.IntegrityError as e:
                    self._raise_insert_conflict("flashcard", record.user_id, record.flashcard_id, e)
            else:
                cursor = c.execute(
                    """
                    UPDATE flashcard_progress
                    SET mastery_level = ?, review_count = ?, last_reviewed_at = ?,
                        next_due_at = ?, ease_factor = ?, interval_days = ?,
                        ever_mastered = ?, updated_at = ?, version = version + 1
                    WHERE user_id = ? AND flashcard_id = ? AND version = ?
                    """,
                    values + (record.user_id, record.flashcard_id, record.version),
                )
                self._check_updated(cursor, "flashcard", record.user_id, record.flashcard_id)
        return replace(record, version=record.version + 1)

    def get_due_flashcards(
        self, user_id: str, now: datetime, limit: int = 20
    ) -> list[FlashcardProgressRecord]:
        """Flashcards whose next review time has passed, most overdue first"""
        with self._use(None) as c:
            rows = c.execute(
                """
                SELECT * FROM flashcard_progress
                WHERE user_id = ? AND next_due_at <= ?
                ORDER BY next_due_at ASC
                LIMIT ?
                """,
                (user_id, now, limit),
            ).fetchall()
            return [_flashcard_from_row(row) for row in rows]

    def add_review_history(
        self,
        user_id: str,
        flashcard_id: str,
        rating: str,
        reviewed_at: datetime,
        time_spent: float = 0,
        conn: sqlite3.Connection | None = None,
    ) -> None:
        with self._use(conn) as c:
            c.execute(
                """
                INSERT INTO review_history (user_id, flashcard_id, rating, time_spent, reviewed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, flashcard_id, rating, time_spent, reviewed_at),
            )

    def get_review_history(
        self, user_id: str, flashcard_id: str | None = None, limit: int = 100
    ) -> list[dict[str, Any]]:
        """Get review history for user or specific flashcard"""
        with self._use(None) as c:
            if flashcard_id:
                cursor = c.execute(
                    """
                    SELECT * FROM review_history
                    WHERE user_id = ? AND flashcard_id = ?
                    ORDER BY reviewed_at DESC, id DESC
                    LIMIT ?
                    """,
                    (user_id, flashcard_id, limit),
                )
            else:
                cursor = c.execute(
                    """
                    SELECT * FROM review_history
                    WHERE user_id = ?
                    ORDER BY reviewed_at DESC, id DESC
                    LIMIT ?
                    """,
                    (user_id, limit),
                )
            return [dict(row) for row in cursor.fetchall()]

    # Section progress

    def get_section_progress(
        self, user_id: str, section_id: str, conn: sqlite3.Connection | None = None
    ) -> SectionProgressRecord | None:
        with self._use(conn) as c:
            row = c.execute(
                "SELECT * FROM section_progress WHERE user_id = ? AND section_id = ?",
                (user_id, section_id),
            ).fetchone()
            return _section_from_row(row) if row else None

    def get_section_progress_for_sections(
        self,
        user_id: str,
        section_ids: Sequence[str],
        conn: sqlite3.Connection | None = None,
    ) -> dict[str, SectionProgressRecord]:
        """Progress of several sections keyed by section id"""
        if not section_ids:
            return {}
        placeholders = ", ".join("?" for _ in section_ids)
        with self._use(conn) as c:
            rows = c.execute(
                f"""
                SELECT * FROM section_progress
                WHERE user_id = ? AND section_id IN ({placeholders})
                """,  # noqa: S608  # Safe: placeholders only
                (user_id, *section_ids),
            ).fetchall()
            return {row["section_id"]: _section_from_row(row) for row in rows}

    def upsert_section_progress(
        self, record: SectionProgressRecord, conn: sqlite3.Connection | None = None
    ) -> SectionProgressRecord:
        """
        Write a section record if nobody changed it since it was read

        Raises:
            ConcurrencyConflict: if the stored version moved on
        """
        values = (
            record.questions_answered,
            record.correct_answers,
            record.total_questions,
            record.score,
            record.completed,
            record.unlocked,
            record.completed_at,
            datetime.now(),
        )
        with self._use(conn) as c:
            if record.version == 0:
                try:
                    c.execute(
                        """
                        INSERT INTO section_progress (
                            questions_answered, correct_answers, total_questions, score,
                            completed, unlocked, completed_at, updated_at,
                            user_id, section_id, version
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        values + (record.user_id, record.section_id),
                    )
                except sqlite3.IntegrityError as e:
                    self._raise_insert_conflict("section", record.user_id, record.section_id, e)
            else:
                cursor = c.execute(
                    """
                    UPDATE section_progress
                    SET questions_answered = ?, correct_answers = ?, total_questions = ?,
                        score = ?, completed = ?, unlocked = ?, completed_at = ?,
                        updated_at = ?, version = version + 1
                    WHERE user_id = ? AND section_id = ? AND version = ?
                    """,
                    values + (record.user_id, record.section_id, record.version),
                )
                self._check_updated(cursor, "section", record.user_id, record.section_id)
        return replace(record, version=record.version + 1)

    # Content progress

    def get_content_progress(
        self,
        user_id: str,
        content_id: str,
        content_type: str,
        conn: sqlite3.Connection | None = None,
    ) -> ContentProgressRecord | None:
        with self._use(conn) as c:
            row = c.execute(
                """
                SELECT * FROM content_progress
                WHERE user_id = ? AND content_id = ? AND content_type = ?
                """,
                (user_id, content_id, content_type),
            ).fetchone()
            return _content_from_row(row) if row else None

    def get_content_progress_for_items(
        self,
        user_id: str,
        content_ids: Sequence[str],
        content_type: str,
        conn: sqlite3.Connection | None = None,
    ) -> dict[str, ContentProgressRecord]:
        """Progress markers of the given items, keyed by content id"""
        if not content_ids:
            return {}
        placeholders = ", ".join("?" for _ in content_ids)
        with self._use(conn) as c:
            rows = c.execute(
                f"""
                SELECT * FROM content_progress
                WHERE user_id = ? AND content_type = ? AND content_id IN ({placeholders})
                """,  # noqa: S608  # Safe: placeholders only
                (user_id, content_type, *content_ids),
            ).fetchall()
            return {row["content_id"]: _content_from_row(row) for row in rows}

    def upsert_content_progress(
        self, record: ContentProgressRecord, conn: sqlite3.Connection | None = None
    ) -> ContentProgressRecord:
        """
        Write a content marker if nobody changed it since it was read

        Raises:
            ConcurrencyConflict: if the stored version moved on
        """
        values = (
            record.attempts,
            record.completed,
            record.first_completed_at,
            record.best_score,
            record.last_repeat_xp_on,
            record.total_xp_earned,
            datetime.now(),
        )
        key = (record.user_id, record.content_id, record.content_type)
        with self._use(conn) as c:
            if record.version == 0:
                try:
                    c.execute(
                        """
                        INSERT INTO content_progress (
                            attempts, completed, first_completed_at, best_score,
                            last_repeat_xp_on, total_xp_earned, updated_at,
                            user_id, content_id, content_type, version
                        )
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1)
                        """,
                        values + key,
                    )
                except sqlite3.IntegrityError as e:
                    self._raise_insert_conflict(record.content_type, record.user_id, record.content_id, e)
            else:
                cursor = c.execute(
                    """
                    UPDATE content_progress
                    SET attempts = ?, completed = ?, first_completed_at = ?, best_score = ?,
                        last_repeat_xp_on = ?, total_xp_earned = ?, updated_at = ?,
                        version = version + 1
                    WHERE user_id = ? AND content_id = ? AND content_type = ? AND version = ?
                    """,
                    values + key + (record.version,),
                )
                self._check_updated(cursor, record.content_type, record.user_id, record.content_id)
        return replace(record, version=record.version + 1)

    def _check_updated(
        self, cursor: sqlite3.Cursor, kind: str, user_id: str, content_id: str
    ) -> None:
        if cursor.rowcount == 0:
            logger.warning(
                f"Stale {kind} progress write for user {user_id}, content {content_id}"
            )
            raise ConcurrencyConflict(
                f"{kind} progress for user {user_id}, content {content_id} "
                "was changed concurrently"
            )

    def _raise_insert_conflict(
        self, kind: str, user_id: str, content_id: str, error: sqlite3.IntegrityError
    ) -> None:
        if "UNIQUE" not in str(error) and "PRIMARY KEY" not in str(error):
            raise error
        logger.warning(
            f"Concurrent creation of {kind} progress for user {user_id}, content {content_id}"
        )
        raise ConcurrencyConflict(
            f"{kind} progress for user {user_id}, content {content_id} "
            "was created concurrently"
        ) from error
