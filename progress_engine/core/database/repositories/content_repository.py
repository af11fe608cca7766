"""
Content repository: read access to the learning catalog
"""

import json
import logging
import sqlite3
from typing import Any

from ....errors import CorruptState
from ..connection import DatabaseConnection
from ..models import Flashcard, Question, Quiz, QuizMode, Section, UnlockPolicy

logger = logging.getLogger(__name__)


def _section_from_row(row: sqlite3.Row) -> Section:
    section = dict(row)
    section["require_completion"] = bool(section["require_completion"])
    return section


def _question_from_row(row: sqlite3.Row) -> Question:
    question = dict(row)
    if question["answer_key"] is not None:
        try:
            question["answer_key"] = json.loads(question["answer_key"])
        except json.JSONDecodeError:
            raise CorruptState(
                f"Answer key of question {question['id']} is not valid JSON"
            ) from None
    return question


class ContentRepository:
    """Repository for subjects' sections, questions, flashcards and quizzes"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    def _fetch_one(self, sql: str, params: tuple, conn: sqlite3.Connection | None):
        if conn is not None:
            return conn.execute(sql, params).fetchone()
        with self.db_connection.get_connection() as own:
            return own.execute(sql, params).fetchone()

    def _fetch_all(self, sql: str, params: tuple, conn: sqlite3.Connection | None):
        if conn is not None:
            return conn.execute(sql, params).fetchall()
        with self.db_connection.get_connection() as own:
            return own.execute(sql, params).fetchall()

    # Reads

    def get_section(self, section_id: str, conn: sqlite3.Connection | None = None) -> Section | None:
        row = self._fetch_one("SELECT * FROM sections WHERE id = ?", (section_id,), conn)
        return _section_from_row(row) if row else None

    def get_sections_for_topic(
        self, topic_id: str, conn: sqlite3.Connection | None = None
    ) -> list[Section]:
        """Sections of a topic in display order"""
        rows = self._fetch_all(
            "SELECT * FROM sections WHERE topic_id = ? ORDER BY order_index, id",
            (topic_id,),
            conn,
        )
        return [_section_from_row(row) for row in rows]

    def get_question(self, question_id: str, conn: sqlite3.Connection | None = None) -> Question | None:
        row = self._fetch_one("SELECT * FROM questions WHERE id = ?", (question_id,), conn)
        return _question_from_row(row) if row else None

    def get_questions_for_section(
        self, section_id: str, conn: sqlite3.Connection | None = None
    ) -> list[Question]:
        rows = self._fetch_all(
            "SELECT * FROM questions WHERE section_id = ? ORDER BY order_index, id",
            (section_id,),
            conn,
        )
        return [_question_from_row(row) for row in rows]

    def get_flashcard(self, flashcard_id: str, conn: sqlite3.Connection | None = None) -> Flashcard | None:
        row = self._fetch_one("SELECT * FROM flashcards WHERE id = ?", (flashcard_id,), conn)
        return dict(row) if row else None

    def get_quiz(self, quiz_id: str, conn: sqlite3.Connection | None = None) -> Quiz | None:
        row = self._fetch_one("SELECT * FROM quizzes WHERE id = ?", (quiz_id,), conn)
        return dict(row) if row else None

    def get_topic_content_ids(
        self, topic_id: str, conn: sqlite3.Connection | None = None
    ) -> tuple[list[str], list[str]]:
        """Ids of every question and every flashcard belonging to a topic"""
        question_rows = self._fetch_all(
            """
            SELECT q.id FROM questions q
            JOIN sections s ON s.id = q.section_id
            WHERE s.topic_id = ?
            ORDER BY s.order_index, q.order_index, q.id
            """,
            (topic_id,),
            conn,
        )
        flashcard_rows = self._fetch_all(
            "SELECT id FROM flashcards WHERE topic_id = ? ORDER BY id", (topic_id,), conn
        )
        return [row["id"] for row in question_rows], [row["id"] for row in flashcard_rows]

    # Writes, used when seeding the catalog

    def add_section(
        self,
        section_id: str,
        topic_id: str,
        name: str,
        order_index: int,
        unlock_policy: str = UnlockPolicy.ALWAYS.value,
        required_score: float | None = None,
        require_completion: bool = False,
        completion_xp: int | None = None,
    ) -> Section:
        UnlockPolicy(unlock_policy)
        with self.db_connection.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO sections (
                    id, topic_id, name, order_index, unlock_policy,
                    required_score, require_completion, completion_xp
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    section_id,
                    topic_id,
                    name,
                    order_index,
                    unlock_policy,
                    required_score,
                    require_completion,
                    completion_xp,
                ),
            )
            conn.commit()
        logger.info(f"Added section {section_id} to topic {topic_id}")
        return self.get_section(section_id)

    def add_question(
        self,
        question_id: str,
        section_id: str,
        order_index: int,
        question_type: str = "multiple-choice",
        points: int = 10,
        difficulty: str = "Beginner",
        answer_key: dict[str, Any] | None = None,
    ) -> Question:
        with self.db_connection.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO questions (
                    id, section_id, order_index, question_type, points, difficulty, answer_key
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    question_id,
                    section_id,
                    order_index,
                    question_type,
                    points,
                    difficulty,
                    json.dumps(answer_key) if answer_key is not None else None,
                ),
            )
            conn.commit()
        return self.get_question(question_id)

    def add_flashcard(self, flashcard_id: str, topic_id: str, xp: int | None = None) -> Flashcard:
        with self.db_connection.get_connection() as conn:
            conn.execute(
                "INSERT INTO flashcards (id, topic_id, xp) VALUES (?, ?, ?)",
                (flashcard_id, topic_id, xp),
            )
            conn.commit()
        return self.get_flashcard(flashcard_id)

    def add_quiz(
        self,
        quiz_id: str,
        name: str,
        xp: int | None = None,
        pass_score: float = 70.0,
        mode: str = QuizMode.RANDOM.value,
    ) -> Quiz:
        QuizMode(mode)
        with self.db_connection.get_connection() as conn:
            conn.execute(
                "INSERT INTO quizzes (id, name, xp, pass_score, mode) VALUES (?, ?, ?, ?, ?)",
                (quiz_id, name, xp, pass_score, mode),
            )
            conn.commit()
        return self.get_quiz(quiz_id)

    def delete_flashcard(self, flashcard_id: str) -> bool:
        """Delete a flashcard; its progress and history go with it"""
        with self.db_connection.get_connection() as conn:
            cursor = conn.execute("DELETE FROM flashcards WHERE id = ?", (flashcard_id,))
            conn.commit()
            return cursor.rowcount > 0
