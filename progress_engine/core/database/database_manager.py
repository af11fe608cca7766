"""
Unified database manager that coordinates all repositories
"""

import logging
import sqlite3
from collections.abc import Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from .connection import DatabaseConnection
from .models import (
    ContentProgressRecord,
    Flashcard,
    FlashcardProgressRecord,
    Question,
    Quiz,
    Section,
    SectionProgressRecord,
    UserProfile,
)
from .repositories.content_repository import ContentRepository
from .repositories.progress_repository import ProgressRepository
from .repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Progress store: the read and conditional-write contract the engine relies on"""

    def __init__(self, db_path: str | None = None):
        self.db_connection = DatabaseConnection(db_path)
        self.user_repo = UserRepository(self.db_connection)
        self.content_repo = ContentRepository(self.db_connection)
        self.progress_repo = ProgressRepository(self.db_connection)

    def init_database(self) -> None:
        """Initialize database tables and indexes"""
        self.db_connection.init_database()

    @contextmanager
    def transaction(self):
        """One write transaction; every write of an interaction goes through it"""
        with self.db_connection.transaction() as conn:
            yield conn

    # User methods
    def create_user_profile(self, user_id: str) -> UserProfile:
        return self.user_repo.create_user_profile(user_id)

    def get_user_profile(
        self, user_id: str, conn: sqlite3.Connection | None = None
    ) -> UserProfile | None:
        return self.user_repo.get_user_profile(user_id, conn)

    def upsert_user_profile(
        self, profile: UserProfile, conn: sqlite3.Connection | None = None
    ) -> UserProfile:
        return self.user_repo.upsert_user_profile(profile, conn)

    def get_leaderboard(self, limit: int = 10) -> list[UserProfile]:
        return self.user_repo.get_leaderboard(limit)

    # Catalog methods
    def get_section(self, section_id: str, conn: sqlite3.Connection | None = None) -> Section | None:
        return self.content_repo.get_section(section_id, conn)

    def get_sections_for_topic(
        self, topic_id: str, conn: sqlite3.Connection | None = None
    ) -> list[Section]:
        return self.content_repo.get_sections_for_topic(topic_id, conn)

    def get_question(self, question_id: str, conn: sqlite3.Connection | None = None) -> Question | None:
        return self.content_repo.get_question(question_id, conn)

    def get_questions_for_section(
        self, section_id: str, conn: sqlite3.Connection | None = None
    ) -> list[Question]:
        return self.content_repo.get_questions_for_section(section_id, conn)

    def get_flashcard(self, flashcard_id: str, conn: sqlite3.Connection | None = None) -> Flashcard | None:
        return self.content_repo.get_flashcard(flashcard_id, conn)

    def get_quiz(self, quiz_id: str, conn: sqlite3.Connection | None = None) -> Quiz | None:
        return self.content_repo.get_quiz(quiz_id, conn)

    def get_topic_content_ids(
        self, topic_id: str, conn: sqlite3.Connection | None = None
    ) -> tuple[list[str], list[str]]:
        return self.content_repo.get_topic_content_ids(topic_id, conn)

    def add_section(self, section_id: str, topic_id: str, name: str, order_index: int,
                    **kwargs: Any) -> Section:
        return self.content_repo.add_section(section_id, topic_id, name, order_index, **kwargs)

    def add_question(self, question_id: str, section_id: str, order_index: int,
                     **kwargs: Any) -> Question:
        return self.content_repo.add_question(question_id, section_id, order_index, **kwargs)

    def add_flashcard(self, flashcard_id: str, topic_id: str, xp: int | None = None) -> Flashcard:
        return self.content_repo.add_flashcard(flashcard_id, topic_id, xp)

    def add_quiz(self, quiz_id: str, name: str, **kwargs: Any) -> Quiz:
        return self.content_repo.add_quiz(quiz_id, name, **kwargs)

    def delete_flashcard(self, flashcard_id: str) -> bool:
        return self.content_repo.delete_flashcard(flashcard_id)

    # Progress methods
    def get_flashcard_progress(
        self, user_id: str, flashcard_id: str, conn: sqlite3.Connection | None = None
    ) -> FlashcardProgressRecord | None:
        return self.progress_repo.get_flashcard_progress(user_id, flashcard_id, conn)

    def upsert_flashcard_progress(
        self, record: FlashcardProgressRecord, conn: sqlite3.Connection | None = None
    ) -> FlashcardProgressRecord:
        return self.progress_repo.upsert_flashcard_progress(record, conn)

    def get_due_flashcards(
        self, user_id: str, now: datetime, limit: int = 20
    ) -> list[FlashcardProgressRecord]:
        return self.progress_repo.get_due_flashcards(user_id, now, limit)

    def add_review_history(self, user_id: str, flashcard_id: str, rating: str,
                           reviewed_at: datetime, time_spent: float = 0,
                           conn: sqlite3.Connection | None = None) -> None:
        self.progress_repo.add_review_history(
            user_id, flashcard_id, rating, reviewed_at, time_spent, conn
        )

    def get_review_history(
        self, user_id: str, flashcard_id: str | None = None, limit: int = 100
    ) -> list[dict[str, Any]]:
        return self.progress_repo.get_review_history(user_id, flashcard_id, limit)

    def get_section_progress(
        self, user_id: str, section_id: str, conn: sqlite3.Connection | None = None
    ) -> SectionProgressRecord | None:
        return self.progress_repo.get_section_progress(user_id, section_id, conn)

    def get_section_progress_for_sections(
        self, user_id: str, section_ids: Sequence[str], conn: sqlite3.Connection | None = None
    ) -> dict[str, SectionProgressRecord]:
        return self.progress_repo.get_section_progress_for_sections(user_id, section_ids, conn)

    def upsert_section_progress(
        self, record: SectionProgressRecord, conn: sqlite3.Connection | None = None
    ) -> SectionProgressRecord:
        return self.progress_repo.upsert_section_progress(record, conn)

    def get_content_progress(
        self, user_id: str, content_id: str, content_type: str,
        conn: sqlite3.Connection | None = None,
    ) -> ContentProgressRecord | None:
        return self.progress_repo.get_content_progress(user_id, content_id, content_type, conn)

    def get_content_progress_for_items(
        self, user_id: str, content_ids: Sequence[str], content_type: str,
        conn: sqlite3.Connection | None = None,
    ) -> dict[str, ContentProgressRecord]:
        return self.progress_repo.get_content_progress_for_items(
            user_id, content_ids, content_type, conn
        )

    def upsert_content_progress(
        self, record: ContentProgressRecord, conn: sqlite3.Connection | None = None
    ) -> ContentProgressRecord:
        return self.progress_repo.upsert_content_progress(record, conn)


# Global instance
_db_manager = None


def get_db_manager(db_path: str | None = None) -> DatabaseManager:
    """Get global database manager instance"""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager(db_path)
    return _db_manager
