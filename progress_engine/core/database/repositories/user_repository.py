"""
User repository for learner profile operations
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime

from ....errors import ConcurrencyConflict, CorruptState
from ..connection import DatabaseConnection
from ..models import UserProfile

logger = logging.getLogger(__name__)

_NUMERIC_COLUMNS = [
    "total_xp",
    "current_streak",
    "max_streak",
    "learning_streak",
    "questions_completed",
    "flashcards_completed",
    "flashcards_mastered",
    "sections_completed",
    "quizzes_completed",
    "perfect_scores",
    "topics_completed",
    "scored_questions",
    "question_score_total",
]


def _daily_bonus_days_from_row(row: sqlite3.Row) -> dict[str, date]:
    try:
        return {
            mode: date.fromisoformat(day)
            for mode, day in json.loads(row["daily_bonus_days"]).items()
        }
    except (json.JSONDecodeError, TypeError, AttributeError, ValueError):
        raise CorruptState(
            f"Daily bonus days of user {row['user_id']} are not a mode to date map"
        ) from None


def _profile_from_row(row: sqlite3.Row) -> UserProfile:
    try:
        achievements = json.loads(row["achievements"])
    except (json.JSONDecodeError, TypeError):
        raise CorruptState(
            f"Achievements of user {row['user_id']} are not valid JSON"
        ) from None
    if not isinstance(achievements, list) or not all(
        isinstance(a, str) for a in achievements
    ):
        raise CorruptState(f"Achievements of user {row['user_id']} are not a list of ids")

    return UserProfile(
        user_id=row["user_id"],
        last_active_on=row["last_active_on"],
        last_learning_on=row["last_learning_on"],
        daily_bonus_days=_daily_bonus_days_from_row(row),
        achievements=achievements,
        version=row["version"],
        **{column: row[column] for column in _NUMERIC_COLUMNS},
    )


class UserRepository:
    """Repository for learner profile database operations"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    @contextmanager
    def _use(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with self.db_connection.get_connection() as own:
            yield own
            own.commit()

    def create_user_profile(self, user_id: str) -> UserProfile:
        """Create an empty profile, or return the existing one"""
        with self._use(None) as c:
            cursor = c.execute(
                "INSERT OR IGNORE INTO user_profiles (user_id, version) VALUES (?, 1)",
                (user_id,),
            )
            if cursor.rowcount:
                logger.info(f"Created profile for user {user_id}")
        return self.get_user_profile(user_id)

    def get_user_profile(
        self, user_id: str, conn: sqlite3.Connection | None = None
    ) -> UserProfile | None:
        """Get profile by user id"""
        with self._use(conn) as c:
            row = c.execute(
                "SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)
            ).fetchone()
            return _profile_from_row(row) if row else None

    def upsert_user_profile(
        self, profile: UserProfile, conn: sqlite3.Connection | None = None
    ) -> UserProfile:
        """
        Write a profile if nobody changed it since it was read

        Raises:
            ConcurrencyConflict: if the stored version moved on
        """
        assignments = ", ".join(f"{column} = ?" for column in _NUMERIC_COLUMNS)
        params = [getattr(profile, column) for column in _NUMERIC_COLUMNS] + [
            profile.last_active_on,
            profile.last_learning_on,
            json.dumps({mode: day.isoformat() for mode, day in profile.daily_bonus_days.items()}),
            json.dumps(profile.achievements),
            datetime.now(),
        ]
        with self._use(conn) as c:
            if profile.version == 0:
                try:
                    columns = ", ".join(_NUMERIC_COLUMNS)
                    c.execute(
                        f"""
                        INSERT INTO user_profiles (
                            {columns}, last_active_on, last_learning_on,
                            daily_bonus_days, achievements, updated_at, user_id, version
                        )
                        VALUES ({", ".join("?" for _ in params)}, ?, 1)
                        """,  # noqa: S608  # Safe: fixed column names
                        params + [profile.user_id],
                    )
                except sqlite3.IntegrityError as e:
                    raise ConcurrencyConflict(
                        f"Profile {profile.user_id} was created concurrently"
                    ) from e
            else:
                cursor = c.execute(
                    f"""
                    UPDATE user_profiles
                    SET {assignments}, last_active_on = ?, last_learning_on = ?,
                        daily_bonus_days = ?, achievements = ?, updated_at = ?,
                        version = version + 1
                    WHERE user_id = ? AND version = ?
                    """,  # noqa: S608  # Safe: fixed column names
                    params + [profile.user_id, profile.version],
                )
                if cursor.rowcount == 0:
                    logger.warning(f"Stale profile write for user {profile.user_id}")
                    raise ConcurrencyConflict(
                        f"Profile {profile.user_id} was changed concurrently"
                    )
        return replace(profile, version=profile.version + 1)

    def get_leaderboard(self, limit: int = 10) -> list[UserProfile]:
        """Profiles with the most XP first"""
        with self._use(None) as c:
            rows = c.execute(
                """
                SELECT * FROM user_profiles
                ORDER BY total_xp DESC, max_streak DESC, user_id ASC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
            return [_profile_from_row(row) for row in rows]
