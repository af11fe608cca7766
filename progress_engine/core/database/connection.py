"""
Database connection manager for the learner progress engine
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path

from ...config import get_database_path
from ...errors import ProgressEngineError

logger = logging.getLogger(__name__)


def _adapt_date(val: date) -> str:
    return val.isoformat()


def _adapt_datetime(val: datetime) -> str:
    return val.isoformat()


def _convert_date(val: bytes) -> date:
    try:
        return date.fromisoformat(val.decode())
    except ValueError:
        # Timestamps written into a DATE column
        return datetime.fromisoformat(val.decode()).date()


def _convert_datetime(val: bytes) -> datetime:
    datetime_str = val.decode()
    try:
        return datetime.fromisoformat(datetime_str)
    except ValueError:
        for fmt in ["%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f", "%Y-%m-%d"]:
            try:
                return datetime.strptime(datetime_str, fmt)
            except ValueError:
                continue
        raise ValueError(f"Invalid datetime format: {datetime_str}") from None


sqlite3.register_adapter(date, _adapt_date)
sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("date", _convert_date)
sqlite3.register_converter("timestamp", _convert_datetime)


TABLES = [
    """
    CREATE TABLE IF NOT EXISTS user_profiles (
        user_id TEXT PRIMARY KEY,
        total_xp INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        max_streak INTEGER NOT NULL DEFAULT 0,
        learning_streak INTEGER NOT NULL DEFAULT 0,
        last_active_on DATE,
        last_learning_on DATE,
        daily_bonus_days TEXT NOT NULL DEFAULT '{}',
        achievements TEXT NOT NULL DEFAULT '[]',
        questions_completed INTEGER NOT NULL DEFAULT 0,
        flashcards_completed INTEGER NOT NULL DEFAULT 0,
        flashcards_mastered INTEGER NOT NULL DEFAULT 0,
        sections_completed INTEGER NOT NULL DEFAULT 0,
        quizzes_completed INTEGER NOT NULL DEFAULT 0,
        perfect_scores INTEGER NOT NULL DEFAULT 0,
        topics_completed INTEGER NOT NULL DEFAULT 0,
        scored_questions INTEGER NOT NULL DEFAULT 0,
        question_score_total REAL NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sections (
        id TEXT PRIMARY KEY,
        topic_id TEXT NOT NULL,
        name TEXT NOT NULL,
        order_index INTEGER NOT NULL,
        unlock_policy TEXT NOT NULL DEFAULT 'always',
        required_score REAL,
        require_completion BOOLEAN NOT NULL DEFAULT 0,
        completion_xp INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS questions (
        id TEXT PRIMARY KEY,
        section_id TEXT NOT NULL,
        order_index INTEGER NOT NULL,
        question_type TEXT NOT NULL,
        points INTEGER NOT NULL DEFAULT 10,
        difficulty TEXT NOT NULL DEFAULT 'Beginner',
        answer_key TEXT,
        FOREIGN KEY (section_id) REFERENCES sections(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS flashcards (
        id TEXT PRIMARY KEY,
        topic_id TEXT NOT NULL,
        xp INTEGER
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS quizzes (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        xp INTEGER,
        pass_score REAL NOT NULL DEFAULT 70,
        mode TEXT NOT NULL DEFAULT 'random'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS flashcard_progress (
        user_id TEXT NOT NULL,
        flashcard_id TEXT NOT NULL,
        mastery_level TEXT NOT NULL DEFAULT 'New',
        review_count INTEGER NOT NULL DEFAULT 0,
        last_reviewed_at TIMESTAMP,
        next_due_at TIMESTAMP,
        ease_factor REAL NOT NULL DEFAULT 2.5,
        interval_days REAL NOT NULL DEFAULT 0,
        ever_mastered BOOLEAN NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (user_id, flashcard_id),
        FOREIGN KEY (user_id) REFERENCES user_profiles(user_id) ON DELETE CASCADE,
        FOREIGN KEY (flashcard_id) REFERENCES flashcards(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS section_progress (
        user_id TEXT NOT NULL,
        section_id TEXT NOT NULL,
        questions_answered INTEGER NOT NULL DEFAULT 0,
        correct_answers INTEGER NOT NULL DEFAULT 0,
        total_questions INTEGER NOT NULL DEFAULT 0,
        score REAL NOT NULL DEFAULT 0,
        completed BOOLEAN NOT NULL DEFAULT 0,
        unlocked BOOLEAN NOT NULL DEFAULT 0,
        completed_at TIMESTAMP,
        version INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (user_id, section_id),
        FOREIGN KEY (user_id) REFERENCES user_profiles(user_id) ON DELETE CASCADE,
        FOREIGN KEY (section_id) REFERENCES sections(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS content_progress (
        user_id TEXT NOT NULL,
        content_id TEXT NOT NULL,
        content_type TEXT NOT NULL,
        attempts INTEGER NOT NULL DEFAULT 0,
        completed BOOLEAN NOT NULL DEFAULT 0,
        first_completed_at TIMESTAMP,
        best_score REAL,
        last_repeat_xp_on DATE,
        total_xp_earned INTEGER NOT NULL DEFAULT 0,
        version INTEGER NOT NULL DEFAULT 0,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (user_id, content_id, content_type),
        FOREIGN KEY (user_id) REFERENCES user_profiles(user_id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS review_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT NOT NULL,
        flashcard_id TEXT NOT NULL,
        rating TEXT NOT NULL,
        time_spent REAL NOT NULL DEFAULT 0,
        reviewed_at TIMESTAMP NOT NULL,
        FOREIGN KEY (user_id) REFERENCES user_profiles(user_id) ON DELETE CASCADE,
        FOREIGN KEY (flashcard_id) REFERENCES flashcards(id) ON DELETE CASCADE
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sections_topic ON sections(topic_id, order_index)",
    "CREATE INDEX IF NOT EXISTS idx_questions_section ON questions(section_id, order_index)",
    (
        "CREATE INDEX IF NOT EXISTS idx_flashcard_progress_due "
        "ON flashcard_progress(user_id, next_due_at)"
    ),
    "CREATE INDEX IF NOT EXISTS idx_review_history_user ON review_history(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_user_profiles_xp ON user_profiles(total_xp)",
]


class DatabaseConnection:
    """Manages SQLite database connections and settings"""

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or get_database_path()
        self._ensure_database_directory()
        self._init_connection_settings()

    def _ensure_database_directory(self) -> None:
        """Ensure the database directory exists"""
        db_dir = Path(self.db_path).parent
        db_dir.mkdir(parents=True, exist_ok=True)

    def _init_connection_settings(self) -> None:
        """Initialize database connection settings"""
        with self.get_connection() as conn:
            # WAL lets readers proceed while one interaction writes
            conn.execute("PRAGMA journal_mode=WAL")

    @contextmanager
    def get_connection(self):
        """Get database connection with proper cleanup"""
        conn = None
        try:
            conn = sqlite3.connect(
                self.db_path, detect_types=sqlite3.PARSE_DECLTYPES, timeout=30
            )
            conn.row_factory = sqlite3.Row  # Enable dict-like access
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA busy_timeout=30000")
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            if not isinstance(e, ProgressEngineError):
                logger.error(f"Database error: {e}")
            raise
        finally:
            if conn:
                conn.close()

    @contextmanager
    def transaction(self):
        """Connection holding the write lock until commit or rollback"""
        with self.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.commit()

    def init_database(self) -> None:
        """Initialize database tables"""
        with self.get_connection() as conn:
            for table_sql in TABLES:
                conn.execute(table_sql)
            self._create_indexes(conn)
            conn.commit()
        logger.info(f"Database initialized at {self.db_path}")

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes for performance"""
        for index_sql in INDEXES:
            conn.execute(index_sql)
