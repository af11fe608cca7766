"""
Database models for the learner progress engine
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, TypedDict


class MasteryLevel(str, Enum):
    """Coarse recall strength of a flashcard"""

    NEW = "New"
    LEARNING = "Learning"
    FAMILIAR = "Familiar"
    MASTERED = "Mastered"

    @property
    def rank(self) -> int:
        return _MASTERY_ORDER.index(self)

    def advance(self, steps: int = 1) -> "MasteryLevel":
        """Move toward Mastered, saturating there"""
        return _MASTERY_ORDER[min(self.rank + steps, len(_MASTERY_ORDER) - 1)]


_MASTERY_ORDER = [
    MasteryLevel.NEW,
    MasteryLevel.LEARNING,
    MasteryLevel.FAMILIAR,
    MasteryLevel.MASTERED,
]


class ContentType(str, Enum):
    """Kinds of content an interaction can target"""

    QUESTION = "question"
    FLASHCARD = "flashcard"
    SECTION = "section"
    QUIZ = "quiz"


class QuizMode(str, Enum):
    """Quiz families; each has its own once-a-day XP award"""

    RANDOM = "random"
    TIMED = "timed"


class UnlockPolicy(str, Enum):
    """Rule family governing section accessibility"""

    ALWAYS = "always"
    SEQUENTIAL = "sequential"
    SCORE_BASED = "score-based"


@dataclass
class FlashcardProgressRecord:
    """Per (user, flashcard) review state"""

    user_id: str
    flashcard_id: str
    mastery_level: MasteryLevel = MasteryLevel.NEW
    review_count: int = 0
    last_reviewed_at: datetime | None = None
    next_due_at: datetime | None = None
    ease_factor: float = 2.5
    interval_days: float = 0.0
    ever_mastered: bool = False
    version: int = 0


@dataclass
class SectionProgressRecord:
    """Per (user, section) answer tally and completion state"""

    user_id: str
    section_id: str
    questions_answered: int = 0
    correct_answers: int = 0
    total_questions: int = 0
    score: float = 0.0
    completed: bool = False
    unlocked: bool = False
    completed_at: datetime | None = None
    version: int = 0


@dataclass
class ContentProgressRecord:
    """Per (user, content item) completion marker"""

    user_id: str
    content_id: str
    content_type: str
    attempts: int = 0
    completed: bool = False
    first_completed_at: datetime | None = None
    best_score: float | None = None
    last_repeat_xp_on: date | None = None
    total_xp_earned: int = 0
    version: int = 0


@dataclass
class UserProfile:
    """Per user XP, streak and achievement aggregate"""

    user_id: str
    total_xp: int = 0
    current_streak: int = 0
    max_streak: int = 0
    learning_streak: int = 0
    last_active_on: date | None = None
    last_learning_on: date | None = None
    # Last day the daily quiz award was paid, per quiz mode
    daily_bonus_days: dict[str, date] = field(default_factory=dict)
    achievements: list[str] = field(default_factory=list)
    questions_completed: int = 0
    flashcards_completed: int = 0
    flashcards_mastered: int = 0
    sections_completed: int = 0
    quizzes_completed: int = 0
    perfect_scores: int = 0
    topics_completed: int = 0
    # Best scores of answered questions, for the average score achievements
    scored_questions: int = 0
    question_score_total: float = 0.0
    version: int = 0

    @property
    def average_score(self) -> float:
        if self.scored_questions == 0:
            return 0.0
        return round(self.question_score_total / self.scored_questions, 2)


class Section(TypedDict):
    """Section catalog row"""
    id: str
    topic_id: str
    name: str
    order_index: int
    unlock_policy: str
    required_score: float | None
    require_completion: bool
    completion_xp: int | None


class Question(TypedDict):
    """Question catalog row"""
    id: str
    section_id: str
    order_index: int
    question_type: str
    points: int
    difficulty: str
    answer_key: dict[str, Any] | None


class Flashcard(TypedDict):
    """Flashcard catalog row"""
    id: str
    topic_id: str
    xp: int | None


class Quiz(TypedDict):
    """Quiz catalog row"""
    id: str
    name: str
    xp: int | None
    pass_score: float
    mode: str
