"""
Fixed achievement rule set evaluated against a learner profile
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .core.database.models import UserProfile

# Average score rules only look at learners with this many scored questions
MIN_SCORED_QUESTIONS = 10


@dataclass(frozen=True)
class AchievementStats:
    """Snapshot of the profile figures achievement rules look at"""

    level: int
    questions_completed: int
    flashcards_completed: int
    flashcards_mastered: int
    sections_completed: int
    perfect_scores: int
    current_streak: int
    topics_completed: int = 0
    scored_questions: int = 0
    average_score: float = 0.0

    @classmethod
    def from_profile(cls, profile: UserProfile, level: int) -> "AchievementStats":
        return cls(
            level=level,
            questions_completed=profile.questions_completed,
            flashcards_completed=profile.flashcards_completed,
            flashcards_mastered=profile.flashcards_mastered,
            sections_completed=profile.sections_completed,
            perfect_scores=profile.perfect_scores,
            current_streak=profile.current_streak,
            topics_completed=profile.topics_completed,
            scored_questions=profile.scored_questions,
            average_score=profile.average_score,
        )


@dataclass(frozen=True)
class Achievement:
    """A single unlockable achievement"""

    id: str
    name: str
    description: str
    rarity: str
    xp_reward: int
    condition: Callable[[AchievementStats], bool]


ACHIEVEMENTS: list[Achievement] = [
    # Common
    Achievement(
        "first_steps", "First Steps", "Complete your first question", "common", 50,
        lambda s: s.questions_completed >= 1,
    ),
    Achievement(
        "knowledge_seeker", "Knowledge Seeker", "Complete 10 questions", "common", 100,
        lambda s: s.questions_completed >= 10,
    ),
    Achievement(
        "flashcard_novice", "Flashcard Novice", "Complete 25 flashcards", "common", 75,
        lambda s: s.flashcards_completed >= 25,
    ),
    Achievement(
        "level_up", "Level Up!", "Reach level 5", "common", 150,
        lambda s: s.level >= 5,
    ),
    # Rare
    Achievement(
        "streak_starter", "Streak Starter", "Maintain a 3-day study streak", "rare", 200,
        lambda s: s.current_streak >= 3,
    ),
    Achievement(
        "dedicated_learner", "Dedicated Learner", "Complete 50 questions", "rare", 300,
        lambda s: s.questions_completed >= 50,
    ),
    Achievement(
        "high_achiever", "High Achiever", "Maintain an 80% average score", "rare", 250,
        lambda s: s.scored_questions >= MIN_SCORED_QUESTIONS and s.average_score >= 80,
    ),
    Achievement(
        "topic_master", "Topic Master", "Complete 5 topics", "rare", 400,
        lambda s: s.topics_completed >= 5,
    ),
    Achievement(
        "section_master", "Section Master", "Complete 5 sections", "rare", 400,
        lambda s: s.sections_completed >= 5,
    ),
    Achievement(
        "flashcard_adept", "Flashcard Adept", "Complete 100 flashcards", "rare", 300,
        lambda s: s.flashcards_completed >= 100,
    ),
    Achievement(
        "memory_keeper", "Memory Keeper", "Master 10 flashcards", "rare", 250,
        lambda s: s.flashcards_mastered >= 10,
    ),
    # Epic
    Achievement(
        "streak_master", "Streak Master", "Maintain a 7-day study streak", "epic", 500,
        lambda s: s.current_streak >= 7,
    ),
    Achievement(
        "quiz_champion", "Quiz Champion", "Score 90%+ on 10 quizzes", "epic", 600,
        lambda s: s.perfect_scores >= 10,
    ),
    Achievement(
        "knowledge_master", "Knowledge Master", "Reach level 15", "epic", 750,
        lambda s: s.level >= 15,
    ),
    Achievement(
        "perfectionist", "Perfectionist", "Maintain a 95% average score", "epic", 1000,
        lambda s: s.scored_questions >= MIN_SCORED_QUESTIONS and s.average_score >= 95,
    ),
    # Legendary
    Achievement(
        "unstoppable_streak", "Unstoppable", "Maintain a 30-day study streak", "legendary", 2000,
        lambda s: s.current_streak >= 30,
    ),
    Achievement(
        "quiz_grandmaster", "Quiz Grandmaster", "Complete 200 questions", "legendary", 2500,
        lambda s: s.questions_completed >= 200,
    ),
    Achievement(
        "knowledge_deity", "Knowledge Deity", "Reach level 50", "legendary", 5000,
        lambda s: s.level >= 50,
    ),
]

_BY_ID = {achievement.id: achievement for achievement in ACHIEVEMENTS}


def get_achievement(achievement_id: str) -> Achievement | None:
    return _BY_ID.get(achievement_id)


def check_achievements(
    stats: AchievementStats, current_achievements: Iterable[str]
) -> list[Achievement]:
    """Rules satisfied by stats that are not yet in current_achievements"""
    owned = set(current_achievements)
    return [
        achievement
        for achievement in ACHIEVEMENTS
        if achievement.id not in owned and achievement.condition(stats)
    ]
