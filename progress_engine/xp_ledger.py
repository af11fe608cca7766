"""
XP ledger: converts completed interactions into XP, levels, streaks and achievements
"""

import logging
import math
from bisect import bisect_right
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum

from .achievements import Achievement, AchievementStats, check_achievements
from .config import Settings, get_settings
from .core.database.models import QuizMode, UserProfile
from .errors import CorruptState, InvalidInput

logger = logging.getLogger(__name__)

PERFECT_SCORE = 90.0

# Extra XP on a timed quiz by score, best tier first
TIMED_QUIZ_BONUS_TIERS = [(80.0, 3), (60.0, 2), (40.0, 1)]


class EventType(str, Enum):
    """Interaction kinds the ledger knows how to price"""

    QUESTION_ANSWER = "question-answer"
    FLASHCARD_REVIEW = "flashcard-review"
    SECTION_COMPLETE = "section-complete"
    QUIZ_COMPLETE = "quiz-complete"
    TOPIC_COMPLETE = "topic-complete"
    FLASHCARD_TOPIC_COMPLETE = "flashcard-topic-complete"

    @classmethod
    def parse(cls, value: "EventType | str") -> "EventType":
        try:
            return cls(value)
        except ValueError:
            raise InvalidInput(f"Unknown event type: {value!r}") from None


@dataclass
class LedgerEvent:
    """A completed interaction as seen by the ledger"""

    event_type: EventType | str
    base_xp: int
    is_correct: bool = False
    score: float | None = None
    # True when this event completes the item for the first time
    first_completion: bool = False
    # True when the item had been completed before this event
    already_completed: bool = False
    # Last day a repeat-attempt award was paid for this item
    repeat_xp_last_awarded_on: date | None = None
    reached_mastered: bool = False
    # Quizzes of one mode share a single award per calendar day
    daily_bonus_class: str = QuizMode.RANDOM.value
    # Best score of the item before and after this event
    previous_best_score: float | None = None
    best_score: float | None = None


@dataclass
class LedgerResult:
    """Updated profile plus what changed"""

    profile: UserProfile
    xp_gained: int
    previous_level: int
    new_level: int
    new_achievements: list[Achievement] = field(default_factory=list)
    repeat_award_granted: bool = False
    daily_bonus_granted: bool = False

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.previous_level


def timed_performance_bonus(score: float | None) -> int:
    """Extra XP a timed quiz pays for its score"""
    if score is None:
        return 0
    for threshold, bonus in TIMED_QUIZ_BONUS_TIERS:
        if score >= threshold:
            return bonus
    return 0


def level_for_xp(total_xp: int, thresholds: list[int]) -> int:
    """
    Level reached with total_xp on a step curve

    Level n is reached at thresholds[n]. Past the table every further gap
    equal to the last step adds one level.
    """
    if total_xp < 0:
        raise CorruptState(f"Negative XP total: {total_xp}")
    last_index = len(thresholds) - 1
    if total_xp < thresholds[last_index]:
        return bisect_right(thresholds, total_xp) - 1
    step = thresholds[last_index] - thresholds[last_index - 1] if last_index > 0 else 100
    return last_index + (total_xp - thresholds[last_index]) // step


class XPLedger:
    """Pure XP, level, streak and achievement bookkeeping"""

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.level_thresholds = list(settings.level_thresholds)
        self.repeat_attempt_xp_factor = settings.repeat_attempt_xp_factor
        self.flashcard_mastered_bonus_xp = settings.flashcard_mastered_bonus_xp
        self.award_achievement_xp = settings.award_achievement_xp

    def level_for(self, total_xp: int) -> int:
        return level_for_xp(total_xp, self.level_thresholds)

    def apply_event(
        self, profile: UserProfile, event: LedgerEvent, today: date
    ) -> LedgerResult:
        """
        Price one event and fold it into the profile

        Args:
            profile: Current profile (not modified)
            event: The interaction to account for
            today: Calendar day of the interaction in the configured zone

        Returns:
            LedgerResult with the updated profile
        """
        self.validate_profile(profile)
        event_type = EventType.parse(event.event_type)
        self._validate_event(event)

        previous_level = self.level_for(profile.total_xp)
        updated = replace(
            profile,
            achievements=list(profile.achievements),
            daily_bonus_days=dict(profile.daily_bonus_days),
        )

        xp, repeat_granted, daily_granted = self._price(event_type, event, updated, today)
        updated.total_xp += xp
        if daily_granted:
            updated.daily_bonus_days[event.daily_bonus_class] = today

        self._count(event_type, event, updated, daily_granted)
        self._update_streaks(updated, today, self._is_learning_event(event_type, event))

        new_achievements, achievement_xp = self._evaluate_achievements(updated)
        xp += achievement_xp

        result = LedgerResult(
            profile=updated,
            xp_gained=xp,
            previous_level=previous_level,
            new_level=self.level_for(updated.total_xp),
            new_achievements=new_achievements,
            repeat_award_granted=repeat_granted,
            daily_bonus_granted=daily_granted,
        )

        logger.info(
            f"Ledger applied {event_type.value} for user {profile.user_id}: "
            f"+{xp} XP, total={updated.total_xp}, level={result.new_level}, "
            f"streak={updated.current_streak}, achievements={[a.id for a in new_achievements]}"
        )
        return result

    def _price(
        self,
        event_type: EventType,
        event: LedgerEvent,
        profile: UserProfile,
        today: date,
    ) -> tuple[int, bool, bool]:
        """XP for the event, and whether a repeat or daily award was used"""
        if event_type == EventType.QUIZ_COMPLETE:
            mode = event.daily_bonus_class
            if profile.daily_bonus_days.get(mode) == today:
                logger.info(f"Daily {mode} quiz bonus already granted to {profile.user_id} today")
                return 0, False, False
            xp = event.base_xp
            if mode == QuizMode.TIMED.value:
                xp += timed_performance_bonus(event.score)
            return xp, False, True

        if not event.is_correct:
            return 0, False, False

        if event.first_completion:
            xp = event.base_xp
            if event_type == EventType.FLASHCARD_REVIEW and event.reached_mastered:
                xp += self.flashcard_mastered_bonus_xp
            return xp, False, False

        if event_type == EventType.FLASHCARD_REVIEW and event.reached_mastered:
            # Mastery is reached once per card even when first success came earlier
            return self.flashcard_mastered_bonus_xp, False, False

        if event.already_completed:
            return self._repeat_award(event, today)

        return 0, False, False

    def _repeat_award(self, event: LedgerEvent, today: date) -> tuple[int, bool, bool]:
        """Reduced award for re-completing an item, at most once a day"""
        if self.repeat_attempt_xp_factor <= 0:
            return 0, False, False
        if event.repeat_xp_last_awarded_on == today:
            return 0, False, False
        xp = math.floor(event.base_xp * self.repeat_attempt_xp_factor)
        if xp <= 0:
            return 0, False, False
        return xp, True, False

    def _count(
        self,
        event_type: EventType,
        event: LedgerEvent,
        profile: UserProfile,
        daily_granted: bool,
    ) -> None:
        """Bump the completion counters achievement rules read"""
        perfect = event.score is not None and event.score >= PERFECT_SCORE

        if event_type == EventType.QUESTION_ANSWER and event.best_score is not None:
            if event.previous_best_score is None:
                profile.scored_questions += 1
                profile.question_score_total += event.best_score
            else:
                profile.question_score_total += event.best_score - event.previous_best_score

        if event_type == EventType.QUESTION_ANSWER and event.first_completion:
            profile.questions_completed += 1
            if perfect:
                profile.perfect_scores += 1
        elif event_type == EventType.FLASHCARD_REVIEW:
            if event.first_completion:
                profile.flashcards_completed += 1
            if event.reached_mastered:
                profile.flashcards_mastered += 1
        elif event_type == EventType.SECTION_COMPLETE and event.first_completion:
            profile.sections_completed += 1
        elif event_type == EventType.QUIZ_COMPLETE and daily_granted:
            profile.quizzes_completed += 1
            if perfect:
                profile.perfect_scores += 1
        elif event_type == EventType.TOPIC_COMPLETE and event.first_completion:
            profile.topics_completed += 1

    def _is_learning_event(self, event_type: EventType, event: LedgerEvent) -> bool:
        if event_type == EventType.SECTION_COMPLETE:
            return event.first_completion or event.already_completed
        return event.is_correct

    def _update_streaks(self, profile: UserProfile, today: date, learning: bool) -> None:
        profile.current_streak = _advance_streak(
            profile.current_streak, profile.last_active_on, today
        )
        if profile.last_active_on is None or profile.last_active_on < today:
            profile.last_active_on = today
        profile.max_streak = max(profile.max_streak, profile.current_streak)

        if learning:
            profile.learning_streak = _advance_streak(
                profile.learning_streak, profile.last_learning_on, today
            )
            if profile.last_learning_on is None or profile.last_learning_on < today:
                profile.last_learning_on = today

    def _evaluate_achievements(self, profile: UserProfile) -> tuple[list[Achievement], int]:
        """Grant every newly satisfied rule; rewards may unlock further rules"""
        granted: list[Achievement] = []
        reward_total = 0
        while True:
            stats = AchievementStats.from_profile(profile, self.level_for(profile.total_xp))
            fresh = check_achievements(stats, profile.achievements)
            if not fresh:
                return granted, reward_total
            for achievement in fresh:
                profile.achievements.append(achievement.id)
                granted.append(achievement)
                if self.award_achievement_xp:
                    profile.total_xp += achievement.xp_reward
                    reward_total += achievement.xp_reward
            if not self.award_achievement_xp:
                return granted, reward_total

    def validate_profile(self, profile: UserProfile) -> None:
        """Fail closed on profiles that break stored invariants"""
        counters = {
            "total_xp": profile.total_xp,
            "current_streak": profile.current_streak,
            "max_streak": profile.max_streak,
            "learning_streak": profile.learning_streak,
            "questions_completed": profile.questions_completed,
            "flashcards_completed": profile.flashcards_completed,
            "flashcards_mastered": profile.flashcards_mastered,
            "sections_completed": profile.sections_completed,
            "quizzes_completed": profile.quizzes_completed,
            "perfect_scores": profile.perfect_scores,
            "topics_completed": profile.topics_completed,
            "scored_questions": profile.scored_questions,
        }
        for name, value in counters.items():
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise CorruptState(
                    f"Profile {profile.user_id} has invalid {name}: {value!r}"
                )
        if profile.max_streak < profile.current_streak:
            raise CorruptState(
                f"Profile {profile.user_id} has max streak {profile.max_streak} "
                f"below current streak {profile.current_streak}"
            )
        if len(set(profile.achievements)) != len(profile.achievements):
            raise CorruptState(f"Profile {profile.user_id} has duplicate achievements")
        if not 0 <= profile.question_score_total <= 100 * profile.scored_questions:
            raise CorruptState(
                f"Profile {profile.user_id} has question score total "
                f"{profile.question_score_total} for {profile.scored_questions} questions"
            )

    def _validate_event(self, event: LedgerEvent) -> None:
        if isinstance(event.base_xp, bool) or not isinstance(event.base_xp, int) or event.base_xp < 0:
            raise InvalidInput(f"Base XP must be a non-negative integer, got {event.base_xp!r}")
        if event.score is not None and not 0 <= event.score <= 100:
            raise InvalidInput(f"Score must be within 0..100, got {event.score}")
        for best in (event.previous_best_score, event.best_score):
            if best is not None and not 0 <= best <= 100:
                raise InvalidInput(f"Best score must be within 0..100, got {best}")
        if (
            event.previous_best_score is not None
            and (event.best_score is None or event.best_score < event.previous_best_score)
        ):
            raise InvalidInput("Best score cannot drop below the previous best")
        if event.first_completion and event.already_completed:
            raise InvalidInput("An event cannot be both first and repeat completion")


def _advance_streak(streak: int, last_day: date | None, today: date) -> int:
    """Consecutive-day counter: same day keeps, next day grows, gap resets"""
    if last_day is None:
        return 1
    if last_day == today:
        return max(streak, 1)
    if last_day == today - timedelta(days=1):
        return streak + 1
    if last_day > today:
        # Clock moved backwards; never regress a streak for it
        return max(streak, 1)
    return 1

