"""
Unit tests for XP, level, streak and achievement bookkeeping
"""

from datetime import date, timedelta

import pytest

from progress_engine.config import Settings
from progress_engine.core.database.models import UserProfile
from progress_engine.errors import CorruptState, InvalidInput
from progress_engine.xp_ledger import (
    EventType,
    LedgerEvent,
    XPLedger,
    level_for_xp,
    timed_performance_bonus,
)

TODAY = date(2026, 3, 2)


@pytest.fixture
def settings():
    return Settings(level_thresholds=[0, 100, 250, 500])


@pytest.fixture
def ledger(settings):
    return XPLedger(settings)


def question(base_xp, correct=True, **kwargs):
    kwargs.setdefault("first_completion", correct)
    return LedgerEvent(EventType.QUESTION_ANSWER, base_xp, is_correct=correct, **kwargs)


class TestLevelCurve:
    """Test the level step function"""

    @pytest.mark.parametrize(
        "total_xp, level",
        [(0, 0), (99, 0), (100, 1), (249, 1), (250, 2), (499, 2), (500, 3), (749, 3), (750, 4), (1000, 5)],
    )
    def test_levels(self, total_xp, level):
        assert level_for_xp(total_xp, [0, 100, 250, 500]) == level

    def test_monotonic(self):
        thresholds = [0, 100, 250, 500, 1000]
        levels = [level_for_xp(xp, thresholds) for xp in range(0, 3000, 7)]
        assert levels == sorted(levels)

    def test_negative_xp_is_corrupt(self):
        with pytest.raises(CorruptState):
            level_for_xp(-1, [0, 100])


class TestXPLedger:
    """Test XPLedger.apply_event"""

    def test_first_correct_answer(self, ledger):
        """50 XP from zero stays on level 0"""
        result = ledger.apply_event(UserProfile("alice"), question(50), TODAY)

        assert result.xp_gained == 50
        assert result.leveled_up is False
        assert result.profile.total_xp == 50
        assert result.new_level == 0

    def test_crossing_a_threshold_levels_up(self, ledger):
        """A further 60 XP reaches 110 and level 1"""
        first = ledger.apply_event(UserProfile("alice"), question(50), TODAY)
        second = ledger.apply_event(first.profile, question(60), TODAY)

        assert second.profile.total_xp == 110
        assert second.leveled_up is True
        assert second.new_level == 1

    def test_level_matches_xp_after_every_event(self, ledger):
        profile = UserProfile("alice")
        for base in [30, 0, 45, 80, 200, 15]:
            result = ledger.apply_event(profile, question(base), TODAY)
            profile = result.profile
            assert result.new_level == ledger.level_for(profile.total_xp)

    def test_incorrect_answer_earns_nothing(self, ledger):
        result = ledger.apply_event(UserProfile("alice"), question(50, correct=False), TODAY)

        assert result.xp_gained == 0
        assert result.profile.questions_completed == 0

    def test_repeat_attempt_default_earns_nothing(self, ledger):
        event = question(50, first_completion=False, already_completed=True)
        result = ledger.apply_event(UserProfile("alice", total_xp=50), event, TODAY)

        assert result.xp_gained == 0
        assert result.repeat_award_granted is False

    def test_repeat_attempt_factor_once_per_day(self):
        ledger = XPLedger(Settings(repeat_attempt_xp_factor=0.25))
        event = question(50, first_completion=False, already_completed=True)

        result = ledger.apply_event(UserProfile("alice"), event, TODAY)
        assert result.xp_gained == 12
        assert result.repeat_award_granted is True

        event.repeat_xp_last_awarded_on = TODAY
        again = ledger.apply_event(result.profile, event, TODAY)
        assert again.xp_gained == 0

        event.repeat_xp_last_awarded_on = TODAY - timedelta(days=1)
        next_day = ledger.apply_event(again.profile, event, TODAY)
        assert next_day.xp_gained == 12

    def test_daily_bonus_once_per_day(self, ledger):
        quiz = LedgerEvent(EventType.QUIZ_COMPLETE, 5, is_correct=True, score=80)

        first = ledger.apply_event(UserProfile("alice"), quiz, TODAY)
        assert first.xp_gained == 5
        assert first.daily_bonus_granted is True
        assert first.profile.daily_bonus_days == {"random": TODAY}
        assert first.profile.quizzes_completed == 1

        second = ledger.apply_event(first.profile, quiz, TODAY)
        assert second.xp_gained == 0
        assert second.profile.quizzes_completed == 1

        tomorrow = ledger.apply_event(second.profile, quiz, TODAY + timedelta(days=1))
        assert tomorrow.xp_gained == 5

    def test_daily_bonus_per_quiz_mode(self, ledger):
        random_quiz = LedgerEvent(EventType.QUIZ_COMPLETE, 5, is_correct=True, score=50)
        timed_quiz = LedgerEvent(
            EventType.QUIZ_COMPLETE, 8, is_correct=True, score=85, daily_bonus_class="timed"
        )

        first = ledger.apply_event(UserProfile("alice"), random_quiz, TODAY)
        timed = ledger.apply_event(first.profile, timed_quiz, TODAY)
        assert timed.xp_gained == 8 + 3
        assert timed.daily_bonus_granted is True
        assert timed.profile.daily_bonus_days == {"random": TODAY, "timed": TODAY}
        assert timed.profile.quizzes_completed == 2

        again = ledger.apply_event(timed.profile, timed_quiz, TODAY)
        assert again.xp_gained == 0

    def test_timed_bonus_only_for_timed_mode(self, ledger):
        quiz = LedgerEvent(EventType.QUIZ_COMPLETE, 5, is_correct=True, score=100)
        assert ledger.apply_event(UserProfile("alice"), quiz, TODAY).xp_gained == 5

    def test_question_score_aggregate(self, ledger):
        first = ledger.apply_event(
            UserProfile("alice"), question(10, score=60, best_score=60), TODAY
        )
        assert first.profile.scored_questions == 1
        assert first.profile.question_score_total == 60

        better = question(
            10, first_completion=False, already_completed=True,
            score=90, previous_best_score=60, best_score=90,
        )
        second = ledger.apply_event(first.profile, better, TODAY)
        assert second.profile.scored_questions == 1
        assert second.profile.question_score_total == 90
        assert second.profile.average_score == 90.0

    def test_topic_complete_counts_once(self, ledger):
        event = LedgerEvent(EventType.TOPIC_COMPLETE, 0, is_correct=True, first_completion=True)
        result = ledger.apply_event(UserProfile("alice"), event, TODAY)
        assert result.xp_gained == 0
        assert result.profile.topics_completed == 1

        replay = LedgerEvent(EventType.TOPIC_COMPLETE, 0, is_correct=True, already_completed=True)
        again = ledger.apply_event(result.profile, replay, TODAY)
        assert again.profile.topics_completed == 1

    def test_flashcard_topic_bonus(self, ledger):
        event = LedgerEvent(
            EventType.FLASHCARD_TOPIC_COMPLETE, 100, is_correct=True, first_completion=True
        )
        result = ledger.apply_event(UserProfile("alice"), event, TODAY)
        assert result.xp_gained == 100
        assert result.profile.topics_completed == 0

    def test_perfect_quiz_counts(self, ledger):
        quiz = LedgerEvent(EventType.QUIZ_COMPLETE, 5, is_correct=True, score=95)
        result = ledger.apply_event(UserProfile("alice"), quiz, TODAY)
        assert result.profile.perfect_scores == 1

    def test_flashcard_mastered_bonus(self, ledger):
        first = LedgerEvent(
            EventType.FLASHCARD_REVIEW, 20, is_correct=True,
            first_completion=True, reached_mastered=True,
        )
        result = ledger.apply_event(UserProfile("alice"), first, TODAY)
        assert result.xp_gained == 30
        assert result.profile.flashcards_completed == 1
        assert result.profile.flashcards_mastered == 1

    def test_flashcard_mastered_later(self, ledger):
        later = LedgerEvent(
            EventType.FLASHCARD_REVIEW, 20, is_correct=True,
            already_completed=True, reached_mastered=True,
        )
        result = ledger.apply_event(UserProfile("alice", flashcards_completed=1), later, TODAY)
        assert result.xp_gained == 10
        assert result.profile.flashcards_completed == 1
        assert result.profile.flashcards_mastered == 1

    def test_section_complete(self, ledger):
        event = LedgerEvent(EventType.SECTION_COMPLETE, 50, is_correct=True, first_completion=True)
        result = ledger.apply_event(UserProfile("alice"), event, TODAY)
        assert result.xp_gained == 50
        assert result.profile.sections_completed == 1
        assert result.profile.learning_streak == 1

    def test_input_profile_untouched(self, ledger):
        profile = UserProfile("alice")
        ledger.apply_event(profile, question(50), TODAY)
        assert profile.total_xp == 0
        assert profile.achievements == []


class TestTimedPerformanceBonus:
    """Test the timed quiz score tiers"""

    @pytest.mark.parametrize(
        "score, bonus",
        [(None, 0), (0, 0), (39.9, 0), (40, 1), (59, 1), (60, 2), (79.5, 2), (80, 3), (100, 3)],
    )
    def test_tiers(self, score, bonus):
        assert timed_performance_bonus(score) == bonus


class TestStreaks:
    """Test streak updates"""

    def test_first_activity_starts_streak(self, ledger):
        result = ledger.apply_event(UserProfile("alice"), question(10), TODAY)

        assert result.profile.current_streak == 1
        assert result.profile.max_streak == 1
        assert result.profile.learning_streak == 1
        assert result.profile.last_active_on == TODAY

    def test_consecutive_day_increments(self, ledger):
        yesterday = TODAY - timedelta(days=1)
        profile = UserProfile(
            "alice", current_streak=2, max_streak=2, learning_streak=2,
            last_active_on=yesterday, last_learning_on=yesterday,
        )
        result = ledger.apply_event(profile, question(10), TODAY)

        assert result.profile.current_streak == 3
        assert result.profile.max_streak == 3
        assert result.profile.learning_streak == 3

    def test_same_day_unchanged(self, ledger):
        profile = UserProfile("alice", current_streak=4, max_streak=6, last_active_on=TODAY)
        result = ledger.apply_event(profile, question(10), TODAY)

        assert result.profile.current_streak == 4
        assert result.profile.max_streak == 6

    def test_gap_resets(self, ledger):
        profile = UserProfile(
            "alice", current_streak=5, max_streak=5,
            last_active_on=TODAY - timedelta(days=3),
        )
        result = ledger.apply_event(profile, question(10), TODAY)

        assert result.profile.current_streak == 1
        assert result.profile.max_streak == 5

    def test_incorrect_answer_keeps_learning_streak(self, ledger):
        yesterday = TODAY - timedelta(days=1)
        profile = UserProfile(
            "alice", current_streak=1, max_streak=1, learning_streak=1,
            last_active_on=yesterday, last_learning_on=yesterday,
        )
        result = ledger.apply_event(profile, question(10, correct=False), TODAY)

        assert result.profile.current_streak == 2
        assert result.profile.learning_streak == 1
        assert result.profile.last_learning_on == yesterday


class TestAchievementEvaluation:
    """Test achievement grants from the ledger"""

    def test_first_question_grants_first_steps(self, ledger):
        result = ledger.apply_event(UserProfile("alice"), question(10), TODAY)

        assert [a.id for a in result.new_achievements] == ["first_steps"]
        assert result.profile.achievements == ["first_steps"]

    def test_never_granted_twice(self, ledger):
        first = ledger.apply_event(UserProfile("alice"), question(10), TODAY)
        second = ledger.apply_event(first.profile, question(10, correct=False), TODAY)

        assert second.new_achievements == []
        assert second.profile.achievements == ["first_steps"]

    def test_achievement_rewards_when_enabled(self):
        ledger = XPLedger(Settings(award_achievement_xp=True))
        result = ledger.apply_event(UserProfile("alice"), question(50), TODAY)

        assert result.xp_gained == 100
        assert result.profile.total_xp == 100
        assert result.new_level == 1


class TestValidation:
    """Test rejection of bad input and corrupt state"""

    def test_unknown_event_type(self, ledger):
        with pytest.raises(InvalidInput):
            ledger.apply_event(UserProfile("alice"), LedgerEvent("survey", 10), TODAY)

    def test_event_type_parse(self):
        assert EventType.parse("quiz-complete") is EventType.QUIZ_COMPLETE

    @pytest.mark.parametrize("base_xp", [-1, 2.5, "10"])
    def test_malformed_base_xp(self, ledger, base_xp):
        with pytest.raises(InvalidInput):
            ledger.apply_event(UserProfile("alice"), question(base_xp), TODAY)

    def test_score_out_of_range(self, ledger):
        with pytest.raises(InvalidInput):
            ledger.apply_event(UserProfile("alice"), question(10, score=101), TODAY)

    def test_negative_xp_profile(self, ledger):
        with pytest.raises(CorruptState):
            ledger.apply_event(UserProfile("alice", total_xp=-5), question(10), TODAY)

    def test_max_streak_below_current(self, ledger):
        profile = UserProfile("alice", current_streak=3, max_streak=2)
        with pytest.raises(CorruptState):
            ledger.apply_event(profile, question(10), TODAY)

    def test_non_integer_xp_profile(self, ledger):
        with pytest.raises(CorruptState):
            ledger.apply_event(UserProfile("alice", total_xp=12.5), question(10), TODAY)

    def test_duplicate_achievements(self, ledger):
        profile = UserProfile("alice", achievements=["first_steps", "first_steps"])
        with pytest.raises(CorruptState):
            ledger.apply_event(profile, question(10), TODAY)

    def test_best_score_cannot_drop(self, ledger):
        event = question(10, score=40, previous_best_score=80, best_score=40)
        with pytest.raises(InvalidInput):
            ledger.apply_event(UserProfile("alice"), event, TODAY)

    def test_score_total_beyond_scored_questions(self, ledger):
        profile = UserProfile("alice", scored_questions=1, question_score_total=150.0)
        with pytest.raises(CorruptState):
            ledger.apply_event(profile, question(10), TODAY)
