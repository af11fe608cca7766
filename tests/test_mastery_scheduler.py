"""
Unit tests for flashcard mastery scheduling
"""

from datetime import datetime, timedelta, timezone

import pytest

from progress_engine.config import Settings
from progress_engine.core.database.models import FlashcardProgressRecord, MasteryLevel
from progress_engine.errors import CorruptState, InvalidInput
from progress_engine.mastery_scheduler import MasteryScheduler, ReviewRating

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler():
    """Scheduler with default tuning"""
    return MasteryScheduler(Settings())


@pytest.fixture
def record(scheduler):
    return scheduler.new_record("alice", "card-1")


class TestReviewRating:
    """Test rating parsing"""

    def test_parse_by_name_is_case_insensitive(self):
        assert ReviewRating.parse("good") is ReviewRating.GOOD
        assert ReviewRating.parse(" EASY ") is ReviewRating.EASY

    def test_parse_by_number(self):
        assert ReviewRating.parse(1) is ReviewRating.AGAIN
        assert ReviewRating.parse(4) is ReviewRating.EASY

    @pytest.mark.parametrize("value", ["Perfect", 0, 5, None, 2.0, True])
    def test_parse_rejects_unknown_values(self, value):
        """Invalid ratings are never defaulted"""
        with pytest.raises(InvalidInput):
            ReviewRating.parse(value)

    def test_successful_ratings(self):
        assert ReviewRating.GOOD.is_successful
        assert ReviewRating.EASY.is_successful
        assert not ReviewRating.HARD.is_successful
        assert not ReviewRating.AGAIN.is_successful


class TestMasteryScheduler:
    """Test MasteryScheduler transitions"""

    def test_new_record_defaults(self, record):
        assert record.mastery_level == MasteryLevel.NEW
        assert record.review_count == 0
        assert record.ease_factor == 2.5
        assert record.next_due_at is None

    def test_again_resets_to_learning(self, scheduler):
        card = FlashcardProgressRecord(
            "alice", "card-1", MasteryLevel.FAMILIAR, 4, NOW - timedelta(days=3),
            NOW - timedelta(days=1), 2.5, 3.0,
        )
        result = scheduler.review(card, ReviewRating.AGAIN, NOW)

        assert result.record.mastery_level == MasteryLevel.LEARNING
        assert result.record.next_due_at == NOW + timedelta(minutes=1)
        assert result.record.ease_factor == pytest.approx(2.3)
        assert result.record.interval_days == 0
        assert result.previous_level == MasteryLevel.FAMILIAR

    def test_again_floors_ease_factor(self, scheduler, record):
        record.ease_factor = 1.35
        result = scheduler.review(record, "Again", NOW)
        assert result.record.ease_factor == 1.3

    def test_hard_uses_short_delay(self, scheduler, record):
        result = scheduler.review(record, ReviewRating.HARD, NOW)

        assert result.record.mastery_level == MasteryLevel.LEARNING
        assert result.interval == timedelta(minutes=10)
        assert result.interval < timedelta(days=1)
        assert result.record.ease_factor == pytest.approx(2.35)

    def test_first_good_waits_one_day(self, scheduler, record):
        result = scheduler.review(record, ReviewRating.GOOD, NOW)

        assert result.record.mastery_level == MasteryLevel.LEARNING
        assert result.record.interval_days == 1.0
        assert result.record.next_due_at == NOW + timedelta(days=1)
        assert result.record.ease_factor == 2.5

    def test_good_multiplies_previous_interval(self, scheduler):
        """Ease 2.5 and a one day interval give 2.5 days"""
        card = FlashcardProgressRecord(
            "alice", "card-1", MasteryLevel.LEARNING, 1, NOW - timedelta(days=1),
            NOW, 2.5, 1.0,
        )
        result = scheduler.review(card, ReviewRating.GOOD, NOW)

        assert result.record.interval_days == pytest.approx(2.5)
        assert result.record.next_due_at == NOW + timedelta(days=2.5)
        assert result.record.mastery_level == MasteryLevel.FAMILIAR

    def test_easy_can_jump_to_mastered(self, scheduler):
        card = FlashcardProgressRecord(
            "alice", "card-1", MasteryLevel.LEARNING, 1, NOW - timedelta(days=1),
            NOW, 2.5, 1.0,
        )
        result = scheduler.review(card, ReviewRating.EASY, NOW)

        assert result.record.mastery_level == MasteryLevel.MASTERED
        assert result.reached_mastered is True
        assert result.record.ever_mastered is True
        assert result.record.interval_days == pytest.approx(2.5 * 1.3)
        assert result.record.ease_factor == pytest.approx(2.65)

    def test_mastered_saturates(self, scheduler):
        card = FlashcardProgressRecord(
            "alice", "card-1", MasteryLevel.MASTERED, 5, NOW - timedelta(days=4),
            NOW, 2.5, 4.0, ever_mastered=True,
        )
        result = scheduler.review(card, ReviewRating.GOOD, NOW)

        assert result.record.mastery_level == MasteryLevel.MASTERED
        assert result.reached_mastered is False

    def test_interval_is_capped(self, scheduler):
        card = FlashcardProgressRecord(
            "alice", "card-1", MasteryLevel.MASTERED, 9, NOW - timedelta(days=300),
            NOW, 3.0, 300.0, ever_mastered=True,
        )
        result = scheduler.review(card, ReviewRating.EASY, NOW)
        assert result.record.interval_days == 365

    def test_review_count_equals_number_of_reviews(self, scheduler, record):
        ratings = ["Again", "Good", "Hard", "Easy", "Again", "Again", "Good"]
        moment = NOW
        for rating in ratings:
            record = scheduler.review(record, rating, moment).record
            moment = record.next_due_at
        assert record.review_count == len(ratings)

    @pytest.mark.parametrize("rating", list(ReviewRating))
    def test_next_due_strictly_after_review(self, scheduler, record, rating):
        result = scheduler.review(record, rating, NOW)
        assert result.record.next_due_at > result.record.last_reviewed_at

    def test_repeated_again_never_exceeds_learning(self, scheduler, record):
        for _ in range(5):
            record = scheduler.review(record, ReviewRating.AGAIN, NOW).record
            assert record.mastery_level.rank <= MasteryLevel.LEARNING.rank

    def test_review_does_not_mutate_input(self, scheduler, record):
        scheduler.review(record, ReviewRating.GOOD, NOW)
        assert record.review_count == 0
        assert record.mastery_level == MasteryLevel.NEW

    def test_invalid_rating_is_rejected(self, scheduler, record):
        with pytest.raises(InvalidInput):
            scheduler.review(record, "Sometimes", NOW)

    def test_corrupt_record_is_rejected(self, scheduler, record):
        record.ease_factor = 0
        with pytest.raises(CorruptState):
            scheduler.review(record, ReviewRating.GOOD, NOW)

    def test_due_before_last_review_is_corrupt(self, scheduler, record):
        record.last_reviewed_at = NOW
        record.next_due_at = NOW - timedelta(hours=1)
        with pytest.raises(CorruptState):
            scheduler.review(record, ReviewRating.GOOD, NOW)

    def test_custom_delays_from_settings(self):
        scheduler = MasteryScheduler(Settings(again_delay_minutes=5, hard_delay_minutes=30))
        card = scheduler.new_record("bob", "card-2")

        assert scheduler.review(card, "Again", NOW).interval == timedelta(minutes=5)
        assert scheduler.review(card, "Hard", NOW).interval == timedelta(minutes=30)
