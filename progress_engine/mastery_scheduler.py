"""
Flashcard mastery scheduling based on a SuperMemo 2 style ease factor
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum

from .config import Settings, get_settings
from .core.database.models import FlashcardProgressRecord, MasteryLevel
from .errors import CorruptState, InvalidInput

logger = logging.getLogger(__name__)


class ReviewRating(str, Enum):
    """Recall quality reported for a flashcard review"""

    AGAIN = "Again"
    HARD = "Hard"
    GOOD = "Good"
    EASY = "Easy"

    @classmethod
    def parse(cls, value: "ReviewRating | str | int") -> "ReviewRating":
        """
        Convert a rating given by name or by number (1=Again .. 4=Easy)

        Raises:
            InvalidInput: if the value names no rating
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            if 1 <= value <= 4:
                return list(cls)[value - 1]
            raise InvalidInput(f"Rating must be between 1 and 4, got {value}")
        if isinstance(value, str):
            for rating in cls:
                if rating.value.lower() == value.strip().lower():
                    return rating
        raise InvalidInput(f"Unknown review rating: {value!r}")

    @property
    def is_successful(self) -> bool:
        return self in (ReviewRating.GOOD, ReviewRating.EASY)


@dataclass
class ReviewResult:
    """Result of a single flashcard review"""

    record: FlashcardProgressRecord
    previous_level: MasteryLevel
    interval: timedelta

    reached_mastered: bool = False


class MasteryScheduler:
    """Pure state transition for flashcard reviews"""

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.default_easiness = settings.default_easiness_factor
        self.min_easiness = settings.min_easiness_factor
        self.max_easiness = settings.max_easiness_factor
        self.again_delay = timedelta(minutes=settings.again_delay_minutes)
        self.hard_delay = timedelta(minutes=settings.hard_delay_minutes)
        self.easy_bonus = settings.easy_bonus
        self.max_interval_days = settings.max_interval_days

    def new_record(self, user_id: str, flashcard_id: str) -> FlashcardProgressRecord:
        """Default record for a card the user has never reviewed"""
        return FlashcardProgressRecord(
            user_id=user_id,
            flashcard_id=flashcard_id,
            ease_factor=self.default_easiness,
        )

    def review(
        self,
        record: FlashcardProgressRecord,
        rating: ReviewRating | str | int,
        now: datetime,
    ) -> ReviewResult:
        """
        Apply one review to a flashcard record

        Args:
            record: Current progress record (not modified)
            rating: Again, Hard, Good or Easy
            now: Review timestamp

        Returns:
            ReviewResult holding the updated record
        """
        rating = ReviewRating.parse(rating)
        self._validate(record)

        logger.info(
            f"Calculating review: card={record.flashcard_id}, rating={rating.value}, "
            f"level={record.mastery_level.value}, interval={record.interval_days}, "
            f"ef={record.ease_factor}"
        )

        if rating == ReviewRating.AGAIN:
            level = MasteryLevel.LEARNING
            ease = self._clamp_easiness(record.ease_factor - 0.2)
            interval_days = 0.0
            delay = self.again_delay
        elif rating == ReviewRating.HARD:
            level = MasteryLevel.LEARNING
            ease = self._clamp_easiness(record.ease_factor - 0.15)
            interval_days = record.interval_days
            delay = self.hard_delay
        elif rating == ReviewRating.GOOD:
            level = record.mastery_level.advance(1)
            ease = record.ease_factor
            interval_days = self._grow_interval(record.interval_days, ease)
            delay = timedelta(days=interval_days)
        else:
            # Easy skips a step so a Learning card can jump straight to Mastered
            level = record.mastery_level.advance(2)
            ease = self._clamp_easiness(record.ease_factor + 0.15)
            interval_days = self._grow_interval(
                max(record.interval_days, 1.0), record.ease_factor * self.easy_bonus
            )
            delay = timedelta(days=interval_days)

        updated = replace(
            record,
            mastery_level=level,
            review_count=record.review_count + 1,
            last_reviewed_at=now,
            next_due_at=now + delay,
            ease_factor=round(ease, 4),
            interval_days=interval_days,
            ever_mastered=record.ever_mastered or level == MasteryLevel.MASTERED,
        )

        logger.info(
            f"Review result: level={updated.mastery_level.value}, "
            f"interval={delay}, ef={updated.ease_factor}, next={updated.next_due_at}"
        )

        return ReviewResult(
            record=updated,
            previous_level=record.mastery_level,
            interval=delay,
            reached_mastered=updated.ever_mastered and not record.ever_mastered,
        )

    def _grow_interval(self, previous_days: float, multiplier: float) -> float:
        """Multiply the previous interval; a first success waits one day"""
        if previous_days <= 0:
            return 1.0
        new_days = max(1.0, previous_days * multiplier)
        return round(min(float(self.max_interval_days), new_days), 4)

    def _clamp_easiness(self, value: float) -> float:
        return max(self.min_easiness, min(self.max_easiness, value))

    def _validate(self, record: FlashcardProgressRecord) -> None:
        """Reject records that violate stored invariants"""
        if not isinstance(record.mastery_level, MasteryLevel):
            raise CorruptState(
                f"Flashcard {record.flashcard_id} has unknown mastery level "
                f"{record.mastery_level!r}"
            )
        if record.review_count < 0:
            raise CorruptState(
                f"Flashcard {record.flashcard_id} has negative review count"
            )
        if record.ease_factor <= 0:
            raise CorruptState(
                f"Flashcard {record.flashcard_id} has non-positive ease factor "
                f"{record.ease_factor}"
            )
        if record.interval_days < 0:
            raise CorruptState(
                f"Flashcard {record.flashcard_id} has negative interval"
            )
        if (
            record.next_due_at is not None
            and record.last_reviewed_at is not None
            and record.next_due_at < record.last_reviewed_at
        ):
            raise CorruptState(
                f"Flashcard {record.flashcard_id} is due before its last review"
            )

