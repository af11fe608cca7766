"""
Progress coordinator: the single entry point that records learner interactions
"""

import logging
import sqlite3
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

from pydantic import ValidationError

from ...achievements import Achievement
from ...config import Settings, get_settings
from ...errors import ConcurrencyConflict, CorruptState, InvalidInput, NotFound, SectionLocked
from ...grading import grade, parse_answer_key
from ...interface import InteractionRequest, Outcome, ProgressResult, SectionAccess
from ...mastery_scheduler import MasteryScheduler
from ...unlock_gate import SiblingRef, UnlockDecision, UnlockGate, UnlockRule
from ...utils import (
    calculate_success_rate,
    calendar_day,
    log_execution_time,
    retry_on_exception,
)
from ...xp_ledger import EventType, LedgerEvent, XPLedger
from ..database.database_manager import DatabaseManager, get_db_manager
from ..database.models import (
    ContentProgressRecord,
    ContentType,
    Question,
    QuizMode,
    Section,
    SectionProgressRecord,
    UserProfile,
)
from ..locks.content_lock_manager import ContentLockManager

logger = logging.getLogger(__name__)

DIFFICULTY_MULTIPLIERS = {
    "Beginner": 1.0,
    "Intermediate": 1.2,
    "Advanced": 1.5,
}

# content_progress types of the per-topic completion markers
TOPIC_MARKER = "topic"
FLASHCARD_TOPIC_MARKER = "flashcard-topic"

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Tally:
    """XP bookkeeping across the ledger events of one interaction"""

    profile: UserProfile
    start_level: int
    xp: int = 0
    achievements: list[Achievement] = field(default_factory=list)


@dataclass
class _NextSection:
    section: Section
    record: SectionProgressRecord | None
    decision: UnlockDecision


class ProgressCoordinator:
    """Loads state, runs scheduler, gate and ledger, and writes the result back"""

    def __init__(
        self,
        db_manager: DatabaseManager | None = None,
        settings: Settings | None = None,
        clock: Clock | None = None,
        lock_manager: ContentLockManager | None = None,
    ):
        self.settings = settings or get_settings()
        self.db = db_manager or get_db_manager()
        self.clock = clock or _utc_now
        self.scheduler = MasteryScheduler(self.settings)
        self.gate = UnlockGate()
        self.ledger = XPLedger(self.settings)
        self.locks = lock_manager or ContentLockManager(self.settings.lock_timeout_seconds)

        self._handlers = {
            ContentType.QUESTION: self._record_question,
            ContentType.FLASHCARD: self._record_flashcard,
            ContentType.SECTION: self._record_section,
            ContentType.QUIZ: self._record_quiz,
        }

    # Public API

    def record(self, request: InteractionRequest | dict[str, Any]) -> ProgressResult:
        """Record an interaction given as an API payload"""
        if not isinstance(request, InteractionRequest):
            request = InteractionRequest.parse(request)
        return self.record_interaction(
            request.user_id, request.content_id, request.content_type, request.outcome
        )

    @log_execution_time
    def record_interaction(
        self,
        user_id: str,
        content_id: str,
        content_type: ContentType | str,
        outcome: Outcome | dict[str, Any] | None = None,
    ) -> ProgressResult:
        """
        Record one learner interaction

        Args:
            user_id: Learner id
            content_id: Id of the question, flashcard, section or quiz
            content_type: Kind of content the id refers to
            outcome: What happened (correctness, rating, score, answer)

        Returns:
            ProgressResult summarizing XP, level and unlock changes

        Raises:
            InvalidInput: malformed content type or outcome
            NotFound: missing profile or content item
            SectionLocked: the question or section is behind a locked gate
            ConcurrencyConflict: the interaction kept losing races
            CorruptState: stored state breaks an invariant
        """
        try:
            content_type = ContentType(content_type)
        except ValueError:
            raise InvalidInput(f"Unknown content type: {content_type!r}") from None
        outcome = self._parse_outcome(outcome)
        handler = self._handlers[content_type]
        content_key = f"{content_type.value}:{content_id}"

        @retry_on_exception(
            max_retries=self.settings.max_conflict_retries,
            exceptions=(ConcurrencyConflict,),
        )
        def attempt() -> ProgressResult:
            with self.locks.hold(user_id, content_key, "record"):
                now = self.clock()
                today = calendar_day(now, self.settings.timezone)
                with self.db.transaction() as conn:
                    profile = self._load_profile(user_id, conn)
                    return handler(conn, profile, content_id, outcome, now, today)

        result = attempt()
        logger.info(
            f"Recorded {content_type.value} {content_id} for user {user_id}: "
            f"+{result.xp_earned} XP, level {result.level}"
        )
        return result

    @log_execution_time
    def check_section_access(self, user_id: str, section_id: str) -> SectionAccess:
        """
        Decide whether the learner may open a section

        An unlocked decision is persisted so the section stays open afterwards.
        """

        @retry_on_exception(
            max_retries=self.settings.max_conflict_retries,
            exceptions=(ConcurrencyConflict,),
        )
        def attempt() -> SectionAccess:
            with self.locks.hold(user_id, f"{ContentType.SECTION.value}:{section_id}", "access"):
                with self.db.transaction() as conn:
                    self._load_profile(user_id, conn)
                    section = self.db.get_section(section_id, conn)
                    if section is None:
                        raise NotFound(f"Section {section_id} does not exist")

                    siblings = self.db.get_sections_for_topic(section["topic_id"], conn)
                    progress = self.db.get_section_progress_for_sections(
                        user_id, [s["id"] for s in siblings], conn
                    )
                    decision = self._evaluate(siblings, section_id, progress)
                    if decision.unlocked:
                        self._persist_unlock(conn, user_id, section, progress.get(section_id))

            return SectionAccess(
                section_id=section_id,
                unlocked=decision.unlocked,
                reason=decision.reason,
                blocking_section_id=decision.blocking_section_id,
            )

        return attempt()

    def get_profile_summary(self, user_id: str) -> dict[str, Any]:
        """Profile with its derived level"""
        profile = self.db.get_user_profile(user_id)
        if profile is None:
            raise NotFound(f"User profile {user_id} does not exist")
        self.ledger.validate_profile(profile)
        return {
            "userId": profile.user_id,
            "totalXP": profile.total_xp,
            "level": self.ledger.level_for(profile.total_xp),
            "currentStreak": profile.current_streak,
            "maxStreak": profile.max_streak,
            "learningStreak": profile.learning_streak,
            "achievements": list(profile.achievements),
            "questionsCompleted": profile.questions_completed,
            "flashcardsCompleted": profile.flashcards_completed,
            "flashcardsMastered": profile.flashcards_mastered,
            "sectionsCompleted": profile.sections_completed,
            "quizzesCompleted": profile.quizzes_completed,
            "perfectScores": profile.perfect_scores,
            "topicsCompleted": profile.topics_completed,
            "averageScore": profile.average_score,
        }

    # Interaction handlers

    def _record_question(
        self,
        conn: sqlite3.Connection,
        profile: UserProfile,
        question_id: str,
        outcome: Outcome,
        now: datetime,
        today: date,
    ) -> ProgressResult:
        question = self.db.get_question(question_id, conn)
        if question is None:
            raise NotFound(f"Question {question_id} does not exist")
        section = self.db.get_section(question["section_id"], conn)
        if section is None:
            raise NotFound(f"Section {question['section_id']} does not exist")

        user_id = profile.user_id
        self._require_open(conn, user_id, section)
        correct = self._grade_question(question, outcome)

        marker = self._load_marker(conn, user_id, question_id, ContentType.QUESTION)
        already_completed = marker.completed
        first_completion = correct and not already_completed
        previous_best = marker.best_score
        if outcome.score is not None:
            question_score = outcome.score
        else:
            question_score = 100.0 if correct else 0.0
        self._touch_marker(marker, now, correct, question_score)

        next_before = self._next_section(conn, user_id, section)

        questions = self.db.get_questions_for_section(section["id"], conn)
        section_record, section_completed_now = self._update_section_tally(
            conn, user_id, section, questions, marker, now
        )

        tally = self._start_tally(profile)
        event = LedgerEvent(
            event_type=EventType.QUESTION_ANSWER,
            base_xp=self._question_xp(question),
            is_correct=correct,
            score=outcome.score,
            first_completion=first_completion,
            already_completed=already_completed and correct,
            repeat_xp_last_awarded_on=marker.last_repeat_xp_on,
            previous_best_score=previous_best,
            best_score=marker.best_score,
        )
        self._apply(tally, event, today, marker)
        self.db.upsert_content_progress(marker, conn)
        if section_completed_now:
            self._apply_section_completion(conn, tally, section, None, now, today)
        self._settle_topic(conn, tally, section["topic_id"], now, today)

        self.db.upsert_section_progress(section_record, conn)
        unlock_changed = self._settle_next_section(conn, user_id, section, next_before)

        result = self._finish(conn, tally)
        result.section_completed = section_record.completed
        result.section_unlock_changed = unlock_changed
        return result

    def _record_flashcard(
        self,
        conn: sqlite3.Connection,
        profile: UserProfile,
        flashcard_id: str,
        outcome: Outcome,
        now: datetime,
        today: date,
    ) -> ProgressResult:
        flashcard = self.db.get_flashcard(flashcard_id, conn)
        if flashcard is None:
            raise NotFound(f"Flashcard {flashcard_id} does not exist")
        if outcome.rating is None:
            raise InvalidInput("A flashcard review needs a rating")

        user_id = profile.user_id
        record = self.db.get_flashcard_progress(user_id, flashcard_id, conn)
        if record is None:
            record = self.scheduler.new_record(user_id, flashcard_id)

        review = self.scheduler.review(record, outcome.rating, now)
        saved = self.db.upsert_flashcard_progress(review.record, conn)
        self.db.add_review_history(
            user_id, flashcard_id, outcome.rating.value, now, outcome.time_spent or 0, conn
        )

        successful = outcome.rating.is_successful
        marker = self._load_marker(conn, user_id, flashcard_id, ContentType.FLASHCARD)
        already_completed = marker.completed
        self._touch_marker(marker, now, successful, outcome.score)

        base_xp = flashcard["xp"] if flashcard["xp"] is not None else self.settings.flashcard_base_xp
        tally = self._start_tally(profile)
        event = LedgerEvent(
            event_type=EventType.FLASHCARD_REVIEW,
            base_xp=base_xp,
            is_correct=successful,
            score=outcome.score,
            first_completion=successful and not already_completed,
            already_completed=already_completed and successful,
            repeat_xp_last_awarded_on=marker.last_repeat_xp_on,
            reached_mastered=review.reached_mastered,
        )
        self._apply(tally, event, today, marker)
        self.db.upsert_content_progress(marker, conn)
        self._settle_topic(conn, tally, flashcard["topic_id"], now, today, flashcard_review=True)

        result = self._finish(conn, tally)
        result.mastery_level = saved.mastery_level.value
        result.next_due_at = saved.next_due_at
        return result

    def _record_section(
        self,
        conn: sqlite3.Connection,
        profile: UserProfile,
        section_id: str,
        outcome: Outcome,
        now: datetime,
        today: date,
    ) -> ProgressResult:
        section = self.db.get_section(section_id, conn)
        if section is None:
            raise NotFound(f"Section {section_id} does not exist")

        user_id = profile.user_id
        self._require_open(conn, user_id, section)
        next_before = self._next_section(conn, user_id, section)

        record = self.db.get_section_progress(user_id, section_id, conn)
        if record is None:
            record = SectionProgressRecord(
                user_id=user_id,
                section_id=section_id,
                total_questions=len(self.db.get_questions_for_section(section_id, conn)),
            )
        if outcome.score is not None:
            # Score is a best-of so completed work never loses ground
            record.score = max(record.score, outcome.score)

        tally = self._start_tally(profile)
        self._apply_section_completion(conn, tally, section, record, now, today, outcome.score)
        self.db.upsert_section_progress(record, conn)
        unlock_changed = self._settle_next_section(conn, user_id, section, next_before)

        result = self._finish(conn, tally)
        result.section_completed = True
        result.section_unlock_changed = unlock_changed
        return result

    def _record_quiz(
        self,
        conn: sqlite3.Connection,
        profile: UserProfile,
        quiz_id: str,
        outcome: Outcome,
        now: datetime,
        today: date,
    ) -> ProgressResult:
        quiz = self.db.get_quiz(quiz_id, conn)
        if quiz is None:
            raise NotFound(f"Quiz {quiz_id} does not exist")

        if outcome.score is not None:
            passed = outcome.score >= quiz["pass_score"]
        else:
            passed = bool(outcome.correct)

        marker = self._load_marker(conn, profile.user_id, quiz_id, ContentType.QUIZ)
        self._touch_marker(marker, now, passed, outcome.score)

        try:
            mode = QuizMode(quiz["mode"])
        except ValueError:
            raise CorruptState(f"Quiz {quiz_id} has unknown mode {quiz['mode']!r}") from None
        if quiz["xp"] is not None:
            base_xp = quiz["xp"]
        elif mode == QuizMode.TIMED:
            base_xp = self.settings.timed_quiz_xp
        else:
            base_xp = self.settings.daily_quiz_xp

        tally = self._start_tally(profile)
        event = LedgerEvent(
            event_type=EventType.QUIZ_COMPLETE,
            base_xp=base_xp,
            is_correct=passed,
            score=outcome.score,
            daily_bonus_class=mode.value,
        )
        self._apply(tally, event, today, marker)
        self.db.upsert_content_progress(marker, conn)
        return self._finish(conn, tally)

    # Section bookkeeping

    def _update_section_tally(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        section: Section,
        questions: list[Question],
        marker: ContentProgressRecord,
        now: datetime,
    ) -> tuple[SectionProgressRecord, bool]:
        """Recount answered and correct questions; also report whether this answer completed the section"""
        record = self.db.get_section_progress(user_id, section["id"], conn)
        if record is None:
            record = SectionProgressRecord(
                user_id=user_id,
                section_id=section["id"],
                total_questions=len(questions),
            )

        question_ids = [q["id"] for q in questions]
        markers = self.db.get_content_progress_for_items(
            user_id, question_ids, ContentType.QUESTION.value, conn
        )
        markers[marker.content_id] = marker
        answered = sum(1 for m in markers.values() if m.attempts > 0)
        correct = sum(1 for m in markers.values() if m.completed)

        record.questions_answered = max(record.questions_answered, answered)
        record.correct_answers = max(record.correct_answers, correct)
        total = record.total_questions or len(questions)
        record.score = calculate_success_rate(record.correct_answers, total)

        if not record.completed:
            # Judged against the section's current questions, not the stored total
            answered_ids = {m.content_id for m in markers.values() if m.attempts > 0}
            all_answered = bool(question_ids) and answered_ids.issuperset(question_ids)
            if section["require_completion"]:
                done = all_answered
            else:
                done = all_answered or (
                    bool(question_ids) and question_ids[-1] == marker.content_id
                )
            if done:
                record.completed = True
                record.completed_at = now
                logger.info(f"User {user_id} completed section {section['id']}")
                return record, True
        return record, False

    def _apply_section_completion(
        self,
        conn: sqlite3.Connection,
        tally: _Tally,
        section: Section,
        record: SectionProgressRecord | None,
        now: datetime,
        today: date,
        score: float | None = None,
    ) -> None:
        """Mark the section complete and price the completion"""
        user_id = tally.profile.user_id
        marker = self._load_marker(conn, user_id, section["id"], ContentType.SECTION)
        already_completed = marker.completed
        self._touch_marker(marker, now, True, score)

        if record is not None and not record.completed:
            record.completed = True
            record.completed_at = now
            logger.info(f"User {user_id} completed section {section['id']}")

        completion_xp = section["completion_xp"]
        event = LedgerEvent(
            event_type=EventType.SECTION_COMPLETE,
            base_xp=completion_xp if completion_xp is not None else self.settings.section_completion_xp,
            is_correct=True,
            score=score,
            first_completion=not already_completed,
            already_completed=already_completed,
            repeat_xp_last_awarded_on=marker.last_repeat_xp_on,
        )
        self._apply(tally, event, today, marker)
        self.db.upsert_content_progress(marker, conn)

    def _next_section(
        self, conn: sqlite3.Connection, user_id: str, section: Section
    ) -> _NextSection | None:
        """Access decision for the section following this one, if any"""
        siblings = self.db.get_sections_for_topic(section["topic_id"], conn)
        ids = [s["id"] for s in siblings]
        index = ids.index(section["id"])
        if index + 1 >= len(siblings):
            return None
        progress = self.db.get_section_progress_for_sections(user_id, ids, conn)
        following = siblings[index + 1]
        return _NextSection(
            section=following,
            record=progress.get(following["id"]),
            decision=self._evaluate(siblings, following["id"], progress),
        )

    def _settle_next_section(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        section: Section,
        before: _NextSection | None,
    ) -> bool | None:
        """Compare the next section's access before and after, keeping it open once opened"""
        if before is None:
            return None
        after = self._next_section(conn, user_id, section)
        changed = before.decision.unlocked != after.decision.unlocked
        if after.decision.unlocked:
            self._persist_unlock(conn, user_id, after.section, after.record)
        if changed:
            logger.info(f"Section {after.section['id']} unlocked for user {user_id}")
        return changed

    def _evaluate(
        self,
        siblings: list[Section],
        section_id: str,
        progress: dict[str, SectionProgressRecord],
    ) -> UnlockDecision:
        index = [s["id"] for s in siblings].index(section_id)
        rule = UnlockRule.for_section(siblings[index], self.settings.default_required_score)
        return self.gate.evaluate(
            [SiblingRef.from_section(s) for s in siblings], index, rule, progress.get
        )

    def _persist_unlock(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        section: Section,
        record: SectionProgressRecord | None,
    ) -> None:
        """Remember an open section so a later policy change cannot lock it again"""
        if record is not None and record.unlocked:
            return
        if record is None:
            record = SectionProgressRecord(
                user_id=user_id,
                section_id=section["id"],
                total_questions=len(self.db.get_questions_for_section(section["id"], conn)),
            )
        record.unlocked = True
        self.db.upsert_section_progress(record, conn)

    def _require_open(self, conn: sqlite3.Connection, user_id: str, section: Section) -> None:
        """Refuse work on a locked section; an open one is remembered as open"""
        siblings = self.db.get_sections_for_topic(section["topic_id"], conn)
        progress = self.db.get_section_progress_for_sections(
            user_id, [s["id"] for s in siblings], conn
        )
        decision = self._evaluate(siblings, section["id"], progress)
        if not decision.unlocked:
            raise SectionLocked(
                f"Section {section['id']} is locked: {decision.reason}",
                section["id"],
                decision.blocking_section_id,
            )
        self._persist_unlock(conn, user_id, section, progress.get(section["id"]))

    # Topic bookkeeping

    def _settle_topic(
        self,
        conn: sqlite3.Connection,
        tally: _Tally,
        topic_id: str,
        now: datetime,
        today: date,
        flashcard_review: bool = False,
    ) -> None:
        """
        Record topic milestones reached by this interaction

        A topic counts as completed once the configured share of its questions
        and flashcards is done. A review that finishes every flashcard of the
        topic also earns the flashcard topic bonus. Each is awarded once.
        """
        user_id = tally.profile.user_id
        question_ids, flashcard_ids = self.db.get_topic_content_ids(topic_id, conn)
        done_questions = self._completed_count(conn, user_id, question_ids, ContentType.QUESTION)
        done_flashcards = self._completed_count(conn, user_id, flashcard_ids, ContentType.FLASHCARD)

        if flashcard_review and flashcard_ids and done_flashcards == len(flashcard_ids):
            self._award_topic_milestone(
                conn, tally, topic_id, FLASHCARD_TOPIC_MARKER,
                EventType.FLASHCARD_TOPIC_COMPLETE,
                self.settings.flashcard_topic_completion_xp, now, today,
            )

        total = len(question_ids) + len(flashcard_ids)
        done = done_questions + done_flashcards
        if total and done / total >= self.settings.topic_completion_ratio:
            self._award_topic_milestone(
                conn, tally, topic_id, TOPIC_MARKER, EventType.TOPIC_COMPLETE, 0, now, today
            )

    def _completed_count(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        content_ids: list[str],
        content_type: ContentType,
    ) -> int:
        markers = self.db.get_content_progress_for_items(
            user_id, content_ids, content_type.value, conn
        )
        return sum(1 for m in markers.values() if m.completed)

    def _award_topic_milestone(
        self,
        conn: sqlite3.Connection,
        tally: _Tally,
        topic_id: str,
        marker_type: str,
        event_type: EventType,
        base_xp: int,
        now: datetime,
        today: date,
    ) -> None:
        marker = self._load_marker(conn, tally.profile.user_id, topic_id, marker_type)
        if marker.completed:
            return
        self._touch_marker(marker, now, True, None)
        event = LedgerEvent(
            event_type=event_type,
            base_xp=base_xp,
            is_correct=True,
            first_completion=True,
        )
        self._apply(tally, event, today, marker)
        self.db.upsert_content_progress(marker, conn)
        logger.info(f"User {tally.profile.user_id} reached {event_type.value} for topic {topic_id}")

    # Shared helpers

    def _parse_outcome(self, outcome: Outcome | dict[str, Any] | None) -> Outcome:
        if outcome is None:
            return Outcome()
        if isinstance(outcome, Outcome):
            return outcome
        try:
            return Outcome.model_validate(outcome)
        except ValidationError as e:
            raise InvalidInput(f"Invalid outcome: {e}") from e

    def _load_profile(self, user_id: str, conn: sqlite3.Connection) -> UserProfile:
        profile = self.db.get_user_profile(user_id, conn)
        if profile is None:
            raise NotFound(f"User profile {user_id} does not exist")
        return profile

    def _load_marker(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        content_id: str,
        content_type: ContentType | str,
    ) -> ContentProgressRecord:
        kind = content_type.value if isinstance(content_type, ContentType) else content_type
        marker = self.db.get_content_progress(user_id, content_id, kind, conn)
        if marker is None:
            marker = ContentProgressRecord(user_id=user_id, content_id=content_id, content_type=kind)
        return marker

    def _touch_marker(
        self,
        marker: ContentProgressRecord,
        now: datetime,
        completed: bool,
        score: float | None,
    ) -> None:
        marker.attempts += 1
        if completed and not marker.completed:
            marker.completed = True
            marker.first_completed_at = now
        if score is not None:
            marker.best_score = score if marker.best_score is None else max(marker.best_score, score)

    def _grade_question(self, question: Question, outcome: Outcome) -> bool:
        if outcome.answer is not None:
            if question["answer_key"] is None:
                raise InvalidInput(
                    f"Question {question['id']} has no answer key; report correctness instead"
                )
            return grade(parse_answer_key(question["answer_key"]), outcome.answer)
        if outcome.correct is None:
            raise InvalidInput("A question answer needs either 'correct' or 'answer'")
        return outcome.correct

    def _question_xp(self, question: Question) -> int:
        multiplier = DIFFICULTY_MULTIPLIERS.get(question["difficulty"])
        if multiplier is None:
            raise CorruptState(
                f"Question {question['id']} has unknown difficulty {question['difficulty']!r}"
            )
        if question["points"] < 0:
            raise CorruptState(f"Question {question['id']} has negative points")
        return round(question["points"] * multiplier)

    def _start_tally(self, profile: UserProfile) -> _Tally:
        self.ledger.validate_profile(profile)
        return _Tally(profile=profile, start_level=self.ledger.level_for(profile.total_xp))

    def _apply(
        self,
        tally: _Tally,
        event: LedgerEvent,
        today: date,
        marker: ContentProgressRecord,
    ) -> None:
        result = self.ledger.apply_event(tally.profile, event, today)
        tally.profile = result.profile
        tally.xp += result.xp_gained
        tally.achievements.extend(result.new_achievements)
        if result.repeat_award_granted:
            marker.last_repeat_xp_on = today
        marker.total_xp_earned += result.xp_gained

    def _finish(self, conn: sqlite3.Connection, tally: _Tally) -> ProgressResult:
        """Persist the profile and summarize the interaction"""
        profile = self.db.upsert_user_profile(tally.profile, conn)
        level = self.ledger.level_for(profile.total_xp)
        leveled_up = level > tally.start_level
        if leveled_up:
            logger.info(f"User {profile.user_id} reached level {level}")
        return ProgressResult(
            xp_earned=tally.xp,
            leveled_up=leveled_up,
            new_level=level if leveled_up else None,
            new_achievements=[a.id for a in tally.achievements],
            total_xp=profile.total_xp,
            level=level,
        )


# Global instance
_coordinator = None


def get_progress_coordinator() -> ProgressCoordinator:
    """Get global progress coordinator instance"""
    global _coordinator
    if _coordinator is None:
        _coordinator = ProgressCoordinator()
    return _coordinator
