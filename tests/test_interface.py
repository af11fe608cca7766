"""
Unit tests for request and result models
"""

from datetime import datetime, timezone

import pytest

from progress_engine.core.database.models import ContentType
from progress_engine.errors import InvalidInput
from progress_engine.grading import TrueFalseAnswer
from progress_engine.interface import InteractionRequest, ProgressResult
from progress_engine.mastery_scheduler import ReviewRating


class TestInteractionRequest:
    """Test inbound payload validation"""

    def test_camel_case_payload(self):
        request = InteractionRequest.parse({
            "userId": "alice",
            "contentId": "card-1",
            "contentType": "flashcard",
            "outcome": {"rating": "good", "timeSpent": 4.5},
        })

        assert request.user_id == "alice"
        assert request.content_type == ContentType.FLASHCARD
        assert request.outcome.rating == ReviewRating.GOOD
        assert request.outcome.time_spent == 4.5

    def test_numeric_rating(self):
        request = InteractionRequest.parse({
            "userId": "alice", "contentId": "card-1", "contentType": "flashcard",
            "outcome": {"rating": 1},
        })
        assert request.outcome.rating == ReviewRating.AGAIN

    def test_answer_payload(self):
        request = InteractionRequest.parse({
            "userId": "alice", "contentId": "q1", "contentType": "question",
            "outcome": {"answer": {"kind": "true-false", "value": True}},
        })
        assert request.outcome.answer == TrueFalseAnswer(value=True)

    def test_missing_outcome_defaults_empty(self):
        request = InteractionRequest.parse(
            {"userId": "alice", "contentId": "s1", "contentType": "section"}
        )
        assert request.outcome.correct is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"userId": "alice", "contentId": "q1", "contentType": "video"},
            {"userId": "", "contentId": "q1", "contentType": "question"},
            {"userId": "alice", "contentId": "q1", "contentType": "question",
             "outcome": {"score": 130}},
            {"userId": "alice", "contentId": "q1", "contentType": "question",
             "outcome": {"timeSpent": -1}},
            {"userId": "alice", "contentId": "c1", "contentType": "flashcard",
             "outcome": {"rating": "Meh"}},
            {"userId": "alice", "contentId": "q1", "contentType": "question", "extra": 1},
        ],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(InvalidInput):
            InteractionRequest.parse(payload)


class TestProgressResult:
    """Test outbound payload shape"""

    def test_response_uses_camel_case_and_drops_unset(self):
        result = ProgressResult(xp_earned=60, leveled_up=True, new_level=1, total_xp=110, level=1)
        response = result.to_response()

        assert response == {
            "xpEarned": 60,
            "leveledUp": True,
            "newLevel": 1,
            "newAchievements": [],
            "totalXp": 110,
            "level": 1,
        }

    def test_next_due_is_serialized(self):
        due = datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc)
        response = ProgressResult(mastery_level="Learning", next_due_at=due).to_response()
        assert response["masteryLevel"] == "Learning"
        assert response["nextDueAt"].startswith("2026-03-03T09:00:00")
