"""
Unit tests for section unlock gating
"""

import pytest

from progress_engine.core.database.models import SectionProgressRecord, UnlockPolicy
from progress_engine.errors import CorruptState, InvalidInput
from progress_engine.unlock_gate import SiblingRef, UnlockGate, UnlockRule

SECTIONS = [
    SiblingRef("s1", "Basics"),
    SiblingRef("s2", "Loops"),
    SiblingRef("s3", "Functions"),
]


def lookup_from(*records):
    progress = {record.section_id: record for record in records}
    return progress.get


@pytest.fixture
def gate():
    return UnlockGate()


class TestUnlockRule:
    """Test UnlockRule parsing"""

    def test_parse_policy_names(self):
        assert UnlockRule.parse("sequential").policy == UnlockPolicy.SEQUENTIAL
        assert UnlockRule.parse("score-based", 80).required_score == 80.0

    def test_default_required_score(self):
        assert UnlockRule.parse("score-based").required_score == 70.0
        assert UnlockRule.parse("score-based", None, 60).required_score == 60.0

    def test_unknown_policy(self):
        with pytest.raises(InvalidInput):
            UnlockRule.parse("whenever")

    def test_required_score_out_of_range(self):
        with pytest.raises(InvalidInput):
            UnlockRule.parse("score-based", 120)

    def test_for_section(self):
        section = {
            "id": "s2", "topic_id": "t1", "name": "Loops", "order_index": 1,
            "unlock_policy": "score-based", "required_score": None,
            "require_completion": False, "completion_xp": None,
        }
        rule = UnlockRule.for_section(section, 75)
        assert rule == UnlockRule(UnlockPolicy.SCORE_BASED, 75.0)


class TestUnlockGate:
    """Test UnlockGate decisions"""

    def test_always_policy(self, gate):
        assert gate.is_unlocked(SECTIONS, 2, "always", lookup_from())

    @pytest.mark.parametrize("policy", ["sequential", "score-based"])
    def test_first_section_always_open(self, gate, policy):
        assert gate.is_unlocked(SECTIONS, 0, policy, lookup_from())

    def test_sequential_requires_previous_completed(self, gate):
        decision = gate.evaluate(SECTIONS, 1, "sequential", lookup_from())

        assert decision.unlocked is False
        assert decision.reason == 'Complete "Basics" first'
        assert decision.blocking_section_id == "s1"

    def test_sequential_unlocks_after_completion(self, gate):
        done = SectionProgressRecord("alice", "s1", completed=True)
        assert gate.is_unlocked(SECTIONS, 1, "sequential", lookup_from(done))
        assert gate.unlock_reason(SECTIONS, 1, "sequential", lookup_from(done)) is None

    def test_sequential_only_checks_immediate_predecessor(self, gate):
        second = SectionProgressRecord("alice", "s2", completed=True)
        assert gate.is_unlocked(SECTIONS, 2, "sequential", lookup_from(second))

    def test_score_based_below_threshold(self, gate):
        """Prior score 65 under a 70 threshold keeps the section locked"""
        previous = SectionProgressRecord("alice", "s1", score=65.0)
        rule = UnlockRule.parse("score-based", 70)

        decision = gate.evaluate(SECTIONS, 1, rule, lookup_from(previous))

        assert decision.unlocked is False
        assert "Basics" in decision.reason
        assert decision.reason == 'Score at least 70% in "Basics" (current: 65%)'

    def test_score_based_meets_threshold(self, gate):
        previous = SectionProgressRecord("alice", "s1", score=70.0)
        rule = UnlockRule.parse("score-based", 70)
        assert gate.is_unlocked(SECTIONS, 1, rule, lookup_from(previous))

    def test_missing_progress_counts_as_zero(self, gate):
        decision = gate.evaluate(SECTIONS, 2, "score-based", lookup_from())

        assert decision.unlocked is False
        assert "Loops" in decision.reason
        assert "current: 0%" in decision.reason

    @pytest.mark.parametrize("policy", ["sequential", "score-based"])
    def test_completed_target_stays_unlocked(self, gate, policy):
        """A section already finished is never re-locked"""
        target = SectionProgressRecord("alice", "s2", completed=True)
        previous = SectionProgressRecord("alice", "s1", score=10.0)
        assert gate.is_unlocked(SECTIONS, 1, policy, lookup_from(previous, target))

    def test_previously_unlocked_target_stays_unlocked(self, gate):
        target = SectionProgressRecord("alice", "s2", unlocked=True)
        previous = SectionProgressRecord("alice", "s1", score=20.0)
        assert gate.is_unlocked(SECTIONS, 1, "score-based", lookup_from(previous, target))

    def test_target_index_out_of_range(self, gate):
        with pytest.raises(InvalidInput):
            gate.evaluate(SECTIONS, 3, "sequential", lookup_from())

    def test_corrupt_score(self, gate):
        previous = SectionProgressRecord("alice", "s1", score=140.0)
        with pytest.raises(CorruptState):
            gate.evaluate(SECTIONS, 1, "score-based", lookup_from(previous))

    def test_gate_never_writes(self, gate):
        previous = SectionProgressRecord("alice", "s1", completed=True)
        gate.evaluate(SECTIONS, 1, "sequential", lookup_from(previous))
        assert previous == SectionProgressRecord("alice", "s1", completed=True)
