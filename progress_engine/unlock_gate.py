"""
Section access gating for sequential and score-based unlock policies
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .core.database.models import Section, SectionProgressRecord, UnlockPolicy
from .errors import CorruptState, InvalidInput

logger = logging.getLogger(__name__)

ProgressLookup = Callable[[str], SectionProgressRecord | None]


@dataclass(frozen=True)
class SiblingRef:
    """A section as seen by the gate: identity and display name only"""

    id: str
    name: str

    @classmethod
    def from_section(cls, section: Section) -> "SiblingRef":
        return cls(id=section["id"], name=section["name"])


@dataclass(frozen=True)
class UnlockRule:
    """Unlock policy plus its score threshold"""

    policy: UnlockPolicy = UnlockPolicy.ALWAYS
    required_score: float = 70.0

    @classmethod
    def parse(cls, policy: "UnlockRule | UnlockPolicy | str", required_score: float | None = None,
              default_required_score: float = 70.0) -> "UnlockRule":
        """Build a rule from a policy name, rejecting unknown names"""
        if isinstance(policy, UnlockRule):
            return policy
        try:
            parsed = UnlockPolicy(policy)
        except ValueError:
            raise InvalidInput(f"Unknown unlock policy: {policy!r}") from None
        if required_score is None:
            required_score = default_required_score
        if not 0 <= required_score <= 100:
            raise InvalidInput(f"Required score must be within 0..100, got {required_score}")
        return cls(policy=parsed, required_score=float(required_score))

    @classmethod
    def for_section(cls, section: Section, default_required_score: float = 70.0) -> "UnlockRule":
        return cls.parse(
            section["unlock_policy"],
            section.get("required_score"),
            default_required_score,
        )


@dataclass
class UnlockDecision:
    """Outcome of an access check"""

    unlocked: bool
    reason: str | None = None
    blocking_section_id: str | None = None


class UnlockGate:
    """Decides whether a section is accessible given sibling progress"""

    def evaluate(
        self,
        siblings: Sequence[SiblingRef],
        target_index: int,
        rule: UnlockRule | UnlockPolicy | str,
        progress_lookup: ProgressLookup,
    ) -> UnlockDecision:
        """
        Evaluate access to siblings[target_index]

        Args:
            siblings: Sections of one topic in display order
            target_index: Position of the section being opened
            rule: Unlock policy of the topic
            progress_lookup: Returns the user's progress for a section id, or None

        Returns:
            UnlockDecision with a reason naming the blocking section when locked
        """
        rule = UnlockRule.parse(rule)
        if not 0 <= target_index < len(siblings):
            raise InvalidInput(
                f"Target index {target_index} outside of {len(siblings)} sections"
            )

        if rule.policy == UnlockPolicy.ALWAYS or target_index == 0:
            return UnlockDecision(unlocked=True)

        # A section that was ever opened or finished stays open
        target_progress = self._lookup(progress_lookup, siblings[target_index].id)
        if target_progress and (target_progress.completed or target_progress.unlocked):
            return UnlockDecision(unlocked=True)

        previous = siblings[target_index - 1]
        previous_progress = self._lookup(progress_lookup, previous.id)

        if rule.policy == UnlockPolicy.SEQUENTIAL:
            if previous_progress and previous_progress.completed:
                return UnlockDecision(unlocked=True)
            return UnlockDecision(
                unlocked=False,
                reason=f'Complete "{previous.name}" first',
                blocking_section_id=previous.id,
            )

        previous_score = previous_progress.score if previous_progress else 0.0
        if previous_score >= rule.required_score:
            return UnlockDecision(unlocked=True)
        return UnlockDecision(
            unlocked=False,
            reason=(
                f'Score at least {rule.required_score:g}% in "{previous.name}" '
                f"(current: {previous_score:g}%)"
            ),
            blocking_section_id=previous.id,
        )

    def is_unlocked(
        self,
        siblings: Sequence[SiblingRef],
        target_index: int,
        rule: UnlockRule | UnlockPolicy | str,
        progress_lookup: ProgressLookup,
    ) -> bool:
        return self.evaluate(siblings, target_index, rule, progress_lookup).unlocked

    def unlock_reason(
        self,
        siblings: Sequence[SiblingRef],
        target_index: int,
        rule: UnlockRule | UnlockPolicy | str,
        progress_lookup: ProgressLookup,
    ) -> str | None:
        """Human readable reason the section is locked, None when open"""
        return self.evaluate(siblings, target_index, rule, progress_lookup).reason

    def _lookup(
        self, progress_lookup: ProgressLookup, section_id: str
    ) -> SectionProgressRecord | None:
        progress = progress_lookup(section_id)
        if progress is not None and not 0 <= progress.score <= 100:
            raise CorruptState(
                f"Section {section_id} has score {progress.score} outside 0..100"
            )
        return progress
