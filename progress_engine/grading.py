"""
Answer keys, submitted answers and grading for every supported question type
"""

import logging
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .errors import CorruptState, InvalidInput

logger = logging.getLogger(__name__)


class _Frozen(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )


# Answer keys, stored with each question

class MultipleChoiceKey(_Frozen):
    kind: Literal["multiple-choice"] = "multiple-choice"
    correct_index: int = Field(ge=0)


class TrueFalseKey(_Frozen):
    kind: Literal["true-false"] = "true-false"
    correct: bool


class BlankKey(_Frozen):
    correct_answers: list[str] = Field(min_length=1)
    case_sensitive: bool = False


class FillInBlankKey(_Frozen):
    kind: Literal["fill-in-blank"] = "fill-in-blank"
    blanks: list[BlankKey] = Field(min_length=1)


class NumericalKey(_Frozen):
    kind: Literal["numerical"] = "numerical"
    correct_answer: float
    # Relative tolerance
    tolerance: float = Field(default=0.01, ge=0)


class MatchingKey(_Frozen):
    kind: Literal["matching"] = "matching"
    pairs: dict[str, str] = Field(min_length=1)


AnswerKey = Annotated[
    Union[MultipleChoiceKey, TrueFalseKey, FillInBlankKey, NumericalKey, MatchingKey],
    Field(discriminator="kind"),
]


# Submitted answers

class MultipleChoiceAnswer(_Frozen):
    kind: Literal["multiple-choice"] = "multiple-choice"
    selected_index: int


class TrueFalseAnswer(_Frozen):
    kind: Literal["true-false"] = "true-false"
    value: bool


class FillInBlankAnswer(_Frozen):
    kind: Literal["fill-in-blank"] = "fill-in-blank"
    answers: list[str]


class NumericalAnswer(_Frozen):
    kind: Literal["numerical"] = "numerical"
    value: float


class MatchingAnswer(_Frozen):
    kind: Literal["matching"] = "matching"
    matches: dict[str, str]


Answer = Annotated[
    Union[MultipleChoiceAnswer, TrueFalseAnswer, FillInBlankAnswer, NumericalAnswer, MatchingAnswer],
    Field(discriminator="kind"),
]

_answer_key_adapter = TypeAdapter(AnswerKey)
_answer_adapter = TypeAdapter(Answer)

MIN_ABSOLUTE_TOLERANCE = 0.001


def parse_answer_key(data: dict[str, Any]) -> MultipleChoiceKey | TrueFalseKey | FillInBlankKey | NumericalKey | MatchingKey:
    """Load a stored answer key; a malformed key is corrupt catalog data"""
    try:
        return _answer_key_adapter.validate_python(data)
    except ValidationError as e:
        raise CorruptState(f"Stored answer key is malformed: {e}") from e


def parse_answer(data: Any) -> MultipleChoiceAnswer | TrueFalseAnswer | FillInBlankAnswer | NumericalAnswer | MatchingAnswer:
    """Load a submitted answer payload"""
    try:
        return _answer_adapter.validate_python(data)
    except ValidationError as e:
        raise InvalidInput(f"Malformed answer payload: {e}") from e


def _grade_multiple_choice(key: MultipleChoiceKey, answer: MultipleChoiceAnswer) -> bool:
    return answer.selected_index == key.correct_index


def _grade_true_false(key: TrueFalseKey, answer: TrueFalseAnswer) -> bool:
    return answer.value is key.correct


def _grade_fill_in_blank(key: FillInBlankKey, answer: FillInBlankAnswer) -> bool:
    if len(answer.answers) != len(key.blanks):
        raise InvalidInput(
            f"Expected {len(key.blanks)} blank answers, got {len(answer.answers)}"
        )
    for blank, given in zip(key.blanks, answer.answers):
        normalized = given.strip() if blank.case_sensitive else given.strip().lower()
        accepted = {
            a.strip() if blank.case_sensitive else a.strip().lower()
            for a in blank.correct_answers
        }
        if normalized not in accepted:
            return False
    return True


def _grade_numerical(key: NumericalKey, answer: NumericalAnswer) -> bool:
    difference = abs(answer.value - key.correct_answer)
    allowed = max(abs(key.correct_answer * key.tolerance), MIN_ABSOLUTE_TOLERANCE)
    return difference <= allowed


def _grade_matching(key: MatchingKey, answer: MatchingAnswer) -> bool:
    return all(answer.matches.get(left) == right for left, right in key.pairs.items())


_GRADERS = {
    MultipleChoiceKey: _grade_multiple_choice,
    TrueFalseKey: _grade_true_false,
    FillInBlankKey: _grade_fill_in_blank,
    NumericalKey: _grade_numerical,
    MatchingKey: _grade_matching,
}


def grade(key: BaseModel, answer: BaseModel) -> bool:
    """
    Decide whether an answer is correct for its key

    Raises:
        InvalidInput: if the answer kind does not match the key kind
    """
    if key.kind != answer.kind:
        raise InvalidInput(
            f"Answer of kind {answer.kind!r} submitted for a {key.kind!r} question"
        )
    grader = _GRADERS.get(type(key))
    if grader is None:
        raise InvalidInput(f"No grader for question kind {key.kind!r}")
    correct = grader(key, answer)
    logger.debug(f"Graded {key.kind} answer: correct={correct}")
    return correct
