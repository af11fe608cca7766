"""
Request and result models exchanged with the API layer
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .core.database.models import ContentType
from .errors import InvalidInput
from .grading import Answer
from .mastery_scheduler import ReviewRating


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class Outcome(_CamelModel):
    """What happened in the interaction"""

    correct: bool | None = None
    rating: ReviewRating | None = None
    score: float | None = Field(default=None, ge=0, le=100)
    time_spent: float | None = Field(default=None, ge=0)
    answer: Answer | None = None

    @field_validator("rating", mode="before")
    @classmethod
    def _parse_rating(cls, value: Any) -> ReviewRating | None:
        if value is None:
            return None
        return ReviewRating.parse(value)


class InteractionRequest(_CamelModel):
    """A single learner interaction to record"""

    user_id: str = Field(min_length=1)
    content_id: str = Field(min_length=1)
    content_type: ContentType
    outcome: Outcome = Field(default_factory=Outcome)

    @classmethod
    def parse(cls, data: dict[str, Any]) -> "InteractionRequest":
        """Validate an inbound payload, reporting problems as InvalidInput"""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidInput(f"Invalid interaction request: {e}") from e


class ProgressResult(_CamelModel):
    """Summary returned for every recorded interaction"""

    xp_earned: int = 0
    leveled_up: bool = False
    new_level: int | None = None
    new_achievements: list[str] = Field(default_factory=list)
    section_unlock_changed: bool | None = None
    total_xp: int = 0
    level: int = 0
    section_completed: bool | None = None
    mastery_level: str | None = None
    next_due_at: datetime | None = None

    def to_response(self) -> dict[str, Any]:
        """Camel-cased payload with absent optionals left out"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SectionAccess(_CamelModel):
    """Access decision for one section"""

    section_id: str
    unlocked: bool
    reason: str | None = None
    blocking_section_id: str | None = None
