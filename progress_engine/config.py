"""
Configuration management for the learner progress engine
"""

from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Database Configuration
    database_url: str = Field(default="sqlite:///data/progress.db")

    # Application Configuration
    log_level: str = Field(default="INFO")
    debug: bool = Field(default=False)
    timezone: str = Field(default="UTC")

    # Mastery Scheduling Configuration
    default_easiness_factor: float = Field(default=2.5)
    min_easiness_factor: float = Field(default=1.3)
    max_easiness_factor: float = Field(default=3.0)
    again_delay_minutes: int = Field(default=1, gt=0)
    hard_delay_minutes: int = Field(default=10, gt=0, lt=24 * 60)
    easy_bonus: float = Field(default=1.3, gt=1.0)
    max_interval_days: int = Field(default=365, gt=0)

    # XP and Level Configuration
    level_thresholds: list[int] = Field(
        default=[0, 100, 250, 500, 1000, 2000, 3500, 5000]
    )
    repeat_attempt_xp_factor: float = Field(default=0.0, ge=0.0, le=1.0)
    flashcard_base_xp: int = Field(default=20, ge=0)
    flashcard_mastered_bonus_xp: int = Field(default=10, ge=0)
    section_completion_xp: int = Field(default=50, ge=0)
    daily_quiz_xp: int = Field(default=5, ge=0)
    timed_quiz_xp: int = Field(default=8, ge=0)
    flashcard_topic_completion_xp: int = Field(default=100, ge=0)
    topic_completion_ratio: float = Field(default=0.8, gt=0.0, le=1.0)
    award_achievement_xp: bool = Field(default=False)

    # Unlock Configuration
    default_required_score: float = Field(default=70.0, ge=0.0, le=100.0)

    # Concurrency Configuration
    max_conflict_retries: int = Field(default=3, ge=1)
    lock_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        """Calendar days are taken in this zone, so it must resolve"""
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value!r}") from None
        return value

    @field_validator("level_thresholds")
    @classmethod
    def _thresholds_strictly_increasing(cls, value: list[int]) -> list[int]:
        """Level curve must start at zero and grow strictly"""
        if not value or value[0] != 0:
            raise ValueError("level_thresholds must start with 0")
        for previous, current in zip(value, value[1:]):
            if current <= previous:
                raise ValueError("level_thresholds must be strictly increasing")
        return value

    @property
    def database_path(self) -> str:
        """Get the database file path from URL"""
        if self.database_url.startswith("sqlite:///"):
            return self.database_url.replace("sqlite:///", "")
        return "data/progress.db"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def get_database_path() -> str:
    """Get the database file path from URL"""
    return get_settings().database_path
