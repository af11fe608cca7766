"""
Unit tests for settings
"""

import pytest
from pydantic import ValidationError

from progress_engine.config import Settings


class TestSettings:
    """Test Settings defaults and validation"""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.level_thresholds == [0, 100, 250, 500, 1000, 2000, 3500, 5000]
        assert settings.repeat_attempt_xp_factor == 0.0
        assert settings.default_required_score == 70.0
        assert settings.max_conflict_retries == 3
        assert settings.database_path == "data/progress.db"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("REPEAT_ATTEMPT_XP_FACTOR", "0.5")
        monkeypatch.setenv("DATABASE_URL", "sqlite:///tmp/other.db")
        monkeypatch.setenv("LEVEL_THRESHOLDS", "[0, 50, 150]")

        settings = Settings(_env_file=None)

        assert settings.repeat_attempt_xp_factor == 0.5
        assert settings.database_path == "tmp/other.db"
        assert settings.level_thresholds == [0, 50, 150]

    @pytest.mark.parametrize("thresholds", [[], [10, 100], [0, 100, 100], [0, 200, 150]])
    def test_invalid_level_thresholds(self, thresholds):
        with pytest.raises(ValidationError):
            Settings(level_thresholds=thresholds)

    def test_repeat_factor_bounds(self):
        with pytest.raises(ValidationError):
            Settings(repeat_attempt_xp_factor=1.5)

    def test_hard_delay_below_one_day(self):
        with pytest.raises(ValidationError):
            Settings(hard_delay_minutes=24 * 60)

    def test_named_timezone(self):
        assert Settings(timezone="Europe/Berlin").timezone == "Europe/Berlin"

    @pytest.mark.parametrize("zone", ["Mars/Base", "", "../etc/passwd"])
    def test_unknown_timezone(self, zone):
        with pytest.raises(ValidationError):
            Settings(timezone=zone)
