"""Tests for application settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from tunevault.config import MatchingSettings, Settings, StorageSettings, get_settings


class TestDefaults:
    """Test default values."""

    def test_matching_defaults(self) -> None:
        matching = MatchingSettings()

        assert matching.auto_link_threshold == 98
        assert matching.manual_match_threshold == 80
        assert matching.max_candidates == 5

    def test_covers_path_under_data_dir(self, tmp_path: Path) -> None:
        storage = StorageSettings(data_dir=tmp_path)

        assert storage.covers_path == tmp_path / "covers"


class TestEnvironment:
    """Test environment overrides."""

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TUNEVAULT_MATCHING__AUTO_LINK_THRESHOLD", "95")
        monkeypatch.setenv("TUNEVAULT_DATABASE__URL", "sqlite+aiosqlite:///:memory:")

        settings = Settings()

        assert settings.matching.auto_link_threshold == 95
        assert settings.database.url == "sqlite+aiosqlite:///:memory:"

    def test_log_level_normalized(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TUNEVAULT_LOG_LEVEL", "debug")

        assert Settings().log_level == "DEBUG"

    def test_invalid_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(log_level="LOUD")

    def test_threshold_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MatchingSettings(auto_link_threshold=101)

    def test_get_settings_is_cached(self) -> None:
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
