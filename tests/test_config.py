"""Tests for settings."""

import pytest
from pydantic import ValidationError

from safe_tables.config import Settings, get_settings


class TestSettings:
    """Tests for the Settings model."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        for name in ("FSYNC_ON_SAVE", "COMPRESS_LEVEL", "VERIFY_ON_READ", "LOG_LEVEL", "LOG_FORMAT"):
            monkeypatch.delenv(f"SAFE_TABLES_{name}", raising=False)
        settings = Settings()
        assert settings.fsync_on_save is True
        assert settings.compress_level == 6
        assert settings.verify_on_read is False
        assert settings.log_level == "WARNING"
        assert settings.log_format == "console"

    def test_environment_override(self, monkeypatch):
        """Test SAFE_TABLES_* environment variables."""
        monkeypatch.setenv("SAFE_TABLES_VERIFY_ON_READ", "true")
        monkeypatch.setenv("SAFE_TABLES_COMPRESS_LEVEL", "9")
        monkeypatch.setenv("SAFE_TABLES_LOG_FORMAT", "json")
        settings = Settings()
        assert settings.verify_on_read is True
        assert settings.compress_level == 9
        assert settings.log_format == "json"

    def test_invalid_compress_level(self):
        """Test out-of-range compression levels."""
        with pytest.raises(ValidationError):
            Settings(compress_level=10)

    def test_invalid_log_format(self):
        """Test unknown log formats."""
        with pytest.raises(ValidationError):
            Settings(log_format="xml")

    def test_get_settings_cached(self):
        """Test get_settings returns one shared instance."""
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()
