"""
Unit tests for settings loading.
"""
import pytest
from pydantic import ValidationError

from config import Settings


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        settings = Settings(_env_file=None)

        assert settings.is_sqlite is True
        assert settings.user_id_header == "X-User-Id"
        assert settings.get_transaction_config() == {"max_retries": 5, "backoff_ms": 20}

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/progression")
        monkeypatch.setenv("TRANSACTION_MAX_RETRIES", "9")

        settings = Settings(_env_file=None)

        assert settings.is_sqlite is False
        assert settings.get_transaction_config()["max_retries"] == 9

    def test_retries_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("TRANSACTION_MAX_RETRIES", "0")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)

    def test_log_level_is_validated(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "CHATTY")

        with pytest.raises(ValidationError):
            Settings(_env_file=None)
