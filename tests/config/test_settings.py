"""Tests for environment-driven application settings."""

import pytest

from src.config.settings import Environment, LogLevel, Settings, get_settings


class TestSettings:

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("SNAPSHOT_PATH", "SEED_SAMPLE_DATA", "LOG_LEVEL", "ENVIRONMENT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)
        assert settings.SNAPSHOT_PATH == "./grades.json"
        assert settings.SEED_SAMPLE_DATA is True
        assert settings.LOG_LEVEL == LogLevel.INFO
        assert settings.ENVIRONMENT == Environment.DEV
        assert settings.is_production is False

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SNAPSHOT_PATH", "/tmp/mine.json")
        monkeypatch.setenv("SEED_SAMPLE_DATA", "false")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ENVIRONMENT", "prod")
        settings = get_settings()
        assert settings.SNAPSHOT_PATH == "/tmp/mine.json"
        assert settings.SEED_SAMPLE_DATA is False
        assert settings.LOG_LEVEL == LogLevel.DEBUG
        assert settings.is_production is True
