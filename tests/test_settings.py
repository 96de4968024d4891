"""Tests for environment configuration."""

from pathlib import Path

import pytest

from storyloom.core.errors import ConfigurationError
from storyloom.core.settings import DEFAULT_BASE_URL, DEFAULT_MODEL, Settings

ENV_VARS = (
    "OPENAI_API_KEY",
    "STORYLOOM_OPENAI_BASE_URL",
    "STORYLOOM_MODEL",
    "STORYLOOM_TEMPERATURE",
    "STORYLOOM_ORACLE_TIMEOUT_S",
    "STORYLOOM_DB_PATH",
    "STORYLOOM_ALLOWED_ORIGINS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettingsFromEnv:
    """Settings.from_env."""

    def test_defaults(self, clean_env):
        settings = Settings.from_env()
        assert settings.openai_api_key == ""
        assert settings.openai_base_url == DEFAULT_BASE_URL
        assert settings.model == DEFAULT_MODEL
        assert settings.allowed_origins == ["http://localhost:3000", "http://127.0.0.1:3000"]

    def test_overrides(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "  sk-live  ")
        clean_env.setenv("STORYLOOM_OPENAI_BASE_URL", "https://proxy.test/v1/")
        clean_env.setenv("STORYLOOM_TEMPERATURE", "0.2")
        clean_env.setenv("STORYLOOM_DB_PATH", "/tmp/records.db")
        clean_env.setenv("STORYLOOM_ALLOWED_ORIGINS", "https://a.test, https://b.test,")

        settings = Settings.from_env()

        assert settings.openai_api_key == "sk-live"
        assert settings.openai_base_url == "https://proxy.test/v1"
        assert settings.temperature == 0.2
        assert settings.db_path == Path("/tmp/records.db")
        assert settings.allowed_origins == ["https://a.test", "https://b.test"]

    def test_invalid_number_raises(self, clean_env):
        clean_env.setenv("STORYLOOM_ORACLE_TIMEOUT_S", "soon")
        with pytest.raises(ConfigurationError):
            Settings.from_env()


class TestRequireApiKey:
    def test_returns_key(self):
        assert Settings(openai_api_key="sk-1").require_api_key() == "sk-1"

    def test_missing_key_raises(self):
        with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
            Settings().require_api_key()
