"""Unit tests for alm_engine.config."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from pydantic import SecretStr

from alm_engine.config import Settings, load_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep developer ALM_* variables and any local .env out of these tests."""
    for key in list(os.environ):
        if key.startswith("ALM_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestSettingsDefaults:
    def test_defaults(self):
        settings = Settings()
        assert settings.debug is False
        assert settings.structured_logging is False
        assert settings.pac_executable == "pac"
        assert settings.pac_timeout_seconds == 1800
        assert settings.web_api_version == "9.2"
        assert settings.solutions_dir == Path("solutions")
        assert settings.artifacts_dir == Path("out/artifacts")
        assert settings.config_file == "alm-config.yml"
        assert settings.defaults_file is None
        assert settings.source_environment == "DEV"
        assert settings.git_remote == "origin"
        assert settings.hook_timeout_seconds == 3600

    def test_no_token_by_default(self):
        settings = Settings()
        assert settings.dataverse_token is None
        assert not settings.is_web_api_configured()


class TestEnvironmentOverrides:
    def test_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("ALM_SOURCE_ENVIRONMENT", "BUILD")
        monkeypatch.setenv("ALM_PAC_TIMEOUT_SECONDS", "60")
        monkeypatch.setenv("ALM_STRUCTURED_LOGGING", "true")
        settings = Settings()
        assert settings.source_environment == "BUILD"
        assert settings.pac_timeout_seconds == 60
        assert settings.structured_logging is True

    def test_token_is_secret(self, monkeypatch):
        monkeypatch.setenv("ALM_DATAVERSE_TOKEN", "super-secret")
        settings = Settings()
        assert isinstance(settings.dataverse_token, SecretStr)
        assert settings.dataverse_token.get_secret_value() == "super-secret"
        assert "super-secret" not in repr(settings)
        assert settings.is_web_api_configured()

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("ALM_GIT_REMOTE=upstream\n", encoding="utf-8")
        assert Settings().git_remote == "upstream"


class TestLoadSettings:
    def test_overrides(self):
        settings = load_settings(pac_executable="/opt/pac", debug=True)
        assert settings.pac_executable == "/opt/pac"
        assert settings.debug is True
