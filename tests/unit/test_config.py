"""Tests for application settings."""

from docflow.core.config import Settings, get_settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DOCFLOW_DATABASE_URL", raising=False)
        settings = Settings(_env_file=None)
        assert settings.app_name == "DocFlow"
        assert settings.database_url.startswith("sqlite")
        assert settings.max_decision_retries == 3
        assert settings.admin_sees_all is True

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("DOCFLOW_MAX_DECISION_RETRIES", "5")
        monkeypatch.setenv("DOCFLOW_LOG_LEVEL", "DEBUG")
        settings = Settings(_env_file=None)
        assert settings.max_decision_retries == 5
        assert settings.log_level == "DEBUG"

    def test_cors_origins_list(self):
        settings = Settings(_env_file=None, cors_origins="http://a.example, http://b.example,")
        assert settings.cors_origins_list == ["http://a.example", "http://b.example"]

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
