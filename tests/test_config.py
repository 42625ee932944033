"""Test configuration loading for the server and the async client."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from client.config import ClientSettings
from core.config import PROJECT_ROOT, Settings, _resolve_database_url, get_settings


def test_settings_load():
    """Test that settings load correctly."""
    settings = get_settings()

    assert settings.database_url == "sqlite:///:memory:"
    assert settings.log_level in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    assert settings.enforce_status_transitions is False
    assert settings.is_llm_enabled() is False
    assert settings.get_enabled_services() == []


def test_list_limit_defaults():
    settings = Settings()

    assert settings.lead_list_default_limit == 50
    assert settings.lead_list_max_limit == 100
    assert settings.property_list_default_limit == 25
    assert settings.property_list_max_limit == 50


def test_invalid_log_level(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "CHATTY")
    with pytest.raises(ValidationError):
        Settings()


def test_placeholder_secret_refused_in_production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("JWT_SECRET_KEY", "change-me-in-production")
    with pytest.raises(ValidationError):
        Settings()


def test_cors_origins_split(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "http://localhost:3000, https://crm.acmerealty.com")

    assert Settings().get_cors_origins() == ["http://localhost:3000", "https://crm.acmerealty.com"]


def test_relative_sqlite_path_is_made_absolute():
    assert _resolve_database_url("sqlite:///:memory:") == "sqlite:///:memory:"
    assert _resolve_database_url("postgresql://db/crm") == "postgresql://db/crm"
    resolved = _resolve_database_url("sqlite:///./data/crm.db")
    expected = (PROJECT_ROOT / "data" / "crm.db").as_posix()
    assert resolved == f"sqlite:///{expected}"


class TestClientSettings:
    def test_stale_times_per_collection(self):
        settings = ClientSettings()

        assert settings.stale_time_for("/api/leads") == 60
        assert settings.stale_time_for("/api/leads/5") == 60
        assert settings.stale_time_for("/api/deals") == 120
        assert settings.stale_time_for("/api/properties") == 180
        assert settings.stale_time_for("/api/notifications/unread-count") == 15
        assert settings.stale_time_for("/api/dashboard/metrics") == 300

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CRM_CLIENT_BASE_URL", "http://crm.internal:9000")
        monkeypatch.setenv("CRM_CLIENT_QUERY_RETRIES", "3")

        settings = ClientSettings()

        assert settings.base_url == "http://crm.internal:9000"
        assert settings.query_retries == 3
        assert settings.notification_count_interval == 15
        assert settings.notification_list_interval == 30
