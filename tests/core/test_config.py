"""Tests for configuration settings."""

import pytest
from pydantic import ValidationError

from cellsync.core.config import Settings


def test_contact_sync_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("DEFAULT_COUNTRY", "CRM_FETCH_TIMEOUT_SECONDS", "ZENDESK_PAGE_SIZE", "ZENDESK_MAX_PAGES"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.DEFAULT_COUNTRY == "US"
    assert settings.CRM_FETCH_TIMEOUT_SECONDS == 60.0
    assert settings.ZENDESK_PAGE_SIZE == 100
    assert settings.ZENDESK_MAX_PAGES == 100


def test_default_country_is_upper_cased(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEFAULT_COUNTRY", " fr ")

    assert Settings(_env_file=None).DEFAULT_COUNTRY == "FR"


def test_default_country_must_be_two_letters(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEFAULT_COUNTRY", "USA")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_supabase_url_trailing_slash_stripped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co/")

    assert Settings(_env_file=None).SUPABASE_URL == "https://test.supabase.co"


def test_supabase_url_requires_scheme(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "test.supabase.co")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_validate_startup_with_all_secrets(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")

    # Should not raise
    Settings(_env_file=None).validate_startup()


def test_validate_startup_with_missing_service_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "")

    with pytest.raises(ValueError, match="SUPABASE_SERVICE_ROLE_KEY"):
        Settings(_env_file=None).validate_startup()


def test_missing_composio_key_only_warns(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.delenv("COMPOSIO_API_KEY", raising=False)

    settings = Settings(_env_file=None)
    settings.validate_startup()

    assert settings.composio_configured is False
    assert "COMPOSIO_API_KEY" in caplog.text


def test_cors_origins_list_splits_and_strips(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test ,")

    assert Settings(_env_file=None).cors_origins_list == ["http://a.test", "http://b.test"]
