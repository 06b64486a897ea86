"""Tests for environment-driven configuration."""

import pytest

from expense_tracker.config import (
    GeminiSettings,
    GoogleSheetsSettings,
    LedgerSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GEMINI_API_KEY",
        "GEMINI_REQUEST_TIMEOUT_SECONDS",
        "GOOGLE_SHEETS_CREDENTIALS_PATH",
        "GOOGLE_SHEETS_SPREADSHEET_ID",
        "CURRENCY_SYMBOL",
        "ADVICE_RECENT_ENTRIES",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self):
        settings = LedgerSettings()
        assert settings.currency_symbol == "$"
        assert settings.advice_recent_entries == 5

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("CURRENCY_SYMBOL", "€")
        monkeypatch.setenv("ADVICE_RECENT_ENTRIES", "3")

        settings = LedgerSettings()

        assert settings.currency_symbol == "€"
        assert settings.advice_recent_entries == 3


class TestGeminiSettings:
    """Tests for GeminiSettings."""

    def test_api_key_required(self):
        with pytest.raises(ValueError):
            GeminiSettings()

    def test_timeout_in_milliseconds(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        monkeypatch.setenv("GEMINI_REQUEST_TIMEOUT_SECONDS", "2.5")

        settings = GeminiSettings()

        assert settings.api_key == "test-key"
        assert settings.request_timeout_ms == 2500

    def test_default_timeout(self):
        assert GeminiSettings(api_key="k").request_timeout_ms == 30_000


class TestGoogleSheetsSettings:
    """Tests for GoogleSheetsSettings."""

    def test_missing_credentials_file_warns(self, tmp_path):
        with pytest.warns(UserWarning, match="credentials file not found"):
            settings = GoogleSheetsSettings(
                credentials_path=str(tmp_path / "missing.json"),
                spreadsheet_id="sheet-id",
            )
        assert settings.entries_sheet_name == "Entries"
        assert settings.budgets_sheet_name == "Budgets"


class TestSettingsAccess:
    """Tests for get_settings and validate_all_settings."""

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_validate_all_settings_reports_missing_config(self):
        results = validate_all_settings()

        assert results["ledger"] is True
        assert results["gemini"] is False
        assert "gemini_error" in results
        assert results["google_sheets"] is False

    def test_validate_all_settings_with_gemini_configured(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")
        assert validate_all_settings()["gemini"] is True
