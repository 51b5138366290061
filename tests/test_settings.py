"""Tests for configuration and the engine factory."""

import pytest
from pydantic import ValidationError

from recurring_ledger.config import EngineSettings, get_settings, validate_all_settings
from recurring_ledger.engine import LedgerEngine, create_engine
from recurring_ledger.services.storage import InMemoryUnitOfWork

GOOGLE_ENV = ("GOOGLE_SHEETS_CREDENTIALS_PATH", "GOOGLE_SHEETS_SPREADSHEET_ID")


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    for name in GOOGLE_ENV:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestEngineSettings:
    """Tests for engine configuration."""

    def test_defaults(self):
        """Defaults need no environment."""
        settings = EngineSettings()
        assert settings.past_due_lookback_days == 30
        assert settings.default_currency == "USD"
        assert settings.calendar_week_start == 6
        assert settings.auto_realize_past_due is False

    def test_environment_override(self, monkeypatch):
        """LEDGER_-prefixed variables override defaults."""
        monkeypatch.setenv("LEDGER_PAST_DUE_LOOKBACK_DAYS", "14")
        monkeypatch.setenv("LEDGER_DEFAULT_CURRENCY", "eur")
        monkeypatch.setenv("LEDGER_AUTO_REALIZE_PAST_DUE", "true")

        settings = EngineSettings()

        assert settings.past_due_lookback_days == 14
        assert settings.default_currency == "EUR"
        assert settings.auto_realize_past_due is True

    @pytest.mark.parametrize("week_start", [-1, 7])
    def test_week_start_out_of_range(self, week_start):
        """Week start must be a weekday index."""
        with pytest.raises(ValidationError):
            EngineSettings(calendar_week_start=week_start)

    def test_lookback_must_be_positive(self):
        """A zero-day lookback is rejected."""
        with pytest.raises(ValidationError):
            EngineSettings(past_due_lookback_days=0)


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_missing_google_sheets_reported(self):
        """Sheets settings fail without credentials; the rest validate."""
        results = validate_all_settings()
        assert results["engine"] is True
        assert results["app"] is True
        assert results["google_sheets"] is False
        assert "google_sheets_error" in results


class TestCreateEngine:
    """Tests for the engine factory."""

    def test_in_memory_when_storage_disabled(self):
        """Without storage the engine runs in memory."""
        engine = create_engine(use_storage=False)
        assert isinstance(engine, LedgerEngine)
        assert isinstance(engine.unit_of_work, InMemoryUnitOfWork)

    def test_falls_back_when_sheets_not_configured(self):
        """Missing Sheets configuration falls back to in-memory storage."""
        engine = create_engine(use_storage=True)
        assert isinstance(engine.unit_of_work, InMemoryUnitOfWork)
