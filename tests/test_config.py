"""Tests for settings loaded from the environment."""

import pytest

from invest_ledger.config import DEFAULT_DATABASE_URL, LedgerSettings


class TestLedgerSettings:
    def test_defaults(self):
        settings = LedgerSettings.from_env({})

        assert settings.account_for_sells is False
        assert settings.fallback_window_months == 24
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.log_level == "WARNING"

    def test_reads_prefixed_variables(self):
        settings = LedgerSettings.from_env(
            {
                "INVEST_LEDGER_ACCOUNT_FOR_SELLS": "yes",
                "INVEST_LEDGER_FALLBACK_WINDOW_MONTHS": "36",
                "INVEST_LEDGER_DATABASE_URL": "sqlite:///other.db",
                "INVEST_LEDGER_LOG_LEVEL": "debug",
            }
        )

        assert settings.account_for_sells is True
        assert settings.fallback_window_months == 36
        assert settings.database_url == "sqlite:///other.db"
        assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "key,value",
        [
            ("INVEST_LEDGER_ACCOUNT_FOR_SELLS", "maybe"),
            ("INVEST_LEDGER_FALLBACK_WINDOW_MONTHS", "two"),
            ("INVEST_LEDGER_FALLBACK_WINDOW_MONTHS", "0"),
            ("INVEST_LEDGER_LOG_LEVEL", "chatty"),
        ],
    )
    def test_invalid_values_name_the_variable(self, key, value):
        with pytest.raises(ValueError, match=key):
            LedgerSettings.from_env({key: value})
