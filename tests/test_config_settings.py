"""Tests for runtime settings validation and logging setup."""

from __future__ import annotations

import logging

import pytest

from app.config import AppSettings, SettingsLoadError, config_load_database_url, config_load_settings, config_setup_logging
from app.config.logging_setup import LOG_FORMAT, NOISY_LOGGERS


def test_settings_normalize_maintenance_account_ids() -> None:
    """Split, trim and de-duplicate configured maintenance accounts."""

    settings = AppSettings(ledger_maintenance_account_ids=" acct-b, acct-a ,,acct-b ")

    assert settings.config_maintenance_account_ids() == ("acct-b", "acct-a")


def test_settings_default_to_no_maintenance_accounts() -> None:
    """Return an empty tuple when no accounts are configured."""

    assert AppSettings(ledger_maintenance_account_ids="").config_maintenance_account_ids() == ()


def test_settings_reject_unknown_report_timezone() -> None:
    """Reject timezone names outside the IANA database."""

    with pytest.raises(ValueError, match="ledger_report_timezone"):
        AppSettings(ledger_report_timezone="Atlantis/Capital")


def test_settings_normalize_log_level() -> None:
    """Uppercase accepted log levels and reject unknown ones."""

    assert AppSettings(log_level=" debug ").log_level == "DEBUG"
    with pytest.raises(ValueError, match="log_level"):
        AppSettings(log_level="chatty")


def test_settings_reject_max_limit_below_default() -> None:
    """Keep the list limit ceiling at or above the default page size."""

    with pytest.raises(ValueError, match="api_max_limit"):
        AppSettings(api_default_limit=100, api_max_limit=10)


def test_config_load_settings_wraps_validation_errors(monkeypatch) -> None:
    """Surface invalid environment values as a startup error."""

    monkeypatch.setenv("LEDGER_SNAPSHOT_LOOKBACK_DAYS", "0")

    with pytest.raises(SettingsLoadError, match="Startup configuration validation failed"):
        config_load_settings()


def test_config_load_database_url_reads_environment(monkeypatch) -> None:
    """Read the migration database URL from the environment."""

    monkeypatch.setenv("DATABASE_URL", " postgresql+psycopg://ledger@db/ledger ")

    assert config_load_database_url() == "postgresql+psycopg://ledger@db/ledger"


def test_config_setup_logging_installs_single_handler() -> None:
    """Replace the previously installed handler on repeated setup."""

    root_logger = logging.getLogger()
    previous_level = root_logger.level
    try:
        config_setup_logging("debug")
        config_setup_logging("INFO")

        installed_handlers = [
            handler for handler in root_logger.handlers if getattr(handler, "_balance_ledger_handler", False)
        ]
        assert len(installed_handlers) == 1
        assert installed_handlers[0].formatter._fmt == LOG_FORMAT  # pylint: disable=protected-access
        assert root_logger.level == logging.INFO
        assert all(logging.getLogger(name).level == logging.WARNING for name in NOISY_LOGGERS)
    finally:
        for handler in list(root_logger.handlers):
            if getattr(handler, "_balance_ledger_handler", False):
                root_logger.removeHandler(handler)
        root_logger.setLevel(previous_level)


def test_config_setup_logging_rejects_unknown_level() -> None:
    """Reject level names the logging module does not know."""

    with pytest.raises(ValueError, match="unsupported log level"):
        config_setup_logging("LOUD")
