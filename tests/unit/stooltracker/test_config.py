"""
Tests for configuration management in `stooltracker/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Threshold and timezone validation (fail fast)
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from stooltracker.config import (
    AnalyticsConfig,
    AppConfig,
    LoggingConfig,
    configure_logging,
    get_config,
    load_config_from_env,
    system_zone,
)

ENV_VARS = (
    "ENVIRONMENT",
    "LOG_LEVEL",
    "STOOLTRACKER_DATA_DIR",
    "STOOLTRACKER_TIMEZONE",
    "HEALTHY_INTERVAL_MIN_HOURS",
    "HEALTHY_INTERVAL_MAX_HOURS",
    "POSSIBLE_CONSTIPATION_HOURS",
    "LIKELY_CONSTIPATION_HOURS",
    "REMINDER_DEFAULT_HOUR",
    "REMINDER_DEFAULT_MINUTE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Start every test from a known environment and an empty config cache."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


def test_load_config_production_defaults() -> None:
    config = load_config_from_env()

    assert config.environment == "production"
    assert config.debug is False
    assert config.logging.format == "json"
    assert config.logging.level == "WARNING"
    assert config.analytics.healthy_interval_min_hours == 12.0
    assert config.analytics.likely_constipation_hours == 72.0
    assert config.reminders.default_hour == 20
    assert config.storage.events_path.name == "events.json"


def test_development_enables_debug_and_console_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "dev")

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    assert load_config_from_env().logging.level == "INFO"

    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert load_config_from_env().logging.level == "DEBUG"


def test_data_dir_and_thresholds_from_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("STOOLTRACKER_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("POSSIBLE_CONSTIPATION_HOURS", "36")
    monkeypatch.setenv("LIKELY_CONSTIPATION_HOURS", "60")
    monkeypatch.setenv("REMINDER_DEFAULT_HOUR", "8")
    monkeypatch.setenv("STOOLTRACKER_TIMEZONE", "UTC")

    config = load_config_from_env()

    assert config.storage.events_path == tmp_path / "events.json"
    assert config.storage.reminder_path == tmp_path / "reminder.json"
    assert config.analytics.possible_constipation_hours == 36.0
    assert config.analytics.likely_constipation_hours == 60.0
    assert config.reminders.default_hour == 8
    assert config.analytics.zone() == ZoneInfo("UTC")


def test_inverted_constipation_thresholds_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("POSSIBLE_CONSTIPATION_HOURS", "80")

    with pytest.raises(ValidationError, match="below 'likely'"):
        load_config_from_env()


def test_inverted_healthy_range_rejected() -> None:
    with pytest.raises(ValidationError, match="healthy interval"):
        AnalyticsConfig(healthy_interval_min_hours=50.0, healthy_interval_max_hours=48.0)


def test_unknown_timezone_rejected() -> None:
    with pytest.raises(ValidationError, match="Unknown timezone"):
        AnalyticsConfig(timezone="Mars/Olympus_Mons")


def test_system_zone_follows_tz_across_dst(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TZ", "America/New_York")

    zone = AnalyticsConfig().zone()

    assert zone == ZoneInfo("America/New_York")
    summer = datetime(2026, 7, 1, 12, 0, tzinfo=zone)
    winter = datetime(2026, 11, 10, 12, 0, tzinfo=zone)
    assert summer.utcoffset() == timedelta(hours=-4)
    assert winter.utcoffset() == timedelta(hours=-5)


def test_system_zone_ignores_posix_tz_prefix(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TZ", ":Europe/Berlin")
    assert system_zone() == ZoneInfo("Europe/Berlin")


@pytest.mark.skipif(os.name != "posix", reason="needs symlinks")
def test_system_zone_from_localtime_link(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("TZ", raising=False)
    zone_file = tmp_path / "usr" / "share" / "zoneinfo" / "Europe" / "Berlin"
    zone_file.parent.mkdir(parents=True)
    zone_file.write_bytes(b"")
    link = tmp_path / "localtime"
    link.symlink_to(zone_file)

    zone = system_zone(timezone_file=tmp_path / "missing", localtime_link=link)

    assert zone == ZoneInfo("Europe/Berlin")


def test_system_zone_from_timezone_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("TZ", raising=False)
    timezone_file = tmp_path / "timezone"
    timezone_file.write_text("Asia/Tokyo\n", encoding="utf-8")

    zone = system_zone(timezone_file=timezone_file, localtime_link=tmp_path / "missing")

    assert zone == ZoneInfo("Asia/Tokyo")


def test_system_zone_falls_back_to_current_offset(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("TZ", "Not/A_Zone")

    zone = system_zone(timezone_file=tmp_path / "missing", localtime_link=tmp_path / "missing")

    assert not isinstance(zone, ZoneInfo)
    assert datetime.now(zone).utcoffset() is not None


def test_get_config_cache() -> None:
    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache


def test_app_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        AppConfig(environment="production", debug=True)


def test_configure_logging_accepts_both_formats() -> None:
    configure_logging(LoggingConfig(level="DEBUG", format="console"))
    configure_logging(LoggingConfig(level="WARNING", format="json"))
