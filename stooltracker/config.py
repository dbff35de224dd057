"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Health thresholds are configuration, not constants buried in the analytics
"""

import logging
import os
import sys
from datetime import datetime, tzinfo
from functools import lru_cache
from pathlib import Path
from typing import Literal, cast
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

# Load environment variables from .env file
load_dotenv()

logger = structlog.get_logger(__name__)

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class StorageConfig(BaseModel):
    """Where the history and the reminder preferences are kept."""

    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config" / "stooltracker",
        description="Directory holding the data files",
    )
    events_file: str = Field(default="events.json", description="Persisted event history")
    reminder_file: str = Field(default="reminder.json", description="Reminder preferences")

    @property
    def events_path(self) -> Path:
        return self.data_dir / self.events_file

    @property
    def reminder_path(self) -> Path:
        return self.data_dir / self.reminder_file


class AnalyticsConfig(BaseModel):
    """Thresholds and chart sizes for the analytics engine."""

    healthy_interval_min_hours: float = Field(
        default=12.0, ge=0.0, description="Shortest gap still counted as regular"
    )
    healthy_interval_max_hours: float = Field(
        default=48.0, gt=0.0, description="Longest gap still counted as regular"
    )
    possible_constipation_hours: float = Field(
        default=48.0, gt=0.0, description="Hours since last event for 'possible constipation'"
    )
    likely_constipation_hours: float = Field(
        default=72.0, gt=0.0, description="Hours since last event for 'likely constipated'"
    )
    daily_buckets: int = Field(default=7, gt=0, le=31, description="Days in the daily chart")
    weekly_buckets: int = Field(default=8, gt=0, le=52, description="Weeks in the weekly chart")
    timezone: str | None = Field(
        default=None, description="IANA zone for calendar bucketing; system zone when unset"
    )

    @field_validator("timezone")
    def validate_timezone(cls, v):
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v!r}") from e
        return v

    @model_validator(mode="after")
    def thresholds_ordered(self) -> "AnalyticsConfig":
        if self.healthy_interval_min_hours >= self.healthy_interval_max_hours:
            raise ValueError("healthy interval minimum must be below the maximum")
        if self.possible_constipation_hours >= self.likely_constipation_hours:
            raise ValueError("'possible' constipation threshold must be below 'likely'")
        return self

    def zone(self) -> tzinfo:
        """Zone used to decide which local calendar day an event belongs to."""
        if self.timezone:
            return ZoneInfo(self.timezone)
        return system_zone()


SYSTEM_TIMEZONE_FILE = Path("/etc/timezone")
SYSTEM_LOCALTIME_LINK = Path("/etc/localtime")


def _named_zone(name: str) -> ZoneInfo | None:
    name = name.strip().lstrip(":")
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def zone_from_localtime_link(link: Path) -> ZoneInfo | None:
    """IANA zone named by a ``.../zoneinfo/<Area>/<City>`` symlink, if any."""
    try:
        target = link.resolve(strict=True)
    except OSError:
        return None
    parts = target.parts
    if "zoneinfo" not in parts:
        return None
    key = "/".join(parts[len(parts) - parts[::-1].index("zoneinfo") :])
    return _named_zone(key)


def system_zone(
    timezone_file: Path = SYSTEM_TIMEZONE_FILE, localtime_link: Path = SYSTEM_LOCALTIME_LINK
) -> tzinfo:
    """
    The machine's local zone with its daylight-saving rules.

    Resolution order: ``TZ``, the ``/etc/localtime`` link, ``/etc/timezone``.
    Only when none names a known zone does it fall back to the current UTC
    offset, which is wrong on the far side of a DST change.
    """
    tz_env = os.getenv("TZ")
    if tz_env:
        zone = _named_zone(tz_env)
        if zone is not None:
            return zone

    zone = zone_from_localtime_link(localtime_link)
    if zone is not None:
        return zone

    try:
        zone = _named_zone(timezone_file.read_text(encoding="utf-8"))
    except OSError:
        zone = None
    if zone is not None:
        return zone

    logger.warning("system_zone_unresolved", hint="set STOOLTRACKER_TIMEZONE")
    return cast(tzinfo, datetime.now().astimezone().tzinfo)


class ReminderConfig(BaseModel):
    """Defaults for the daily reminder before the user picks a time."""

    default_hour: int = Field(default=20, ge=0, le=23, description="Default reminder hour")
    default_minute: int = Field(default=0, ge=0, le=59, description="Default reminder minute")
    title: str = Field(default="Time for a check-in", description="Notification title")
    text: str = Field(
        default="Did you have a bowel movement today? Log it in the tracker.",
        description="Notification body",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(default="INFO", description="Logging level")
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    storage: StorageConfig = Field(default_factory=StorageConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    reminders: ReminderConfig = Field(default_factory=ReminderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> LogLevel:
        v = val.strip().upper()
        return cast(
            LogLevel, v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO"
        )

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "production"))
    debug = environment == "development"

    storage_config = StorageConfig()
    data_dir = os.getenv("STOOLTRACKER_DATA_DIR")
    if data_dir:
        storage_config = StorageConfig(data_dir=Path(data_dir).expanduser())

    analytics_config = AnalyticsConfig(
        healthy_interval_min_hours=float(os.getenv("HEALTHY_INTERVAL_MIN_HOURS", "12.0")),
        healthy_interval_max_hours=float(os.getenv("HEALTHY_INTERVAL_MAX_HOURS", "48.0")),
        possible_constipation_hours=float(os.getenv("POSSIBLE_CONSTIPATION_HOURS", "48.0")),
        likely_constipation_hours=float(os.getenv("LIKELY_CONSTIPATION_HOURS", "72.0")),
        timezone=os.getenv("STOOLTRACKER_TIMEZONE") or None,
    )

    reminder_config = ReminderConfig(
        default_hour=int(os.getenv("REMINDER_DEFAULT_HOUR", "20")),
        default_minute=int(os.getenv("REMINDER_DEFAULT_MINUTE", "0")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "WARNING")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        storage=storage_config,
        analytics=analytics_config,
        reminders=reminder_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig) -> None:
    """Apply level and renderer choice to stdlib logging and structlog."""
    logging.basicConfig(
        format="%(message)s", stream=sys.stderr, level=getattr(logging, config.level), force=True
    )

    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
