"""
Daily reminder: preferences, trigger computation and the async reminder loop.

The loop stands in for a platform alarm: it sleeps until the next local
wall-clock reminder time, hands a message to a Notifier, and repeats. Showing
the message is the notifier's business.
"""

import asyncio
import json
import time
from collections.abc import Callable
from datetime import datetime, time as wall_time, timedelta, tzinfo
from typing import Protocol

import structlog
from pydantic import ValidationError

from stooltracker.config import ReminderConfig
from stooltracker.domain.models import ReminderSettings
from stooltracker.services.event_store import HistoryStorage

logger = structlog.get_logger(__name__)


def now_millis() -> int:
    return time.time_ns() // 1_000_000


def load_reminder_settings(
    raw: str | None, defaults: ReminderSettings | None = None
) -> ReminderSettings:
    """Parse stored preferences; anything unreadable falls back to ``defaults``."""
    defaults = defaults or ReminderSettings()
    if raw is None or not raw.strip():
        return defaults

    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return ReminderSettings(**{**defaults.model_dump(), **data})
    except (ValueError, TypeError, ValidationError) as e:
        logger.warning("reminder_settings_corrupt", error=str(e))
        return defaults


def serialize_reminder_settings(settings: ReminderSettings) -> str:
    return settings.model_dump_json()


def next_trigger(now: int, hour: int, minute: int, zone: tzinfo) -> int:
    """
    Next local ``hour:minute`` strictly after ``now``, as epoch milliseconds.

    Today's slot if it is still ahead, otherwise tomorrow's.
    """
    today = datetime.fromtimestamp(now / 1000, tz=zone).date()
    slot = wall_time(hour, minute)
    candidate = datetime.combine(today, slot, tzinfo=zone)
    if candidate.timestamp() * 1000 <= now:
        candidate = datetime.combine(today + timedelta(days=1), slot, tzinfo=zone)
    return int(candidate.timestamp() * 1000)


class ReminderPreferences:
    """Reminder settings persisted through a string storage collaborator."""

    def __init__(self, storage: HistoryStorage, config: ReminderConfig | None = None) -> None:
        config = config or ReminderConfig()
        self.storage = storage
        self.defaults = ReminderSettings(hour=config.default_hour, minute=config.default_minute)
        self.logger = logger.bind(component="reminder_preferences")

    def load(self) -> ReminderSettings:
        return load_reminder_settings(self.storage.read(), self.defaults)

    def save(self, settings: ReminderSettings) -> ReminderSettings:
        self.storage.write(serialize_reminder_settings(settings))
        self.logger.info(
            "reminder_settings_saved",
            enabled=settings.enabled,
            hour=settings.hour,
            minute=settings.minute,
        )
        return settings

    def set_enabled(self, enabled: bool) -> ReminderSettings:
        return self.save(self.load().model_copy(update={"enabled": enabled}))

    def set_time(self, hour: int, minute: int) -> ReminderSettings:
        current = self.load()
        return self.save(ReminderSettings(enabled=current.enabled, hour=hour, minute=minute))


class Notifier(Protocol):
    """Delivers a reminder to the user."""

    def notify(self, title: str, text: str) -> None: ...


class ReminderScheduler:
    """
    Fires the daily reminder at the configured local time.

    Design principles:
    - Disabled settings mean nothing is scheduled at all
    - The clock is injected, so tests never wait on real time
    - Each trigger is recomputed from the clock after the previous one fires
    """

    def __init__(
        self,
        settings: ReminderSettings,
        notifier: Notifier,
        zone: tzinfo,
        clock: Callable[[], int] = now_millis,
        config: ReminderConfig | None = None,
    ) -> None:
        self.settings = settings
        self.notifier = notifier
        self.zone = zone
        self.clock = clock
        self.config = config or ReminderConfig()
        self.logger = logger.bind(component="reminder_scheduler")

    def next_trigger(self) -> int | None:
        if not self.settings.enabled:
            return None
        return next_trigger(self.clock(), self.settings.hour, self.settings.minute, self.zone)

    async def run(self, max_reminders: int | None = None) -> int:
        """
        Sleep until each reminder time and notify.

        Returns:
            int: number of reminders delivered (0 when reminders are disabled).
        """
        if not self.settings.enabled:
            self.logger.info("reminders_disabled")
            return 0

        delivered = 0
        while max_reminders is None or delivered < max_reminders:
            now = self.clock()
            trigger_at = next_trigger(now, self.settings.hour, self.settings.minute, self.zone)
            delay_seconds = (trigger_at - now) / 1000

            self.logger.info(
                "reminder_scheduled", trigger_at=trigger_at, delay_seconds=round(delay_seconds, 1)
            )
            await asyncio.sleep(delay_seconds)

            self.notifier.notify(self.config.title, self.config.text)
            delivered += 1
            self.logger.info("reminder_delivered", count=delivered)

        return delivered
