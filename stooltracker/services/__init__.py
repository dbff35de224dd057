"""
Core services for the application.

This package contains the event store, the analytics engine, the storage
backends and the daily reminder.
"""

from .analytics import (
    bucket_daily,
    bucket_weekly,
    build_health_report,
    constipation_risk,
    elapsed_since,
    format_hours,
    regularity_summary,
)
from .event_store import (
    CorruptHistoryError,
    EventStore,
    FutureTimestampError,
    HistoryStorage,
    Result,
    add_event,
    load_history,
    parse_history,
    serialize_history,
)
from .reminders import Notifier, ReminderPreferences, ReminderScheduler, next_trigger
from .storage import InMemoryStorage, JsonFileStorage

__all__ = [
    "EventStore",
    "HistoryStorage",
    "Result",
    "CorruptHistoryError",
    "FutureTimestampError",
    "load_history",
    "parse_history",
    "add_event",
    "serialize_history",
    "elapsed_since",
    "regularity_summary",
    "constipation_risk",
    "format_hours",
    "bucket_daily",
    "bucket_weekly",
    "build_health_report",
    "Notifier",
    "ReminderPreferences",
    "ReminderScheduler",
    "next_trigger",
    "JsonFileStorage",
    "InMemoryStorage",
]
