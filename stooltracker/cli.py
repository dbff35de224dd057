"""
Terminal front-end for the tracker.

Thin glue: reads the clock and the local zone, loads the store, calls the
analytics, and renders results with rich. No analytics happen here.
"""

import argparse
import asyncio
from datetime import datetime, tzinfo
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stooltracker.config import AppConfig, configure_logging, get_config
from stooltracker.domain.models import (
    ChartBucket,
    Event,
    HealthReport,
    ReminderSettings,
    RiskLevel,
)
from stooltracker.services.analytics import build_health_report, elapsed_since
from stooltracker.services.event_store import EventStore, FutureTimestampError
from stooltracker.services.reminders import (
    ReminderPreferences,
    ReminderScheduler,
    next_trigger,
    now_millis,
)
from stooltracker.services.storage import JsonFileStorage

console = Console()

BRISTOL_DESCRIPTIONS = {
    1: "Separate hard lumps",
    2: "Lumpy, sausage-shaped",
    3: "Sausage with cracks",
    4: "Smooth, soft sausage",
    5: "Soft blobs, clear edges",
    6: "Fluffy, mushy pieces",
    7: "Watery, no solid pieces",
}


class ConsoleNotifier:
    """Shows reminders in the terminal."""

    def notify(self, title: str, text: str) -> None:
        console.print(Panel(text, title=title, style="yellow"))


def _fmt_timestamp(timestamp: int, zone: tzinfo) -> str:
    return datetime.fromtimestamp(timestamp / 1000, tz=zone).strftime("%a, %b %d, %Y %I:%M %p")


def _parse_at(value: str, zone: tzinfo) -> int:
    """ISO 8601 local or offset-aware time to epoch milliseconds."""
    try:
        dt = datetime.fromisoformat(value.strip())
    except ValueError as e:
        raise SystemExit(f"Could not parse time {value!r}. Try ISO like '2026-02-25T07:34'.") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=zone)
    return int(dt.timestamp() * 1000)


def _parse_hhmm(value: str) -> tuple[int, int]:
    parts = value.strip().split(":")
    if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
        hour, minute = int(parts[0]), int(parts[1])
        if 0 <= hour < 24 and 0 <= minute < 60:
            return hour, minute
    raise SystemExit(f"Reminder time must be HH:MM (got {value!r})")


def _open_store(config: AppConfig) -> EventStore:
    store = EventStore(JsonFileStorage(config.storage.events_path))
    store.load()
    return store


def _preferences(config: AppConfig) -> ReminderPreferences:
    return ReminderPreferences(JsonFileStorage(config.storage.reminder_path), config.reminders)


def _chart_table(title: str, buckets: list[ChartBucket]) -> Table:
    table = Table(title=title)
    table.add_column("Period", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_column("")
    for bucket in buckets:
        table.add_row(bucket.label, str(bucket.count), "█" * bucket.count)
    return table


def _risk_line(report: HealthReport) -> str:
    risk = report.constipation_risk
    if risk is None:
        return "no data yet"
    if risk is RiskLevel.NO_WARNING:
        return risk.value
    return f"{risk.value} (last {report.last_event_elapsed})"


def _render_report(report: HealthReport, zone: tzinfo) -> None:
    if report.last_event is None:
        console.print(Panel("No entries yet. Log your first one!", style="blue"))
    else:
        last = report.last_event
        console.print(
            Panel(
                f"Last: {_fmt_timestamp(last.timestamp, zone)} ({report.last_event_elapsed})\n"
                f"Stool type: {last.bristol_type} ({BRISTOL_DESCRIPTIONS[last.bristol_type]})\n"
                f"Regularity: {report.regularity.describe()}\n"
                f"Constipation: {_risk_line(report)}",
                title=f"{report.event_count} entries",
                style="blue",
            )
        )
    console.print(_chart_table("Last 7 days", report.daily))
    console.print(_chart_table("Last 8 weeks", report.weekly))


def cmd_log(args: argparse.Namespace, config: AppConfig) -> int:
    zone = config.analytics.zone()
    now = now_millis()
    timestamp = _parse_at(args.at, zone) if args.at else now

    store = _open_store(config)
    try:
        event = store.record(timestamp, args.type, now)
    except FutureTimestampError as e:
        console.print(f"❌ {e}", style="red")
        return 2

    label = "Logged past entry" if args.at else "Logged"
    console.print(
        f"✅ {label}: type {event.bristol_type} @ {_fmt_timestamp(event.timestamp, zone)}",
        style="green",
    )
    return 0


def cmd_status(args: argparse.Namespace, config: AppConfig) -> int:
    zone = config.analytics.zone()
    store = _open_store(config)
    report = build_health_report(store.events, now_millis(), zone, config.analytics)
    _render_report(report, zone)
    return 0


def cmd_history(args: argparse.Namespace, config: AppConfig) -> int:
    zone = config.analytics.zone()
    now = now_millis()
    events: list[Event] = _open_store(config).events

    if not events:
        console.print("No entries yet.")
        return 0

    table = Table(title="History (newest first)")
    table.add_column("#", justify="right")
    table.add_column("When", style="cyan")
    table.add_column("Type", style="magenta", justify="right")
    table.add_column("Elapsed", style="green")
    for index, event in enumerate(events[: args.limit], start=1):
        table.add_row(
            str(index),
            _fmt_timestamp(event.timestamp, zone),
            str(event.bristol_type),
            elapsed_since(event.timestamp, now),
        )
    console.print(table)
    return 0


def _print_reminder(settings: ReminderSettings, config: AppConfig) -> None:
    state = "on" if settings.enabled else "off"
    line = f"Daily reminder {state} at {settings.hour:02d}:{settings.minute:02d}"
    if settings.enabled:
        zone = config.analytics.zone()
        upcoming = next_trigger(now_millis(), settings.hour, settings.minute, zone)
        line += f" (next: {_fmt_timestamp(upcoming, zone)})"
    console.print(line)


def cmd_reminder(args: argparse.Namespace, config: AppConfig) -> int:
    prefs = _preferences(config)

    if args.reminder_cmd == "enable":
        settings = prefs.set_enabled(True)
    elif args.reminder_cmd == "disable":
        settings = prefs.set_enabled(False)
    elif args.reminder_cmd == "set":
        settings = prefs.set_time(*_parse_hhmm(args.time))
    elif args.reminder_cmd == "run":
        scheduler = ReminderScheduler(
            prefs.load(), ConsoleNotifier(), config.analytics.zone(), config=config.reminders
        )
        if scheduler.next_trigger() is None:
            console.print("Reminders are disabled. Enable them with 'reminder enable'.")
            return 1
        asyncio.run(scheduler.run(max_reminders=args.count))
        return 0
    else:
        settings = prefs.load()

    _print_reminder(settings, config)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="stooltracker", description="Bowel-movement tracker")
    p.add_argument("--data-dir", default=None, help="Directory for data files (overrides env)")

    sub = p.add_subparsers(dest="cmd", required=True)

    log = sub.add_parser("log", help="Record a bowel movement")
    log.add_argument("--type", type=int, default=4, help="Bristol stool type 1-7 (default 4)")
    log.add_argument("--at", default=None, help="Past time, ISO 8601 (default: now)")
    log.set_defaults(func=cmd_log)

    sub.add_parser("status", help="Show last entry, patterns and charts").set_defaults(
        func=cmd_status
    )

    history = sub.add_parser("history", help="List entries, newest first")
    history.add_argument("--limit", type=int, default=50)
    history.set_defaults(func=cmd_history)

    reminder = sub.add_parser("reminder", help="Daily reminder settings")
    reminder_sub = reminder.add_subparsers(dest="reminder_cmd", required=True)
    reminder_sub.add_parser("show", help="Show reminder settings")
    reminder_sub.add_parser("enable", help="Turn the daily reminder on")
    reminder_sub.add_parser("disable", help="Turn the daily reminder off")
    reminder_set = reminder_sub.add_parser("set", help="Change the reminder time")
    reminder_set.add_argument("time", help="Local time as HH:MM")
    reminder_run = reminder_sub.add_parser("run", help="Stay in the foreground and remind daily")
    reminder_run.add_argument("--count", type=int, default=None, help="Stop after N reminders")
    reminder.set_defaults(func=cmd_reminder)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = get_config()
    if args.data_dir:
        storage = config.storage.model_copy(update={"data_dir": Path(args.data_dir).expanduser()})
        config = config.model_copy(update={"storage": storage})

    configure_logging(config.logging)
    return args.func(args, config)


if __name__ == "__main__":
    raise SystemExit(main())
