"""
Analytics over the event history.

Every function here is pure: the current instant (epoch milliseconds) and the
local zone are explicit arguments, nothing reads the ambient clock. All of them
are total over their inputs; an empty history gives "no data" style results.

Interval arithmetic works on whole minutes, like the display it feeds: a gap
of 23h59m59s counts as 1439 minutes.
"""

import math
from datetime import date, datetime, timedelta, tzinfo

import structlog

from stooltracker.config import AnalyticsConfig
from stooltracker.domain.models import (
    ChartBucket,
    Event,
    HealthReport,
    Regularity,
    RegularitySummary,
    RiskLevel,
)

logger = structlog.get_logger(__name__)

MILLIS_PER_MINUTE = 60_000
MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR

HEALTHY_INTERVAL_MIN_HOURS = 12.0
HEALTHY_INTERVAL_MAX_HOURS = 48.0
POSSIBLE_CONSTIPATION_HOURS = 48.0
LIKELY_CONSTIPATION_HOURS = 72.0

DAILY_BUCKETS = 7
WEEKLY_BUCKETS = 8


def _whole_minutes(millis: int) -> int:
    return millis // MILLIS_PER_MINUTE


def elapsed_since(timestamp: int, now: int) -> str:
    """Human-readable age of ``timestamp``, e.g. "1 h 30 min ago"."""
    minutes = _whole_minutes(max(now - timestamp, 0))

    if minutes < 1:
        return "just now"
    if minutes < MINUTES_PER_HOUR:
        return f"{minutes} min ago"
    if minutes < MINUTES_PER_DAY:
        hours, remainder_minutes = divmod(minutes, MINUTES_PER_HOUR)
        if remainder_minutes == 0:
            return f"{hours} h ago"
        return f"{hours} h {remainder_minutes} min ago"

    days, rest = divmod(minutes, MINUTES_PER_DAY)
    remainder_hours = rest // MINUTES_PER_HOUR
    if remainder_hours == 0:
        return f"{days} d ago"
    return f"{days} d {remainder_hours} h ago"


def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer; exact halves go away from zero (2.5 -> 3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def format_hours(hours: float) -> str:
    """Compact duration: "23h", "1d", "1d 1h"."""
    rounded = round_half_away_from_zero(hours)
    if rounded < 24:
        return f"{rounded}h"

    days, remainder = divmod(rounded, 24)
    if remainder == 0:
        return f"{days}d"
    return f"{days}d {remainder}h"


def interval_hours(history: list[Event]) -> list[float]:
    """Gaps between consecutive events in hours, oldest gap first."""
    ascending = sorted(e.timestamp for e in history)
    return [
        _whole_minutes(later - earlier) / MINUTES_PER_HOUR
        for earlier, later in zip(ascending, ascending[1:])
    ]


def regularity_summary(
    history: list[Event],
    healthy_min_hours: float = HEALTHY_INTERVAL_MIN_HOURS,
    healthy_max_hours: float = HEALTHY_INTERVAL_MAX_HOURS,
) -> RegularitySummary:
    """
    Classify the interval pattern.

    Regular only when every gap lies within the healthy range (inclusive).
    Fewer than two events cannot produce a gap and report insufficient data.
    """
    gaps = interval_hours(history)
    if not gaps:
        return RegularitySummary(status=Regularity.INSUFFICIENT_DATA)

    average = sum(gaps) / len(gaps)
    shortest = min(gaps)
    longest = max(gaps)
    all_healthy = all(healthy_min_hours <= gap <= healthy_max_hours for gap in gaps)

    return RegularitySummary(
        status=Regularity.REGULAR if all_healthy else Regularity.IRREGULAR,
        interval_count=len(gaps),
        average_hours=average,
        min_hours=shortest,
        max_hours=longest,
        average=format_hours(average),
        minimum=format_hours(shortest),
        maximum=format_hours(longest),
    )


def hours_since(timestamp: int, now: int) -> float:
    return _whole_minutes(now - timestamp) / MINUTES_PER_HOUR


def constipation_risk(
    last_timestamp: int,
    now: int,
    possible_hours: float = POSSIBLE_CONSTIPATION_HOURS,
    likely_hours: float = LIKELY_CONSTIPATION_HOURS,
) -> RiskLevel:
    """Threshold tiers on hours since the last event; the stricter tier wins ties."""
    elapsed = hours_since(last_timestamp, now)
    if elapsed >= likely_hours:
        return RiskLevel.LIKELY
    if elapsed >= possible_hours:
        return RiskLevel.POSSIBLE
    return RiskLevel.NO_WARNING


def local_date(timestamp: int, zone: tzinfo) -> date | None:
    """Calendar date of ``timestamp`` in ``zone``; None if it is out of datetime range."""
    try:
        return datetime.fromtimestamp(timestamp / 1000, tz=zone).date()
    except (OverflowError, OSError, ValueError):
        return None


def _event_dates(history: list[Event], zone: tzinfo) -> list[date]:
    dates = [local_date(e.timestamp, zone) for e in history]
    out_of_range = dates.count(None)
    if out_of_range:
        logger.warning("events_outside_datetime_range", count=out_of_range)
    return [d for d in dates if d is not None]


def _today(now: int, zone: tzinfo) -> date:
    # Bucketing is only defined for a representable "now".
    today = local_date(now, zone)
    if today is None:
        raise ValueError(f"now={now} is outside the supported datetime range")
    return today


def bucket_daily(
    history: list[Event], now: int, zone: tzinfo, days: int = DAILY_BUCKETS
) -> list[ChartBucket]:
    """Per-day counts for the last ``days`` local calendar days, oldest first."""
    today = _today(now, zone)
    event_dates = _event_dates(history, zone)

    buckets = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        buckets.append(
            ChartBucket(
                label=day.strftime("%a"),
                count=sum(1 for d in event_dates if d == day),
                start=day,
                end=day,
            )
        )
    return buckets


def week_start(day: date) -> date:
    """Monday on or before ``day``."""
    return day - timedelta(days=day.weekday())


def bucket_weekly(
    history: list[Event], now: int, zone: tzinfo, weeks: int = WEEKLY_BUCKETS
) -> list[ChartBucket]:
    """Per-week counts for the last ``weeks`` Monday-starting weeks, oldest first."""
    this_week = week_start(_today(now, zone))
    event_dates = _event_dates(history, zone)

    buckets = []
    for offset in range(weeks - 1, -1, -1):
        start = this_week - timedelta(weeks=offset)
        end = start + timedelta(days=6)
        buckets.append(
            ChartBucket(
                label=f"week of {start.strftime('%b')} {start.day}",
                count=sum(1 for d in event_dates if start <= d <= end),
                start=start,
                end=end,
            )
        )
    return buckets


def build_health_report(
    history: list[Event],
    now: int,
    zone: tzinfo,
    config: AnalyticsConfig | None = None,
) -> HealthReport:
    """Compute everything the status view shows in a single pass."""
    config = config or AnalyticsConfig()

    last_event = max(history, key=lambda e: e.timestamp) if history else None

    report = HealthReport(
        event_count=len(history),
        last_event=last_event,
        last_event_elapsed=elapsed_since(last_event.timestamp, now) if last_event else None,
        regularity=regularity_summary(
            history,
            healthy_min_hours=config.healthy_interval_min_hours,
            healthy_max_hours=config.healthy_interval_max_hours,
        ),
        constipation_risk=(
            constipation_risk(
                last_event.timestamp,
                now,
                possible_hours=config.possible_constipation_hours,
                likely_hours=config.likely_constipation_hours,
            )
            if last_event
            else None
        ),
        daily=bucket_daily(history, now, zone, days=config.daily_buckets),
        weekly=bucket_weekly(history, now, zone, weeks=config.weekly_buckets),
    )

    logger.debug(
        "health_report_built",
        event_count=report.event_count,
        regularity=report.regularity.status.value,
        risk=report.constipation_risk.value if report.constipation_risk else None,
    )
    return report
