"""
Domain models for bowel-movement tracking.

These models represent the core business concepts and are framework-agnostic.
They use Pydantic for validation; timestamps are epoch milliseconds so that the
persisted format and the analytics stay free of timezone handling.
"""

import math
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


MIN_BRISTOL_TYPE = 1
MAX_BRISTOL_TYPE = 7
DEFAULT_BRISTOL_TYPE = 4


def clamp_bristol_type(value: Any) -> int:
    """Coerce anything into a Bristol type in [1, 7], defaulting to 4."""
    if isinstance(value, bool) or value is None:
        return DEFAULT_BRISTOL_TYPE
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            return DEFAULT_BRISTOL_TYPE
    if isinstance(value, float):
        if not math.isfinite(value):
            return DEFAULT_BRISTOL_TYPE
        value = int(value)
    if not isinstance(value, int):
        return DEFAULT_BRISTOL_TYPE
    return max(MIN_BRISTOL_TYPE, min(MAX_BRISTOL_TYPE, value))


class Regularity(str, Enum):
    """Classification of the inter-event interval pattern."""

    REGULAR = "regular"
    IRREGULAR = "irregular"
    INSUFFICIENT_DATA = "insufficient data"


class RiskLevel(str, Enum):
    """Constipation risk tiers, from hours since the last event."""

    NO_WARNING = "no warning signs"
    POSSIBLE = "possible constipation"
    LIKELY = "likely constipated"


class Event(BaseModel):
    """A single recorded bowel movement."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(description="Epoch milliseconds (UTC instant)")
    bristol_type: int = Field(
        default=DEFAULT_BRISTOL_TYPE,
        alias="bristolType",
        description="Bristol stool scale, clamped into 1-7",
    )

    @field_validator("bristol_type", mode="before")
    @classmethod
    def clamp_type(cls, v: Any) -> int:
        return clamp_bristol_type(v)

    @property
    def occurred_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000, tz=UTC)


class ChartBucket(BaseModel):
    """Labeled calendar window with the number of events that fell in it."""

    model_config = ConfigDict(frozen=True)

    label: str
    count: int = Field(ge=0)
    start: date
    end: date


class RegularitySummary(BaseModel):
    """Interval statistics plus the regular/irregular verdict."""

    status: Regularity
    interval_count: int = Field(default=0, ge=0)
    average_hours: float | None = None
    min_hours: float | None = None
    max_hours: float | None = None

    # Display strings, e.g. "1d 2h"
    average: str | None = None
    minimum: str | None = None
    maximum: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_regular(self) -> bool:
        return self.status is Regularity.REGULAR

    def describe(self) -> str:
        if self.status is Regularity.INSUFFICIENT_DATA:
            return "Not enough data yet"
        label = "Regular pattern" if self.is_regular else "Irregular pattern"
        return f"{label} · avg {self.average} (min {self.minimum}, max {self.maximum})"


class HealthReport(BaseModel):
    """Everything the main screen shows, computed in one pass."""

    event_count: int = Field(ge=0)
    last_event: Event | None = None
    last_event_elapsed: str | None = None
    regularity: RegularitySummary
    constipation_risk: RiskLevel | None = None
    daily: list[ChartBucket]
    weekly: list[ChartBucket]
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def last_bristol_type(self) -> int | None:
        return self.last_event.bristol_type if self.last_event else None


class ReminderSettings(BaseModel):
    """Daily reminder preferences."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    hour: int = Field(default=20, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
