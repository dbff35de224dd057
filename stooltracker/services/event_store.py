"""
Event store: the persisted, timestamp-ordered history of bowel movements.

Key patterns:
- Pure parse / add / serialize functions over plain lists of Events
- Explicit Result type for expected failures (corrupt persisted data)
- Protocol-based storage collaborator, so any string store can back the history
- History is kept sorted newest first after every load, add and save
"""

import json
import math
from typing import Any, Generic, Protocol, TypeVar

import structlog

from stooltracker.domain.models import DEFAULT_BRISTOL_TYPE, Event

logger = structlog.get_logger(__name__)

JSON_KEY_TIMESTAMP = "timestamp"
JSON_KEY_BRISTOL_TYPE = "bristolType"

ValueT = TypeVar("ValueT")
ErrorT = TypeVar("ErrorT", bound=BaseException)


class CorruptHistoryError(ValueError):
    """Persisted history could not be read as a JSON array."""


class FutureTimestampError(ValueError):
    """A past entry was given a timestamp later than now."""


class Result(Generic[ValueT, ErrorT]):
    """
    Explicit error handling without exceptions for expected failures.

    Holds exactly one of a value or an error. An empty list is a valid value.
    """

    def __init__(self, value: ValueT | None = None, error: ErrorT | None = None) -> None:
        if value is not None and error is not None:
            raise ValueError("Result cannot have both value and error")
        if value is None and error is None:
            raise ValueError("Result must have either value or error")
        self._value: ValueT | None = value
        self._error: ErrorT | None = error

    @classmethod
    def ok(cls, value: ValueT) -> "Result[ValueT, ErrorT]":
        return cls(value=value)

    @classmethod
    def err(cls, error: ErrorT) -> "Result[ValueT, ErrorT]":
        return cls(error=error)

    def is_ok(self) -> bool:
        return self._error is None

    def is_err(self) -> bool:
        return self._error is not None

    def unwrap(self) -> ValueT:
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore

    def unwrap_or(self, default: ValueT) -> ValueT:
        return self._value if self._error is None else default  # type: ignore

    def unwrap_err(self) -> ErrorT:
        if self._error is None:
            raise ValueError("Called unwrap_err() on an Ok value")
        return self._error


class HistoryStorage(Protocol):
    """
    Minimal string store the history is persisted through.

    Implementations: JSON file, in-memory; any key-value backend will do.
    """

    def read(self) -> str | None: ...

    def write(self, data: str) -> None: ...


def sort_history(history: list[Event]) -> list[Event]:
    """Return a new list ordered newest first."""
    return sorted(history, key=lambda e: e.timestamp, reverse=True)


def _as_timestamp(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return None


def _parse_entry(entry: Any) -> Event | None:
    """Normalize one array element, or None when it has to be skipped."""
    if isinstance(entry, dict):
        timestamp = _as_timestamp(entry.get(JSON_KEY_TIMESTAMP))
        if timestamp is None:
            return None
        return Event(
            timestamp=timestamp,
            bristol_type=entry.get(JSON_KEY_BRISTOL_TYPE, DEFAULT_BRISTOL_TYPE),
        )

    # Legacy format: bare timestamp, no stool type
    timestamp = _as_timestamp(entry)
    if timestamp is None:
        return None
    return Event(timestamp=timestamp, bristol_type=DEFAULT_BRISTOL_TYPE)


def parse_history(raw: str | None) -> Result[list[Event], CorruptHistoryError]:
    """
    Parse the persisted representation into a newest-first history.

    Malformed elements are skipped one by one; only a container that is not a
    JSON array is reported as an error.
    """
    if raw is None or not raw.strip():
        return Result.ok([])

    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, RecursionError) as e:
        return Result.err(CorruptHistoryError(f"History is not valid JSON: {e}"))

    if not isinstance(data, list):
        return Result.err(
            CorruptHistoryError(f"History must be a JSON array, got {type(data).__name__}")
        )

    events: list[Event] = []
    skipped = 0
    for entry in data:
        event = _parse_entry(entry)
        if event is None:
            skipped += 1
            continue
        events.append(event)

    if skipped:
        logger.warning("history_entries_skipped", skipped=skipped, kept=len(events))

    return Result.ok(sort_history(events))


def load_history(raw: str | None) -> list[Event]:
    """Best-effort load: corrupt data yields an empty history, never an exception."""
    result = parse_history(raw)
    if result.is_err():
        logger.warning("history_corrupt", error=str(result.unwrap_err()))
    return result.unwrap_or([])


def add_event(history: list[Event], timestamp: int, bristol_type: Any) -> list[Event]:
    """Return a new newest-first history with one more event. Storage is untouched."""
    event = Event(timestamp=timestamp, bristol_type=bristol_type)
    return sort_history([*history, event])


def serialize_history(history: list[Event]) -> str:
    """Canonical persisted form: object entries, newest first."""
    return json.dumps([e.model_dump(by_alias=True) for e in sort_history(history)])


class EventStore:
    """
    Owns the in-memory history and keeps it in step with a storage collaborator.

    Design principles:
    - Corrupt data is discarded and the storage reset, never raised
    - Mutations are not persisted implicitly; callers save after each one
    - Readers get copies, so the store's list is never shared
    """

    def __init__(self, storage: HistoryStorage) -> None:
        self.storage = storage
        self.logger = logger.bind(component="event_store")
        self._history: list[Event] = []

    @property
    def events(self) -> list[Event]:
        return list(self._history)

    @property
    def last_event(self) -> Event | None:
        return self._history[0] if self._history else None

    def __len__(self) -> int:
        return len(self._history)

    def load(self) -> list[Event]:
        """Replace the in-memory history with what storage holds."""
        result = parse_history(self.storage.read())

        if result.is_err():
            self.logger.warning("history_corrupt_reset", error=str(result.unwrap_err()))
            self._history = []
            self.storage.write(serialize_history(self._history))
        else:
            self._history = result.unwrap()
            self.logger.info("history_loaded", count=len(self._history))

        return self.events

    def add(self, timestamp: int, bristol_type: Any) -> Event:
        """Add one event; returns the stored (clamped) Event."""
        event = Event(timestamp=timestamp, bristol_type=bristol_type)
        self._history = sort_history([*self._history, event])
        self.logger.info("event_added", timestamp=timestamp, bristol_type=event.bristol_type)
        return event

    def save(self) -> None:
        self._history = sort_history(self._history)
        self.storage.write(serialize_history(self._history))
        self.logger.debug("history_saved", count=len(self._history))

    def record(self, timestamp: int, bristol_type: Any, now: int) -> Event:
        """
        Add and persist an event entered by the user.

        The in-memory history only changes once the write has succeeded.

        Raises:
            FutureTimestampError: if the timestamp lies after ``now``.
            OSError: or whatever else the storage raises; nothing is added then.
        """
        if timestamp > now:
            raise FutureTimestampError("Cannot log an entry in the future")
        event = Event(timestamp=timestamp, bristol_type=bristol_type)
        history = sort_history([*self._history, event])
        self.storage.write(serialize_history(history))
        self._history = history
        self.logger.info("event_recorded", timestamp=timestamp, bristol_type=event.bristol_type)
        return event
