"""Tests for the string storage backends in `stooltracker/services/storage.py`."""

from __future__ import annotations

import os
import stat
from pathlib import Path
from unittest.mock import patch

import pytest

from stooltracker.services.event_store import EventStore
from stooltracker.services.storage import InMemoryStorage, JsonFileStorage


def test_missing_file_reads_as_none(tmp_path: Path) -> None:
    assert JsonFileStorage(tmp_path / "events.json").read() is None


def test_write_creates_parent_dirs(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "dir" / "events.json"
    JsonFileStorage(path).write("[]")
    assert path.read_text(encoding="utf-8") == "[]"


def test_write_replaces_and_leaves_no_temp_file(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "events.json")
    storage.write("[1]")
    storage.write("[2]")

    assert storage.read() == "[2]"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["events.json"]


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_written_file_is_private(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    JsonFileStorage(path).write("[]")
    assert stat.S_IMODE(path.stat().st_mode) == 0o600


def test_event_store_round_trip_through_file(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    store = EventStore(JsonFileStorage(path))
    store.record(1_000, 6, now=5_000)
    store.record(3_000, 2, now=5_000)

    reloaded = EventStore(JsonFileStorage(path))
    assert [(e.timestamp, e.bristol_type) for e in reloaded.load()] == [(3_000, 2), (1_000, 6)]


def test_in_memory_storage_counts_writes() -> None:
    storage = InMemoryStorage("[]")
    assert storage.read() == "[]"

    storage.write("[1]")
    storage.write("[2]")

    assert storage.read() == "[2]"
    assert storage.writes == 2


def test_failed_write_removes_temp_file_and_keeps_old_data(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    storage = JsonFileStorage(path)
    storage.write("[1]")

    with patch("os.fsync", side_effect=OSError("disk full")):
        with pytest.raises(OSError, match="disk full"):
            storage.write("[2]")

    assert storage.read() == "[1]"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["events.json"]
