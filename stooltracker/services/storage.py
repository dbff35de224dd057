"""
String storage backends satisfying the HistoryStorage protocol.

The store only ever hands over complete documents, so each write replaces the
whole file through a temp file and os.replace.
"""

import os
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)


class JsonFileStorage:
    """One JSON document in one file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.logger = logger.bind(component="json_file_storage", path=str(self.path))

    def read(self) -> str | None:
        """Raw file contents, or None when the file does not exist yet."""
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, data: str) -> None:
        """
        Atomic-ish save:
        - write to temp file in same directory
        - flush + fsync
        - os.replace to target
        - chmod 0600 best-effort
        - temp file removed if any step before the replace fails
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")

        try:
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, self.path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        try:
            os.chmod(self.path, 0o600)
        except OSError:
            self.logger.debug("chmod_failed")

        self.logger.debug("storage_written", size=len(data))


class InMemoryStorage:
    """Keeps the document in memory; for tests and throwaway sessions."""

    def __init__(self, initial: str | None = None) -> None:
        self.data = initial
        self.writes = 0

    def read(self) -> str | None:
        return self.data

    def write(self, data: str) -> None:
        self.data = data
        self.writes += 1
