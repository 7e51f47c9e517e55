"""JSON file storage for the full time entry history."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from .models import TimeEntry

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Flat JSON array of entries, rewritten in full on every save.

    Writes go to a sibling temp file which then replaces the target, so a
    reader never observes a partially written history.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._synced: Optional[tuple[int, int]] = None

    def load(self, quarantine: bool = False) -> list[TimeEntry]:
        """Read the stored history; missing or corrupt files yield ``[]``.

        With ``quarantine`` an unreadable file is moved aside so that the
        next save does not overwrite it. Read-only callers leave it alone.
        """
        self._synced = self._signature()
        if self._synced is None:
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Failed to read time data from %s", self.path, exc_info=True)
            if quarantine:
                self._quarantine()
            return []
        if not isinstance(payload, list):
            logger.warning("Time data in %s is not a list; starting empty.", self.path)
            if quarantine:
                self._quarantine()
            return []

        entries: list[TimeEntry] = []
        for record in payload:
            try:
                entries.append(TimeEntry.from_dict(record))
            except ValueError:
                logger.warning("Skipping malformed time entry: %r", record)
        logger.info("Loaded %d time entries from %s", len(entries), self.path)
        return entries

    def save(self, entries: Iterable[TimeEntry]) -> None:
        """Atomically replace the stored history. Raises ``OSError`` on failure."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = json.dumps([entry.to_dict() for entry in entries], indent=2)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        self._synced = self._signature()

    def changed_on_disk(self) -> bool:
        """Whether another writer touched the file since our last load or save."""
        return self._signature() != self._synced

    def _signature(self) -> Optional[tuple[int, int]]:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def _quarantine(self) -> None:
        # Keep the unreadable file around instead of overwriting it on the next flush.
        target = self.path.with_name(self.path.name + ".corrupt")
        try:
            os.replace(self.path, target)
        except OSError:
            logger.exception("Could not move corrupt time data aside: %s", self.path)
        else:
            logger.warning("Moved unreadable time data to %s", target)
        self._synced = self._signature()
