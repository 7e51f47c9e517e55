"""Batching of completed time entries before they reach the store."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Optional

from .models import TimeEntry
from .store import JsonFileStore
from .timers import CancellableTimer, Scheduler

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception], None]


class BatchPersister:
    """Owns the pending batch and the in-memory mirror of stored entries.

    A flush happens when ``batch_size`` entries are pending or when
    ``batch_timeout`` has elapsed since the first unflushed entry, whichever
    comes first. A failed write keeps the batch for the next trigger.
    """

    def __init__(
        self,
        store: JsonFileStore,
        scheduler: Scheduler,
        batch_size: int = 10,
        batch_timeout: timedelta = timedelta(seconds=5),
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._store = store
        self._batch_size = batch_size
        self._batch_timeout = batch_timeout.total_seconds()
        self._on_error = on_error
        self._history: list[TimeEntry] = store.load(quarantine=True)
        self._pending: list[TimeEntry] = []
        self._timer = CancellableTimer("batch-flush", scheduler, self._on_timeout)
        self.write_count = 0
        self.last_error: Optional[Exception] = None

    @property
    def history(self) -> list[TimeEntry]:
        """Persisted entries followed by those still waiting to be flushed."""
        return [*self._history, *self._pending]

    @property
    def pending(self) -> list[TimeEntry]:
        return list(self._pending)

    @property
    def timer_armed(self) -> bool:
        return self._timer.armed

    def submit(self, entry: TimeEntry) -> None:
        self._pending.append(entry)
        logger.debug("Queued entry %s/%s (%ss)", entry.repository, entry.branch, entry.duration)
        if len(self._pending) >= self._batch_size:
            self.flush()
        elif not self._timer.armed:
            self._timer.arm(self._batch_timeout)

    def flush(self) -> bool:
        """Write pending entries. Returns ``True`` if a write succeeded."""
        self._timer.cancel()
        if not self._pending:
            return False
        batch = list(self._pending)
        if self._store.changed_on_disk():
            # Another process (e.g. `branch-time reset`) rewrote the file.
            logger.info("Time data changed on disk; reloading before flush.")
            self._history = self._store.load(quarantine=True)
        if not self._write([*self._history, *batch]):
            return False
        self._history.extend(batch)
        del self._pending[: len(batch)]
        logger.info("Flushed %d time entries.", len(batch))
        return True

    def reset(self) -> None:
        """Forget every entry, stored or pending, and persist the empty history."""
        self._timer.cancel()
        self._pending.clear()
        self._history = []
        self._write([])

    def dispose(self) -> None:
        self.flush()

    def _on_timeout(self) -> None:
        self.flush()

    def _write(self, entries: list[TimeEntry]) -> bool:
        try:
            self._store.save(entries)
        except OSError as exc:
            self.last_error = exc
            logger.error("Failed to save time data to %s: %s", self._store.path, exc)
            if self._on_error is not None:
                self._on_error(exc)
            return False
        self.write_count += 1
        self.last_error = None
        return True
