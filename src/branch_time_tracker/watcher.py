"""Filesystem watcher that turns workspace file events into activity signals."""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path, PurePath
from typing import Callable, Iterable, Optional

from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .models import ActivitySource

logger = logging.getLogger(__name__)

IGNORED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "node_modules",
        "__pycache__",
        ".venv",
        ".mypy_cache",
        ".pytest_cache",
        ".tox",
    }
)

_SOURCES = {
    EVENT_TYPE_MODIFIED: ActivitySource.DOCUMENT_CHANGED,
    EVENT_TYPE_CLOSED: ActivitySource.DOCUMENT_SAVED,
    EVENT_TYPE_MOVED: ActivitySource.DOCUMENT_SAVED,
    EVENT_TYPE_CREATED: ActivitySource.DOCUMENT_OPENED,
}

SignalCallback = Callable[[ActivitySource, Optional[str]], None]


def classify_event(event: FileSystemEvent) -> Optional[tuple[ActivitySource, str]]:
    """Map a watchdog event to an activity source, or ``None`` to ignore it."""
    if event.is_directory:
        return None
    source = _SOURCES.get(event.event_type)
    if source is None:
        return None
    # Editors that save via rename report the real file as the move target.
    raw_path = event.dest_path if event.event_type == EVENT_TYPE_MOVED else event.src_path
    path = os.fsdecode(raw_path)
    if not path or any(part in IGNORED_DIRS for part in PurePath(path).parts):
        return None
    return source, path


class _ActivityEventHandler(FileSystemEventHandler):
    def __init__(self, loop: asyncio.AbstractEventLoop, callback: SignalCallback) -> None:
        self._loop = loop
        self._callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        classified = classify_event(event)
        if classified is None:
            return
        source, path = classified
        # Called on the observer thread; hand over to the event loop.
        try:
            self._loop.call_soon_threadsafe(self._callback, source, path)
        except RuntimeError:
            logger.debug("Event loop closed; dropping %s for %s", source.value, path)


class WorkspaceWatcher:
    """Watch workspace roots with a watchdog observer running in its own thread."""

    def __init__(
        self,
        roots: Iterable[Path],
        callback: SignalCallback,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._roots = [Path(root) for root in roots]
        self._handler = _ActivityEventHandler(loop, callback)
        self._observer: Optional[Observer] = None

    @property
    def roots(self) -> list[Path]:
        return list(self._roots)

    def start(self) -> None:
        if self._observer is not None:
            return
        self._observer = Observer()
        self._schedule_roots()
        self._observer.start()
        logger.info("Watching %d workspace folder(s).", len(self._roots))

    def stop(self) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()
        observer.join(timeout=10)
        logger.info("Workspace watcher stopped.")

    def update_roots(self, roots: Iterable[Path]) -> None:
        self._roots = [Path(root) for root in roots]
        if self._observer is not None:
            self._observer.unschedule_all()
            self._schedule_roots()

    def _schedule_roots(self) -> None:
        assert self._observer is not None
        for root in self._roots:
            if not root.is_dir():
                logger.warning("Skipping missing workspace folder %s", root)
                continue
            self._observer.schedule(self._handler, str(root), recursive=True)
