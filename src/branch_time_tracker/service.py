"""Wire the tracker, its collaborators and the workspace watcher together."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable, Optional

from .config import TrackerSettings
from .debounce import Debouncer
from .git import GitResolver, Resolver
from .models import ActivitySignal, ActivitySource
from .persister import BatchPersister
from .store import JsonFileStore
from .tracker import SessionTracker
from .watcher import WorkspaceWatcher

logger = logging.getLogger(__name__)


class TrackerService:
    """Own one tracker instance and everything that feeds it.

    The components need a running event loop, so they are built in
    :meth:`start` rather than in the constructor.
    """

    def __init__(
        self,
        data_path: Path,
        settings: Optional[TrackerSettings] = None,
        workspace_roots: Iterable[Path] = (),
        resolver: Optional[Resolver] = None,
        watch: bool = True,
    ) -> None:
        self.data_path = Path(data_path)
        self.settings = settings or TrackerSettings()
        self._roots = [Path(root).resolve() for root in workspace_roots]
        self._resolver = resolver or GitResolver(
            timeout=self.settings.resolver_timeout,
            default_branch=self.settings.default_branch,
        )
        self._watch = watch
        self.tracker: Optional[SessionTracker] = None
        self.debouncer: Optional[Debouncer] = None
        self.persister: Optional[BatchPersister] = None
        self._watcher: Optional[WorkspaceWatcher] = None

    @property
    def running(self) -> bool:
        return self.tracker is not None and not self.tracker.disposed

    @property
    def workspace_roots(self) -> list[Path]:
        return list(self._roots)

    @property
    def watched_roots(self) -> list[Path]:
        return self._watcher.roots if self._watcher is not None else []

    @property
    def storage_error(self) -> Optional[str]:
        if self.persister is None or self.persister.last_error is None:
            return None
        return str(self.persister.last_error)

    async def start(self) -> SessionTracker:
        if self.tracker is not None and not self.tracker.disposed:
            return self.tracker
        loop = asyncio.get_running_loop()
        persister = BatchPersister(
            JsonFileStore(self.data_path),
            loop,
            batch_size=self.settings.batch_size,
            batch_timeout=self.settings.batch_timeout,
            on_error=self._on_storage_error,
        )
        self.persister = persister
        self.tracker = SessionTracker(
            self._resolver,
            persister,
            loop,
            settings=self.settings,
            workspace_roots=self._roots,
        )
        self.debouncer = Debouncer(
            self._on_debounced, loop, window=self.settings.debounce_window
        )
        if self._watch:
            self._watcher = WorkspaceWatcher(self._roots, self.signal, loop)
            self._watcher.start()
        logger.info("Tracker started; writing to %s", self.data_path)
        return self.tracker

    async def stop(self) -> None:
        if self._watcher is not None:
            watcher, self._watcher = self._watcher, None
            # Joining the observer thread blocks; keep it off the event loop.
            await asyncio.to_thread(watcher.stop)
        if self.debouncer is not None:
            self.debouncer.cancel()
        if self.tracker is not None:
            self.tracker.dispose()
            await self.tracker.drain()
        logger.info("Tracker stopped.")

    def signal(self, source: ActivitySource, path: Optional[str] = None) -> None:
        """Feed one raw activity signal; it is debounced before reaching the tracker."""
        if self.debouncer is not None:
            self.debouncer.signal(source, path)

    def set_focus(self, focused: bool) -> None:
        if self.tracker is not None:
            self.tracker.on_focus_changed(focused)

    def set_workspace_roots(self, roots: Iterable[Path]) -> None:
        self._roots = [Path(root).resolve() for root in roots]
        if self._watcher is not None:
            self._watcher.update_roots(self._roots)
        if self.tracker is not None:
            self.tracker.on_workspace_roots_changed(self._roots)

    async def run_until_stopped(self, stop_event: asyncio.Event) -> None:
        await self.start()
        try:
            await stop_event.wait()
        finally:
            await self.stop()

    def run_forever(self) -> None:
        try:
            asyncio.run(self.run_until_stopped(asyncio.Event()))
        except KeyboardInterrupt:
            logger.info("Tracker interrupted; pending entries were flushed.")

    def _on_debounced(self, signal: ActivitySignal) -> None:
        logger.debug("Activity %s: %s", signal.source.value, signal.path)
        if self.tracker is not None:
            self.tracker.handle_signal(signal)

    def _on_storage_error(self, exc: Exception) -> None:
        pending = len(self.persister.pending) if self.persister is not None else 0
        logger.warning("Time data not saved (%s); keeping %d entries for retry.", exc, pending)
