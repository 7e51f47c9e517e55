"""The activity-driven session tracker.

The tracker is either idle or tracking one (repository, branch) attribution.
Activity resolves the attribution of the workspace it happened in: the same
attribution extends the session, a different one (or none) closes it and
opens the next one at the same instant. Sessions end after a gap of
``inactivity_threshold`` without activity, on focus loss, or on dispose.

Everything runs on a single event loop. The only suspension point is the
resolver query, so state needed to decide a transition is captured before the
``await`` and re-checked after it.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Coroutine, Iterable, Optional

from .config import TrackerSettings
from .git import Resolver
from .models import ActiveSession, ActivitySignal, Attribution, TimeEntry
from .persister import BatchPersister
from .reporting import all_repositories, format_status, stats_for_repository
from .timers import CancellableTimer, Clock, Scheduler, system_clock

logger = logging.getLogger(__name__)


class SessionTracker:
    def __init__(
        self,
        resolver: Resolver,
        persister: BatchPersister,
        scheduler: Scheduler,
        settings: Optional[TrackerSettings] = None,
        clock: Clock = system_clock,
        workspace_roots: Iterable[Path] = (),
    ) -> None:
        self.settings = settings or TrackerSettings()
        self._resolver = resolver
        self._persister = persister
        self._clock = clock
        self._roots = [Path(root) for root in workspace_roots]
        self._current_root: Optional[Path] = None
        self._session: Optional[ActiveSession] = None
        # Bumped on every start/stop so in-flight activity can detect it is stale.
        self._version = 0
        self._disposed = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._inactivity_timer = CancellableTimer(
            "inactivity", scheduler, self._on_inactivity
        )
        self._initial_check_timer = CancellableTimer(
            "initial-check", scheduler, self._on_initial_check
        )
        self._schedule_initial_check()

    @property
    def active_session(self) -> Optional[ActiveSession]:
        return self._session

    @property
    def is_tracking(self) -> bool:
        return self._session is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def inactivity_timer_armed(self) -> bool:
        return self._inactivity_timer.armed

    @property
    def workspace_roots(self) -> list[Path]:
        return list(self._roots)

    # Inbound events -----------------------------------------------------

    def handle_signal(self, signal: ActivitySignal) -> None:
        """Entry point for debounced signals; runs the activity transition as a task."""
        self._spawn(self.on_activity(signal.path))

    async def on_activity(self, path: Optional[str] = None) -> None:
        if self._disposed:
            return
        now = self._clock()
        version = self._version
        root = self._workspace_root_for(path)
        attribution: Optional[Attribution] = None
        if root is None:
            logger.debug("No workspace folder found for activity at %s", path)
        else:
            attribution = await self._resolver.resolve(root)

        if self._disposed:
            logger.debug("Tracker disposed while resolving %s; dropping result.", root)
            return
        if version != self._version:
            session = self._session
            if attribution is not None and session is not None and session.matches(attribution):
                session.touch(now, path)
                self._arm_inactivity()
            else:
                logger.debug("Session changed while resolving %s; dropping result.", root)
            return
        self._apply(attribution, now, path)

    def on_focus_changed(self, focused: bool) -> None:
        if self._disposed or focused:
            return
        logger.debug("Window lost focus.")
        self._stop_session(self._clock(), reason="focus lost")

    def on_workspace_roots_changed(self, roots: Iterable[Path]) -> None:
        if self._disposed:
            return
        self._roots = [Path(root) for root in roots]
        if self._current_root not in self._roots:
            self._current_root = None
        logger.info("Workspace folders changed: %s", ", ".join(map(str, self._roots)) or "none")
        self._schedule_initial_check()

    # Outbound surface ---------------------------------------------------

    def get_time_data(self) -> list[TimeEntry]:
        return self._persister.history

    def get_all_repositories(self) -> list[str]:
        return all_repositories(self._persister.history)

    def get_stats_for_repository(self, repository: str) -> dict[str, dict[str, int]]:
        return stats_for_repository(self._persister.history, repository)

    def get_current_status(self) -> str:
        return format_status(self._session, self._clock())

    def reset_data(self) -> None:
        """Drop all history and the running session without recording it."""
        self._stop_session(self._clock(), reason="reset", persist=False)
        self._persister.reset()
        logger.info("Time tracking data has been reset.")

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._stop_session(self._clock(), reason="dispose")
        self._inactivity_timer.cancel()
        self._initial_check_timer.cancel()
        self._persister.dispose()

    async def drain(self) -> None:
        """Wait for in-flight activity handling to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Transitions --------------------------------------------------------

    def _apply(self, attribution: Optional[Attribution], now: int, path: Optional[str]) -> None:
        session = self._session
        if session is not None and attribution is not None and session.matches(attribution):
            session.touch(now, path)
            self._arm_inactivity()
            return

        if session is not None:
            self._stop_session(now, reason="attribution changed")
        if attribution is None:
            logger.debug("Not in a git repository or no branch found.")
            return
        self._start_session(attribution, now, path)

    def _start_session(self, attribution: Attribution, now: int, path: Optional[str]) -> None:
        self._session = ActiveSession(
            repository=attribution.repository,
            branch=attribution.branch,
            start_time=now,
            last_activity=now,
        )
        if path:
            self._session.files.add(path)
        self._version += 1
        self._arm_inactivity()
        logger.info("Started session on %s/%s", attribution.repository, attribution.branch)

    def _stop_session(self, now: int, reason: str, persist: bool = True) -> Optional[TimeEntry]:
        session = self._session
        if session is None:
            return None
        self._session = None
        self._version += 1
        self._inactivity_timer.cancel()

        # Never credit more than the inactivity threshold past the last activity,
        # and never end before the session started.
        end = min(max(now, session.start_time), session.last_activity + self.settings.inactivity_ms)
        elapsed = max(0, end - session.start_time)
        if not persist or elapsed <= self.settings.min_session_ms:
            logger.debug(
                "Discarding %s/%s session of %.1fs (%s).",
                session.repository,
                session.branch,
                elapsed / 1000,
                reason,
            )
            return None

        entry = TimeEntry.from_interval(
            session.repository, session.branch, session.start_time, end
        )
        logger.info(
            "Stopped session on %s/%s after %ss (%s).",
            entry.repository,
            entry.branch,
            entry.duration,
            reason,
        )
        self._persister.submit(entry)
        return entry

    def _on_inactivity(self) -> None:
        session = self._session
        if self._disposed or session is None:
            return
        now = self._clock()
        remaining = session.last_activity + self.settings.inactivity_ms - now
        if remaining > 0:
            self._inactivity_timer.arm(remaining / 1000)
            return
        logger.debug("Inactivity timeout reached.")
        self._stop_session(now, reason="inactivity")

    def _arm_inactivity(self) -> None:
        session = self._session
        if session is None:
            return
        remaining = session.last_activity + self.settings.inactivity_ms - self._clock()
        self._inactivity_timer.arm(remaining / 1000)

    def _schedule_initial_check(self) -> None:
        self._initial_check_timer.arm(self.settings.initial_check_delay.total_seconds())

    def _on_initial_check(self) -> None:
        if self._disposed:
            return
        logger.debug("Starting initial tracking check.")
        self._spawn(self.on_activity(None))

    def _spawn(self, coro: Coroutine[None, None, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[None]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Error handling activity", exc_info=task.exception())

    def _workspace_root_for(self, path: Optional[str]) -> Optional[Path]:
        if not self._roots:
            return None
        if path:
            candidate = Path(path)
            for root in self._roots:
                if candidate == root or root in candidate.parents:
                    self._current_root = root
                    return root
        return self._current_root or self._roots[0]
