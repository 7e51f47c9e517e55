"""Shared fixtures: a manual scheduler/clock and stub resolvers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

import pytest

from branch_time_tracker.config import TrackerSettings
from branch_time_tracker.models import Attribution, TimeEntry
from branch_time_tracker.persister import BatchPersister
from branch_time_tracker.store import JsonFileStore
from branch_time_tracker.tracker import SessionTracker

WORKSPACE = Path("/ws/app")
FILE = str(WORKSPACE / "src" / "main.py")


@dataclass
class _Handle:
    when: int
    seq: int
    callback: Callable[..., Any]
    args: tuple
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Virtual time: callbacks only run when the test advances the clock."""

    now_ms: int = 0
    _handles: list[_Handle] = field(default_factory=list)
    _seq: int = 0

    def clock(self) -> int:
        return self.now_ms

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> _Handle:
        self._seq += 1
        handle = _Handle(self.now_ms + int(round(delay * 1000)), self._seq, callback, args)
        self._handles.append(handle)
        return handle

    def advance(self, seconds: float) -> None:
        target = self.now_ms + int(round(seconds * 1000))
        while True:
            due = [h for h in self._handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.when, h.seq))
            self._handles.remove(handle)
            self.now_ms = max(self.now_ms, handle.when)
            handle.callback(*handle.args)
        self.now_ms = target

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)


class StubResolver:
    def __init__(self, attribution: Optional[Attribution] = Attribution("app", "main")) -> None:
        self.attribution = attribution
        self.calls: list[Path] = []

    async def resolve(self, path: Path) -> Optional[Attribution]:
        self.calls.append(path)
        return self.attribution


class GatedResolver(StubResolver):
    """Blocks every query until ``gate`` is set."""

    def __init__(self, attribution: Optional[Attribution] = Attribution("app", "main")) -> None:
        super().__init__(attribution)
        self.gate = asyncio.Event()

    async def resolve(self, path: Path) -> Optional[Attribution]:
        self.calls.append(path)
        await self.gate.wait()
        return self.attribution


class RecordingStore(JsonFileStore):
    def __init__(self, path: Path, fail: bool = False) -> None:
        super().__init__(path)
        self.writes: list[list[TimeEntry]] = []
        self.fail = fail

    def save(self, entries: Iterable[TimeEntry]) -> None:
        if self.fail:
            raise OSError("No space left on device")
        entries = list(entries)
        self.writes.append(entries)
        super().save(entries)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store(tmp_path: Path) -> RecordingStore:
    return RecordingStore(tmp_path / "git-branch-time-data.json")


def make_tracker(
    store: JsonFileStore,
    scheduler: ManualScheduler,
    resolver: StubResolver,
    roots: Iterable[Path] = (WORKSPACE,),
    **overrides: Any,
) -> tuple[SessionTracker, BatchPersister]:
    overrides.setdefault("initial_check_delay", timedelta(days=1))
    settings = TrackerSettings(**overrides)
    persister = BatchPersister(
        store,
        scheduler,
        batch_size=settings.batch_size,
        batch_timeout=settings.batch_timeout,
    )
    tracker = SessionTracker(
        resolver,
        persister,
        scheduler,
        settings=settings,
        clock=scheduler.clock,
        workspace_roots=roots,
    )
    return tracker, persister
