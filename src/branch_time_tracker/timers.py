"""Cancellable one-shot timers on top of an event loop."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback later; ``asyncio`` loops qualify."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


Clock = Callable[[], int]


def system_clock() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class CancellableTimer:
    """A single named timer that is either armed or not.

    Arming an armed timer replaces the previous deadline, so at most one
    callback is ever outstanding per timer.
    """

    def __init__(self, name: str, scheduler: Scheduler, callback: Callable[[], None]) -> None:
        self.name = name
        self._scheduler = scheduler
        self._callback = callback
        self._handle: Optional[TimerHandle] = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self, delay_seconds: float) -> None:
        self.cancel()
        self._handle = self._scheduler.call_later(max(0.0, delay_seconds), self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        logger.debug("Timer %s fired.", self.name)
        self._callback()
