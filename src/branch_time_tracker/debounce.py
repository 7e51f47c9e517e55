"""Trailing-edge debouncing of raw activity signals."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Callable, Iterable, Optional

from .models import ActivitySignal, ActivitySource
from .timers import CancellableTimer, Clock, Scheduler, system_clock

logger = logging.getLogger(__name__)


class Debouncer:
    """Collapse bursts of signals into one delivery per source and window.

    Each source has its own timer: a burst of saves never delays or swallows a
    concurrent burst of edits. The delivered signal is always the last one
    seen in the window.
    """

    def __init__(
        self,
        callback: Callable[[ActivitySignal], None],
        scheduler: Scheduler,
        window: timedelta = timedelta(milliseconds=300),
        clock: Clock = system_clock,
    ) -> None:
        self._callback = callback
        self._scheduler = scheduler
        self._window = window.total_seconds()
        self._clock = clock
        self._timers: dict[ActivitySource, CancellableTimer] = {}
        self._latest: dict[ActivitySource, ActivitySignal] = {}
        self._closed = False

    def signal(self, source: ActivitySource, path: Optional[str] = None) -> None:
        if self._closed:
            return
        self._latest[source] = ActivitySignal(source=source, timestamp=self._clock(), path=path)
        timer = self._timers.get(source)
        if timer is None:
            timer = CancellableTimer(
                f"debounce:{source.value}", self._scheduler, lambda: self._deliver(source)
            )
            self._timers[source] = timer
        timer.arm(self._window)

    def pending(self) -> list[ActivitySignal]:
        return list(self._latest.values())

    def flush(self) -> None:
        """Deliver every pending signal now instead of waiting for its window."""
        for source in list(self._latest):
            self._timers[source].cancel()
            self._deliver(source)

    def cancel(self) -> None:
        """Drop pending signals and refuse new ones."""
        self._closed = True
        for timer in self._timers.values():
            timer.cancel()
        self._latest.clear()

    def _deliver(self, source: ActivitySource) -> None:
        signal = self._latest.pop(source, None)
        if signal is None:
            return
        try:
            self._callback(signal)
        except Exception:
            logger.exception("Activity callback failed for %s", source.value)


def coalesce(signals: Iterable[ActivitySignal], window_ms: int) -> list[ActivitySignal]:
    """Apply trailing-edge debouncing to a timestamped signal sequence.

    Returns the signals a :class:`Debouncer` would deliver, ordered by the
    time they would be delivered. A signal is delivered when no other signal
    from the same source arrives within ``window_ms`` after it.
    """
    last: dict[ActivitySource, ActivitySignal] = {}
    delivered: list[tuple[int, ActivitySignal]] = []
    for signal in sorted(signals, key=lambda item: item.timestamp):
        previous = last.get(signal.source)
        if previous is not None and signal.timestamp - previous.timestamp >= window_ms:
            delivered.append((previous.timestamp + window_ms, previous))
        last[signal.source] = signal
    delivered.extend((signal.timestamp + window_ms, signal) for signal in last.values())
    # Stable sort keeps arrival order for signals due at the same instant.
    delivered.sort(key=lambda item: item[0])
    return [signal for _, signal in delivered]
