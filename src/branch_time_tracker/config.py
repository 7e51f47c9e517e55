"""Configuration models and helpers for the branch time tracker."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta


@dataclass(slots=True)
class TrackerSettings:
    """Runtime configuration for the session tracker and its collaborators."""

    inactivity_threshold: timedelta = timedelta(seconds=30)
    min_session: timedelta = timedelta(seconds=5)
    debounce_window: timedelta = timedelta(milliseconds=300)
    batch_size: int = 10
    batch_timeout: timedelta = timedelta(seconds=5)
    initial_check_delay: timedelta = timedelta(seconds=2)
    resolver_timeout: timedelta = timedelta(seconds=5)
    default_branch: str = "main"

    @classmethod
    def from_intervals(
        cls,
        inactivity_seconds: float = 30.0,
        batch_size: int = 10,
        batch_seconds: float = 5.0,
        debounce_ms: float = 300.0,
        default_branch: str | None = None,
    ) -> "TrackerSettings":
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        return cls(
            inactivity_threshold=timedelta(seconds=inactivity_seconds),
            debounce_window=timedelta(milliseconds=debounce_ms),
            batch_size=batch_size,
            batch_timeout=timedelta(seconds=batch_seconds),
            default_branch=default_branch or "main",
        )

    @property
    def inactivity_ms(self) -> int:
        return _to_ms(self.inactivity_threshold)

    @property
    def min_session_ms(self) -> int:
        return _to_ms(self.min_session)


def _to_ms(value: timedelta) -> int:
    return int(value.total_seconds() * 1000)
