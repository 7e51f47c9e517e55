"""Domain models for tracked working time."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, NamedTuple, Optional


class Attribution(NamedTuple):
    """The (repository, branch) pair a session is credited to."""

    repository: str
    branch: str


class ActivitySource(str, Enum):
    DOCUMENT_CHANGED = "document-changed"
    DOCUMENT_SAVED = "document-saved"
    DOCUMENT_OPENED = "document-opened"
    ACTIVE_EDITOR_CHANGED = "active-editor-changed"


@dataclass(frozen=True, slots=True)
class ActivitySignal:
    source: ActivitySource
    timestamp: int
    path: Optional[str] = None


@dataclass(frozen=True, slots=True)
class TimeEntry:
    """A completed, immutable block of work on one repository branch."""

    date: str
    repository: str
    branch: str
    duration: int
    start_time: int
    end_time: int

    @classmethod
    def from_interval(
        cls, repository: str, branch: str, start_time: int, end_time: int
    ) -> "TimeEntry":
        """Build an entry, clamping reversed intervals to zero length."""
        end_time = max(start_time, end_time)
        return cls(
            date=local_date(start_time).isoformat(),
            repository=repository,
            branch=branch,
            duration=(end_time - start_time) // 1000,
            start_time=start_time,
            end_time=end_time,
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "TimeEntry":
        """Parse a stored record; raises ``ValueError`` on malformed input."""
        try:
            start_time = int(payload["startTime"])
            end_time = int(payload["endTime"])
            duration = int(payload["duration"])
            entry = cls(
                date=str(payload["date"]),
                repository=str(payload["repository"]),
                branch=str(payload["branch"]),
                duration=duration,
                start_time=start_time,
                end_time=end_time,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid time entry: {payload!r}") from exc
        if end_time < start_time or duration < 0:
            raise ValueError(f"Invalid time entry interval: {payload!r}")
        return entry

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "repository": self.repository,
            "branch": self.branch,
            "duration": self.duration,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @property
    def attribution(self) -> Attribution:
        return Attribution(self.repository, self.branch)


@dataclass(slots=True)
class ActiveSession:
    """The session currently accumulating time. At most one exists."""

    repository: str
    branch: str
    start_time: int
    last_activity: int
    files: set[str] = field(default_factory=set)

    @property
    def attribution(self) -> Attribution:
        return Attribution(self.repository, self.branch)

    def matches(self, attribution: Attribution) -> bool:
        return self.attribution == attribution

    def touch(self, timestamp: int, path: Optional[str] = None) -> None:
        self.last_activity = max(self.last_activity, timestamp)
        if path:
            self.files.add(path)


def local_date(epoch_ms: int) -> date:
    """Calendar date, in local time, of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(epoch_ms / 1000).date()
