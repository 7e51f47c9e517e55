"""Read-only projections over recorded time entries, plus console output."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Iterable, Optional

from .models import ActiveSession, TimeEntry
from .store import JsonFileStore


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, data_path: Path) -> None:
        self.data_path = Path(data_path)

    def print_summary(self, repository: Optional[str] = None, day: Optional[str] = None) -> None:
        entries = JsonFileStore(self.data_path).load()
        if day:
            entries = [entry for entry in entries if entry.date == day]
        repositories = all_repositories(entries)
        if repository:
            repositories = [name for name in repositories if name == repository]
        if not repositories:
            print("No time data available yet.")
            return

        sessions = sum(1 for entry in entries if entry.repository in repositories)
        print(f"Summary: {len(repositories)} repositories, {sessions} sessions")
        print("-" * 40)
        for name in repositories:
            stats = stats_for_repository(entries, name)
            print(name)
            for branch, seconds in branch_totals(stats):
                print(f"  {branch:<30} {format_duration(seconds)}")
                for date, date_seconds in sorted(stats[branch].items(), reverse=True):
                    print(f"    {date:<28} {format_duration(date_seconds)}")
            print()


def all_repositories(entries: Iterable[TimeEntry]) -> list[str]:
    """Distinct repository names in first-seen order."""
    return list(dict.fromkeys(entry.repository for entry in entries))


def stats_for_repository(
    entries: Iterable[TimeEntry], repository: str
) -> dict[str, dict[str, int]]:
    """Seconds spent per branch and per day for one repository."""
    branches: defaultdict[str, defaultdict[str, int]] = defaultdict(lambda: defaultdict(int))
    for entry in entries:
        if entry.repository != repository:
            continue
        branches[entry.branch][entry.date] += entry.duration
    return {branch: dict(dates) for branch, dates in branches.items()}


def branch_totals(stats: dict[str, dict[str, int]]) -> list[tuple[str, int]]:
    totals = [(branch, sum(dates.values())) for branch, dates in stats.items()]
    return sorted(totals, key=lambda item: item[1], reverse=True)


def format_status(session: Optional[ActiveSession], now: int) -> str:
    if session is None:
        return "Inactive"
    elapsed = max(0, now - session.start_time)
    minutes, remainder = divmod(elapsed, 60_000)
    return (
        f"Active: {session.repository}/{session.branch} "
        f"({minutes}m {remainder // 1000}s)"
    )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
