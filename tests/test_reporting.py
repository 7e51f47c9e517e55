from __future__ import annotations

from branch_time_tracker.models import ActiveSession, TimeEntry
from branch_time_tracker.reporting import (
    SummaryPrinter,
    all_repositories,
    branch_totals,
    format_duration,
    format_status,
    stats_for_repository,
)
from branch_time_tracker.store import JsonFileStore


def _entry(repository: str, branch: str, date: str, duration: int) -> TimeEntry:
    return TimeEntry(
        date=date,
        repository=repository,
        branch=branch,
        duration=duration,
        start_time=0,
        end_time=duration * 1000,
    )


ENTRIES = [
    _entry("web", "main", "2024-05-01", 120),
    _entry("api", "main", "2024-05-01", 30),
    _entry("web", "feature/login", "2024-05-01", 600),
    _entry("web", "main", "2024-05-02", 60),
    _entry("web", "main", "2024-05-01", 15),
]


def test_all_repositories_in_first_seen_order() -> None:
    assert all_repositories(ENTRIES) == ["web", "api"]
    assert all_repositories([]) == []


def test_stats_sum_by_branch_and_date() -> None:
    stats = stats_for_repository(ENTRIES, "web")

    assert stats == {
        "main": {"2024-05-01": 135, "2024-05-02": 60},
        "feature/login": {"2024-05-01": 600},
    }
    assert branch_totals(stats) == [("feature/login", 600), ("main", 195)]


def test_format_status() -> None:
    session = ActiveSession(repository="web", branch="main", start_time=1_000, last_activity=1_000)

    assert format_status(None, 5_000) == "Inactive"
    assert format_status(session, 1_000 + 125_400) == "Active: web/main (2m 5s)"
    assert format_status(session, 0) == "Active: web/main (0m 0s)"


def test_format_duration() -> None:
    assert format_duration(3_725) == "01:02:05"
    assert format_duration(0) == "00:00:00"


def test_summary_printer_lists_branches(tmp_path, capsys) -> None:
    path = tmp_path / "data.json"
    JsonFileStore(path).save(ENTRIES)

    SummaryPrinter(path).print_summary(repository="web")

    out = capsys.readouterr().out
    assert "Summary: 1 repositories, 4 sessions" in out
    assert out.index("feature/login") < out.index("main")
    assert "00:03:15" in out


def test_summary_printer_without_data(tmp_path, capsys) -> None:
    SummaryPrinter(tmp_path / "missing.json").print_summary()

    assert "No time data available yet." in capsys.readouterr().out
