"""Command-line interface for the branch time tracker."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer

from .config import TrackerSettings
from .paths import get_data_path
from .reporting import all_repositories
from .server_runner import run_dashboard
from .store import JsonFileStore

app = typer.Typer(help="Track working time per git repository and branch.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command()
def watch(
    roots: Optional[List[Path]] = typer.Argument(
        None, help="Workspace folders to watch. Defaults to the current directory."
    ),
    data_path: Optional[Path] = typer.Option(
        None,
        "--data",
        path_type=Path,
        help="Location of the time data JSON file.",
    ),
    inactivity_seconds: float = typer.Option(
        30.0,
        "--inactivity",
        min=1.0,
        help="Seconds without activity before a session ends.",
    ),
    batch_size: int = typer.Option(
        10, "--batch-size", min=1, help="Completed sessions buffered before a write."
    ),
    batch_seconds: float = typer.Option(
        5.0, "--batch-interval", min=0.1, help="Maximum seconds a session waits to be written."
    ),
    default_branch: str = typer.Option(
        "main", "--default-branch", help="Branch credited when HEAD is detached."
    ),
) -> None:
    """Track time in the given workspaces until interrupted."""
    from .service import TrackerService

    settings = TrackerSettings.from_intervals(
        inactivity_seconds=inactivity_seconds,
        batch_size=batch_size,
        batch_seconds=batch_seconds,
        default_branch=default_branch,
    )
    service = TrackerService(
        data_path=data_path or get_data_path(),
        settings=settings,
        workspace_roots=roots or [Path.cwd()],
    )
    service.run_forever()


@app.command()
def summary(
    repository: Optional[str] = typer.Option(
        None, "--repo", help="Only show this repository."
    ),
    date: Optional[str] = typer.Option(
        None,
        "--date",
        help="Only count sessions started on this day (YYYY-MM-DD).",
    ),
    data_path: Optional[Path] = typer.Option(
        None,
        "--data",
        path_type=Path,
        help="Location of the time data JSON file.",
    ),
) -> None:
    """Print time spent per repository, branch and day."""
    from .reporting import SummaryPrinter

    SummaryPrinter(data_path=data_path or get_data_path()).print_summary(
        repository=repository, day=date
    )


@app.command()
def repos(
    data_path: Optional[Path] = typer.Option(
        None, "--data", path_type=Path, help="Location of the time data JSON file."
    ),
) -> None:
    """List every repository with recorded time."""
    for name in all_repositories(JsonFileStore(data_path or get_data_path()).load()):
        typer.echo(name)


@app.command()
def reset(
    data_path: Optional[Path] = typer.Option(
        None, "--data", path_type=Path, help="Location of the time data JSON file."
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Delete all recorded time data."""
    if not yes:
        typer.confirm("Reset all time tracking data?", abort=True)
    JsonFileStore(data_path or get_data_path()).save([])
    typer.echo("Time tracking data has been reset.")


@app.command()
def web(
    roots: Optional[List[Path]] = typer.Argument(
        None, help="Workspace folders to watch. Defaults to the current directory."
    ),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the dashboard."),
    port: int = typer.Option(
        8766, "--port", min=1, max=65535, help="TCP port for the dashboard."
    ),
    data_path: Optional[Path] = typer.Option(
        None, "--data", path_type=Path, help="Location of the time data JSON file."
    ),
    inactivity_seconds: float = typer.Option(
        30.0,
        "--inactivity",
        min=1.0,
        help="Seconds without activity before a session ends.",
    ),
    open_browser: bool = typer.Option(
        False,
        "--open-browser/--no-open-browser",
        help="Open the status endpoint in your default browser.",
    ),
) -> None:
    """Start the dashboard API with the tracker running in the same process."""
    run_dashboard(
        host=host,
        port=port,
        data_path=data_path or get_data_path(),
        settings=TrackerSettings.from_intervals(inactivity_seconds=inactivity_seconds),
        workspace_roots=roots or [Path.cwd()],
        open_browser=open_browser,
    )
