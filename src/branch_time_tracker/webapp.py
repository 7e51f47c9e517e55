"""FastAPI application that exposes the tracker's data and a local JSON API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .config import TrackerSettings
from .models import ActivitySource, TimeEntry
from .paths import get_data_path
from .reporting import all_repositories, branch_totals, stats_for_repository
from .service import TrackerService
from .store import JsonFileStore

logger = logging.getLogger(__name__)


class ActivityPayload(BaseModel):
    source: ActivitySource = ActivitySource.DOCUMENT_CHANGED
    path: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class FocusPayload(BaseModel):
    focused: bool

    model_config = ConfigDict(extra="forbid")


class WorkspacesPayload(BaseModel):
    roots: List[str]

    model_config = ConfigDict(extra="forbid")


class ResetPayload(BaseModel):
    confirm: bool = False

    model_config = ConfigDict(extra="forbid")


class TimeEntryPayload(BaseModel):
    date: str
    repository: str
    branch: str
    duration: int
    startTime: int
    endTime: int

    @classmethod
    def from_entry(cls, entry: TimeEntry) -> "TimeEntryPayload":
        return cls(**entry.to_dict())


def create_app(
    *,
    service: Optional[TrackerService] = None,
    data_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    workspace_roots: Iterable[Path] = (),
) -> FastAPI:
    """Instantiate the FastAPI application around one tracker service."""
    resolved_service = service or TrackerService(
        data_path=Path(data_path or get_data_path()),
        settings=settings or TrackerSettings(),
        workspace_roots=workspace_roots,
    )

    app = FastAPI(title="Git Branch Time Tracker", version="1.0.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = resolved_service

    @app.on_event("startup")
    async def _startup() -> None:
        await resolved_service.start()

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await resolved_service.stop()

    # Routes are ``async`` so they run on the tracker's event loop thread.

    @app.get("/api/status")
    async def status(request: Request) -> Dict[str, Any]:
        svc: TrackerService = request.app.state.service
        tracker = svc.tracker if svc.running else None
        return {
            "tracker_running": svc.running,
            "status": tracker.get_current_status() if tracker else "Inactive",
            "data_path": str(svc.data_path),
            "workspace_roots": [str(root) for root in svc.workspace_roots],
            "pending_entries": len(svc.persister.pending) if svc.persister else 0,
            "storage_error": svc.storage_error,
        }

    @app.get("/api/repositories")
    async def repositories(request: Request) -> Dict[str, Any]:
        entries = _load_entries(request.app.state.service)
        return {
            "repositories": all_repositories(entries),
            "sessions": len(entries),
        }

    @app.get("/api/repositories/{repository}/stats")
    async def repository_stats(repository: str, request: Request) -> Dict[str, Any]:
        entries = _load_entries(request.app.state.service)
        stats = stats_for_repository(entries, repository)
        if not stats:
            raise HTTPException(status_code=404, detail="Repository not found")
        return {
            "repository": repository,
            "branches": [
                {
                    "branch": branch,
                    "total_seconds": total,
                    "dates": [
                        {"date": date, "seconds": seconds}
                        for date, seconds in sorted(stats[branch].items(), reverse=True)
                    ],
                }
                for branch, total in branch_totals(stats)
            ],
        }

    @app.get("/api/entries")
    async def entries(
        request: Request,
        repository: Optional[str] = Query(default=None, description="Only this repository."),
        date: Optional[str] = Query(default=None, description="Only this day (YYYY-MM-DD)."),
    ) -> Dict[str, Any]:
        selected = [
            entry
            for entry in _load_entries(request.app.state.service)
            if (repository is None or entry.repository == repository)
            and (date is None or entry.date == date)
        ]
        return {
            "entries": [TimeEntryPayload.from_entry(entry).model_dump() for entry in selected]
        }

    @app.post("/api/activity", status_code=202)
    async def activity(payload: ActivityPayload, request: Request) -> Dict[str, Any]:
        svc: TrackerService = request.app.state.service
        if not svc.running:
            raise HTTPException(status_code=503, detail="Tracker is not running")
        svc.signal(payload.source, payload.path)
        return {"accepted": True}

    @app.post("/api/focus")
    async def focus(payload: FocusPayload, request: Request) -> Dict[str, Any]:
        svc: TrackerService = request.app.state.service
        if not svc.running:
            raise HTTPException(status_code=503, detail="Tracker is not running")
        svc.set_focus(payload.focused)
        return {"status": svc.tracker.get_current_status() if svc.tracker else "Inactive"}

    @app.put("/api/workspaces")
    async def workspaces(payload: WorkspacesPayload, request: Request) -> Dict[str, Any]:
        roots = [Path(root) for root in payload.roots]
        missing = [str(root) for root in roots if not root.is_dir()]
        if missing:
            raise HTTPException(
                status_code=400, detail=f"Not a directory: {', '.join(missing)}"
            )
        svc: TrackerService = request.app.state.service
        svc.set_workspace_roots(roots)
        return {"workspace_roots": [str(root) for root in svc.workspace_roots]}

    @app.post("/api/reset")
    async def reset(payload: ResetPayload, request: Request) -> Dict[str, Any]:
        if not payload.confirm:
            raise HTTPException(status_code=400, detail="Reset must be confirmed")
        svc: TrackerService = request.app.state.service
        if svc.running and svc.tracker is not None:
            svc.tracker.reset_data()
        else:
            JsonFileStore(svc.data_path).save([])
        logger.info("Time tracking data reset via API.")
        return {"reset": True}

    return app


def _load_entries(service: TrackerService) -> list[TimeEntry]:
    if service.running and service.tracker is not None:
        return service.tracker.get_time_data()
    return JsonFileStore(service.data_path).load()
