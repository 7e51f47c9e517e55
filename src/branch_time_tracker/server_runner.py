"""Helpers to launch the local web dashboard."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from pathlib import Path
from typing import Iterable, Optional

import uvicorn

from .config import TrackerSettings
from .paths import get_data_path
from .webapp import create_app


def run_dashboard(
    *,
    host: str = "127.0.0.1",
    port: int = 8766,
    data_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    workspace_roots: Iterable[Path] = (),
    open_browser: bool = True,
    log_level: str = "info",
) -> None:
    """Start the FastAPI dashboard, tracking the given workspace folders."""
    app = create_app(
        data_path=data_path or get_data_path(),
        settings=settings or TrackerSettings(),
        workspace_roots=workspace_roots,
    )

    if open_browser:
        url = f"http://{host}:{port}/api/status"
        threading.Thread(
            target=_launch_browser_after_delay, args=(url,), daemon=True
        ).start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _launch_browser_after_delay(url: str) -> None:
    time.sleep(1.0)
    try:
        webbrowser.open(url)
    except Exception:
        logging.getLogger(__name__).exception("Failed to launch browser for %s", url)
