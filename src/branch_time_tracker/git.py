"""Resolve the repository and branch that a workspace path belongs to."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
from datetime import timedelta
from pathlib import Path
from typing import Optional, Protocol

from .models import Attribution
from .normalization import normalize_branch_name, repository_name

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    async def resolve(self, path: Path) -> Optional[Attribution]: ...


class GitCommandError(RuntimeError):
    """Raised when a git query exits unsuccessfully."""


class GitResolver:
    """Answer "which repository and branch is this path on" using the git CLI.

    Every failure mode (not a repository, git missing, timeout) is reported
    as ``None``; callers never see an exception.
    """

    def __init__(
        self,
        executable: Optional[str] = None,
        timeout: timedelta = timedelta(seconds=5),
        default_branch: str = "main",
    ) -> None:
        self._executable = executable or shutil.which("git") or "git"
        self._timeout = timeout.total_seconds()
        self.default_branch = default_branch

    async def resolve(self, path: Path) -> Optional[Attribution]:
        try:
            # One deadline covers both queries.
            return await asyncio.wait_for(self._query(path), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.debug("Git queries in %s timed out after %ss", path, self._timeout)
            return None
        except (GitCommandError, OSError) as exc:
            logger.debug("Not a git repository: %s (%s)", path, exc)
            return None

    async def _query(self, path: Path) -> Optional[Attribution]:
        repository = repository_name(await self._run(path, "rev-parse", "--show-toplevel"))
        if repository is None:
            return None
        branch = normalize_branch_name(await self._run(path, "branch", "--show-current"))
        if branch is None:
            # Detached HEAD is credited to the placeholder branch.
            logger.debug(
                "No branch checked out in %s; using %r", path, self.default_branch
            )
            branch = self.default_branch
        return Attribution(repository, branch)

    async def _run(self, cwd: Path, *args: str) -> str:
        process = await asyncio.create_subprocess_exec(
            self._executable,
            *args,
            cwd=str(cwd),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout_bytes, stderr_bytes = await process.communicate()
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise
        if process.returncode != 0:
            stderr = stderr_bytes.decode("utf-8", errors="replace").strip()
            raise GitCommandError(f"git {' '.join(args)} failed: {stderr}")
        return stdout_bytes.decode("utf-8", errors="replace").strip()
