from __future__ import annotations

import asyncio
import shutil
import subprocess
import sys
from datetime import timedelta
from pathlib import Path

import pytest

from branch_time_tracker.git import GitResolver
from branch_time_tracker.models import Attribution
from branch_time_tracker.normalization import normalize_branch_name, repository_name

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(cwd: Path, *args: str) -> None:
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
    )


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    path = tmp_path / "shop"
    path.mkdir()
    _git(path, "init")
    _git(path, "checkout", "-b", "feature/cart")
    _git(path, "commit", "--allow-empty", "-m", "init")
    return path


@requires_git
def test_resolves_repository_and_branch(repo: Path) -> None:
    nested = repo / "src"
    nested.mkdir()

    result = asyncio.run(GitResolver().resolve(nested))

    assert result == Attribution("shop", "feature/cart")


@requires_git
def test_detached_head_uses_default_branch(repo: Path) -> None:
    _git(repo, "checkout", "--detach")

    result = asyncio.run(GitResolver(default_branch="detached").resolve(repo))

    assert result == Attribution("shop", "detached")


@requires_git
def test_directory_outside_repository_is_absent(tmp_path: Path) -> None:
    plain = tmp_path / "plain"
    plain.mkdir()

    assert asyncio.run(GitResolver().resolve(plain)) is None


def test_missing_directory_is_absent(tmp_path: Path) -> None:
    assert asyncio.run(GitResolver().resolve(tmp_path / "gone")) is None


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell script")
def test_slow_git_times_out_as_absent(tmp_path: Path) -> None:
    script = tmp_path / "git"
    script.write_text("#!/bin/sh\nsleep 5\n", encoding="utf-8")
    script.chmod(0o755)
    resolver = GitResolver(executable=str(script), timeout=timedelta(milliseconds=200))

    assert asyncio.run(resolver.resolve(tmp_path)) is None


def _fake_git(tmp_path: Path, delay: float) -> str:
    script = tmp_path / "git"
    script.write_text(
        "#!/bin/sh\n"
        f"sleep {delay}\n"
        "case \"$1\" in\n"
        "  rev-parse) echo /tmp/shop ;;\n"
        "  branch) echo main ;;\n"
        "esac\n",
        encoding="utf-8",
    )
    script.chmod(0o755)
    return str(script)


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell script")
def test_timeout_bounds_both_queries_together(tmp_path: Path) -> None:
    # Each query alone fits the deadline; the pair does not.
    resolver = GitResolver(
        executable=_fake_git(tmp_path, 0.5), timeout=timedelta(milliseconds=800)
    )

    assert asyncio.run(resolver.resolve(tmp_path)) is None


@pytest.mark.skipif(sys.platform == "win32", reason="needs a POSIX shell script")
def test_fast_queries_resolve_within_timeout(tmp_path: Path) -> None:
    resolver = GitResolver(executable=_fake_git(tmp_path, 0), timeout=timedelta(seconds=5))

    assert asyncio.run(resolver.resolve(tmp_path)) == Attribution("shop", "main")


def test_normalization_helpers() -> None:
    assert repository_name("/home/me/code/shop\n") == "shop"
    assert repository_name("") is None
    assert normalize_branch_name(" refs/heads/release/1.2 \n") == "release/1.2"
    assert normalize_branch_name("") is None
    assert normalize_branch_name("HEAD") is None
