"""Utilities to normalize repository and branch names reported by git."""

from __future__ import annotations

from pathlib import PurePath
from typing import Optional

_REF_PREFIXES = ("refs/heads/", "heads/")


def repository_name(toplevel: Optional[str]) -> Optional[str]:
    """Name a repository after the directory holding its working tree."""
    if not toplevel:
        return None
    cleaned = toplevel.strip().rstrip("/\\")
    if not cleaned:
        return None
    return PurePath(cleaned).name or None


def normalize_branch_name(raw: Optional[str]) -> Optional[str]:
    """Strip whitespace and ref prefixes; ``None`` means no branch is checked out."""
    if raw is None:
        return None
    branch = raw.strip()
    for prefix in _REF_PREFIXES:
        if branch.startswith(prefix):
            branch = branch[len(prefix):]
            break
    if not branch or branch == "HEAD":
        return None
    return branch
