"""
Core domain models for commit-composer.

These dataclasses describe per-file changes, draft commits, repository
status snapshots and cleanup patches. They intentionally avoid any
direct git or AI dependencies so they can be reused by different parts
of the system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional, Set

ChangeStatus = Literal["added", "modified", "deleted", "renamed"]


@dataclass
class ChangeRecord:
    """
    A single changed file, keyed by its final path.

    For renames, path is the new path and old_path remembers where the
    file came from. diff holds the unified diff text for this file only.
    """

    path: str
    additions: int = 0
    deletions: int = 0
    status: ChangeStatus = "modified"
    diff: str = ""
    old_path: Optional[str] = None


@dataclass
class DraftCommit:
    """
    A proposed, not-yet-created commit.

    files holds paths only; the ChangeRecord data lives in the mapping
    owned by the DraftSet.
    """

    id: str
    message: str
    files: List[str] = field(default_factory=list)
    reasoning: Optional[str] = None


@dataclass
class RepositoryStatus:
    """
    Snapshot of `git status --porcelain`.

    Always recomputed from git after a mutating operation, never patched
    in place.
    """

    staged: Set[str] = field(default_factory=set)
    unstaged: Set[str] = field(default_factory=set)
    untracked: Set[str] = field(default_factory=set)

    def has_changes(self) -> bool:
        return bool(self.staged or self.unstaged or self.untracked)


@dataclass
class PatchSession:
    """
    A cleanup patch proposed by the generation collaborator.

    Whether the patch is currently applied is tracked by the caller.
    """

    patch: str
    summary: str = ""


@dataclass
class LogEntry:
    hash: str
    message: str
