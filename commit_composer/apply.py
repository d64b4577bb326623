"""
Application of a DraftSet to a git repository.

Each draft becomes one commit. Because `git commit` always records the
whole index, the index is cleared and then filled with exactly one
draft's files before every commit. Commits that were created before a
failure are kept; history is never rewound.
"""

from __future__ import annotations

import logging
from typing import List

from .domain import DraftCommit
from .drafts import DraftSet
from .errors import ApplyError, GitError
from .git_adapter import create_commit, stage_files, unstage_all

LOG = logging.getLogger(__name__)


def paths_to_stage(drafts: DraftSet, index: int) -> List[str]:
    """
    Return the paths to stage for the draft at index.

    Renamed files contribute their old path too, so the commit records
    the removal along with the addition.
    """

    paths: List[str] = []
    for record in drafts.files_for(index):
        if record.old_path and record.old_path not in paths:
            paths.append(record.old_path)
        if record.path not in paths:
            paths.append(record.path)
    return paths


def apply_drafts(drafts: DraftSet) -> List[DraftCommit]:
    """
    Create one commit per draft, in order.

    Returns the drafts that were committed. On failure raises ApplyError
    listing the drafts already committed; remaining drafts are not
    attempted.
    """

    total = len(drafts)
    committed: List[DraftCommit] = []

    for index, draft in enumerate(drafts):
        LOG.info("Creating commit %d/%d: %s", index + 1, total, draft.message)
        try:
            unstage_all()
            stage_files(paths_to_stage(drafts, index))
            create_commit(draft.message)
        except GitError as exc:
            raise ApplyError(
                f"failed to create commit {index + 1}/{total} ({draft.message!r}): {exc}. "
                f"{len(committed)} of {total} commits were created; "
                "remaining changes are left in the working tree",
                committed=committed,
                total=total,
            ) from exc
        committed.append(draft)

    LOG.info("Created %d commits", len(committed))
    return committed


def describe_drafts(drafts: DraftSet) -> List[str]:
    """
    Dry-run description of what apply_drafts would do.
    """

    lines = [f"Dry run: would create {len(drafts)} commits"]
    for index, draft in enumerate(drafts):
        lines.append(f"  Commit {index + 1}: {draft.message} ({len(draft.files)} files)")
    return lines
