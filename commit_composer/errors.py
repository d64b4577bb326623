"""
Custom exception types used across commit-composer.

Defining explicit error classes makes it easier for the CLI and higher
layers to distinguish between user-facing failures and unexpected bugs.
"""

from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .domain import DraftCommit


class ComposerError(Exception):
    """Base class for all commit-composer specific errors."""


class GitError(ComposerError):
    """Raised when git operations fail."""


class NotARepositoryError(GitError):
    """Raised when the current directory is not inside a git work tree."""


class NothingToDoError(ComposerError):
    """Raised when there are no changes to process."""


class GenerationError(ComposerError):
    """Raised when the generation collaborator fails or returns nothing usable."""


class GenerationAuthError(GenerationError):
    """Raised when the collaborator rejects our credentials."""


class ReplyParseError(GenerationError):
    """Raised when a collaborator reply does not have the expected structure."""


class DraftValidationError(ComposerError):
    """Raised when a set of drafts violates the coverage invariant."""


class ApplyError(ComposerError):
    """
    Raised when a draft cannot be turned into a commit.

    committed lists the drafts that were already committed before the
    failure; those commits are left in place.
    """

    def __init__(
        self,
        message: str,
        *,
        committed: Optional[List["DraftCommit"]] = None,
        total: int = 0,
    ) -> None:
        super().__init__(message)
        self.committed = list(committed or [])
        self.total = total


class PatchError(ComposerError):
    """
    Raised when a cleanup patch cannot be applied or reverted.

    working_tree_touched is True when the failure happened after git may
    already have modified files on disk.
    """

    def __init__(self, message: str, *, working_tree_touched: bool = False) -> None:
        super().__init__(message)
        self.working_tree_touched = working_tree_touched
