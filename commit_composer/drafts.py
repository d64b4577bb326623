"""
The draft model: an ordered set of proposed commits.

A DraftSet owns the mapping from path to ChangeRecord; each DraftCommit
only lists paths. A valid DraftSet assigns every changed file to exactly
one draft. Only commit messages can be edited once a set is built; file
membership changes only by regenerating the whole set.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .domain import ChangeRecord, DraftCommit
from .errors import DraftValidationError

LOG = logging.getLogger(__name__)

FALLBACK_MESSAGE = "chore: miscellaneous changes"

_STATUS_MARKERS = {
    "added": "A",
    "deleted": "D",
    "renamed": "R",
    "modified": "M",
}


class DraftSet:
    """
    Ordered sequence of DraftCommits over a shared change mapping.
    """

    def __init__(
        self,
        drafts: Sequence[DraftCommit],
        changes: Iterable[ChangeRecord],
        reasoning: Optional[str] = None,
    ) -> None:
        self.drafts: List[DraftCommit] = list(drafts)
        self.changes: Dict[str, ChangeRecord] = {record.path: record for record in changes}
        self.reasoning = reasoning

    def __len__(self) -> int:
        return len(self.drafts)

    def __iter__(self) -> Iterator[DraftCommit]:
        return iter(self.drafts)

    def __getitem__(self, index: int) -> DraftCommit:
        return self.drafts[index]

    def paths(self) -> List[str]:
        return [path for draft in self.drafts for path in draft.files]

    def files_for(self, index: int) -> List[ChangeRecord]:
        return [self.changes[path] for path in self.drafts[index].files]

    def edit_message(self, index: int, message: str) -> None:
        """
        Replace the message of the draft at index.

        Blank messages are rejected with ValueError.
        """

        message = message.strip()
        if not message:
            raise ValueError("commit message cannot be empty")
        if not 0 <= index < len(self.drafts):
            raise IndexError(f"no draft at position {index + 1}")
        self.drafts[index].message = message

    def validate(self) -> None:
        """
        Check that every changed file belongs to exactly one draft.
        """

        seen: Dict[str, str] = {}
        duplicates: List[str] = []
        for draft in self.drafts:
            if not draft.message.strip():
                raise DraftValidationError(f"draft {draft.id} has an empty commit message")
            for path in draft.files:
                if path in seen:
                    duplicates.append(path)
                seen[path] = draft.id

        unknown = sorted(set(seen) - set(self.changes))
        missing = sorted(set(self.changes) - set(seen))
        if duplicates or unknown or missing:
            raise DraftValidationError(
                "drafts do not cover changed files exactly once "
                f"(missing={missing}, duplicated={sorted(set(duplicates))}, unknown={unknown})"
            )

    def summary_lines(self) -> List[str]:
        lines = [f"Proposed {len(self.drafts)} commits:", ""]
        for index, draft in enumerate(self.drafts):
            lines.append(f"[{index + 1}] {draft.message}")
            for record in self.files_for(index):
                marker = _STATUS_MARKERS.get(record.status, "M")
                lines.append(f"    {marker} {record.path} (+{record.additions}/-{record.deletions})")
        return lines

    def detail_lines(self, index: int, max_diff_lines: int = 15) -> List[str]:
        draft = self.drafts[index]
        lines = [f"Draft {index + 1}: {draft.message}"]
        if draft.reasoning:
            lines.append(f"  ({draft.reasoning})")
        lines.append("")
        for record in self.files_for(index):
            marker = _STATUS_MARKERS.get(record.status, "M")
            lines.append(f"{marker} {record.path} (+{record.additions}/-{record.deletions})")
            if record.diff:
                diff_lines = record.diff.splitlines()
                lines.extend(diff_lines[:max_diff_lines])
                if len(diff_lines) > max_diff_lines:
                    lines.append("... (truncated)")
            lines.append("")
        return lines


def build_draft_set(
    proposed: Sequence[DraftCommit],
    changes: Sequence[ChangeRecord],
    reasoning: Optional[str] = None,
) -> DraftSet:
    """
    Turn proposed drafts into a valid DraftSet.

    Paths that are not among the changes are dropped, and a path claimed
    by several drafts stays with the first one. Drafts left without files
    are discarded. Every change not referenced by any remaining draft is
    then appended to the last draft, or to a single fallback draft when
    nothing remains.
    """

    known = {record.path for record in changes}
    claimed: set[str] = set()
    drafts: List[DraftCommit] = []

    for proposal in proposed:
        files: List[str] = []
        for path in proposal.files:
            if path not in known:
                LOG.debug("Dropping unknown path %r from draft %s", path, proposal.id)
                continue
            if path in claimed:
                LOG.debug("Dropping duplicate path %r from draft %s", path, proposal.id)
                continue
            claimed.add(path)
            files.append(path)
        if not files:
            LOG.debug("Discarding draft %s with no remaining files", proposal.id)
            continue
        drafts.append(
            DraftCommit(
                id=proposal.id,
                message=proposal.message.strip() or FALLBACK_MESSAGE,
                files=files,
                reasoning=proposal.reasoning,
            )
        )

    missing = [record.path for record in changes if record.path not in claimed]
    if missing:
        LOG.info("Assigning %d unreferenced files to a draft", len(missing))
        if drafts:
            drafts[-1].files.extend(missing)
        else:
            drafts.append(DraftCommit(id="1", message=FALLBACK_MESSAGE, files=missing))

    draft_set = DraftSet(drafts, changes, reasoning=reasoning)
    draft_set.validate()
    return draft_set
