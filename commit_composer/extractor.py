"""
Change extraction for commit-composer.

Git reports line counts (--numstat) and file status (--name-status)
through two separate queries. This module merges them into one
ChangeRecord per changed file and attaches each file's diff text.
Untracked files are invisible to both queries, so a pseudo-diff is
synthesized for them from the file contents.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .domain import ChangeRecord, ChangeStatus
from .git_adapter import get_file_diff, get_name_status, get_numstat, read_worktree_file

LOG = logging.getLogger(__name__)

Count = Union[int, str]
NumstatEntry = Tuple[Count, Count, str]
NameStatusEntry = Tuple[str, str, Optional[str]]

_STATUS_BY_CODE: Dict[str, ChangeStatus] = {
    "A": "added",
    "C": "added",
    "D": "deleted",
    "R": "renamed",
    "M": "modified",
    "T": "modified",
}


def parse_numstat(output: str) -> List[NumstatEntry]:
    """
    Parse `git diff --numstat -z` output into (additions, deletions, path).

    Counts are returned as git printed them; binary files show "-".
    For renames git emits an empty path field followed by the old and
    new paths as separate NUL-terminated fields; the new path is used.
    """

    fields = output.split("\0")
    entries: List[NumstatEntry] = []
    i = 0
    while i < len(fields):
        field = fields[i]
        i += 1
        if not field.strip():
            continue
        parts = field.split("\t")
        if len(parts) < 3:
            LOG.debug("Skipping malformed numstat field: %r", field)
            continue
        additions, deletions, path = parts[0], parts[1], parts[2]
        if not path:
            if i + 1 >= len(fields):
                LOG.debug("Truncated rename entry in numstat output: %r", field)
                break
            path = fields[i + 1]
            i += 2
        entries.append((additions, deletions, path))
    return entries


def parse_name_status(output: str) -> List[NameStatusEntry]:
    """
    Parse `git diff --name-status -z` output into (code, path, old_path).

    Rename and copy codes (R100, C075, ...) are followed by two paths,
    old then new; all other codes by a single path.
    """

    fields = output.split("\0")
    entries: List[NameStatusEntry] = []
    i = 0
    while i < len(fields):
        code = fields[i].strip()
        i += 1
        if not code:
            continue
        if code[0] in ("R", "C"):
            if i + 1 >= len(fields):
                LOG.debug("Truncated rename entry in name-status output: %r", code)
                break
            old_path, new_path = fields[i], fields[i + 1]
            i += 2
            entries.append((code, new_path, old_path))
        else:
            if i >= len(fields):
                break
            entries.append((code, fields[i], None))
            i += 1
    return entries


def _parse_count(value: Count) -> int:
    """
    Convert a numstat count to an int.

    Binary files are reported as "-" and count as zero.
    """

    if isinstance(value, int):
        return max(value, 0)
    value = value.strip()
    if value == "-" or not value:
        return 0
    try:
        return max(int(value), 0)
    except ValueError:
        LOG.debug("Unparseable numstat count %r; treating as 0", value)
        return 0


def merge_change_stats(
    numstat: Sequence[NumstatEntry],
    name_status: Sequence[NameStatusEntry],
) -> List[ChangeRecord]:
    """
    Merge numstat and name-status entries into one record per path.

    Records are created from the numstat entries first with a default
    status of "modified". Each name-status entry then updates the record
    found under its new path, or under its old path when numstat keyed
    the file by its pre-rename name, or creates a zero-count record when
    numstat had nothing for it. Output order follows first appearance.
    """

    records: Dict[str, ChangeRecord] = {}

    for additions, deletions, path in numstat:
        records[path] = ChangeRecord(
            path=path,
            additions=_parse_count(additions),
            deletions=_parse_count(deletions),
            status="modified",
        )

    for code, path, old_path in name_status:
        status = _STATUS_BY_CODE.get(code[:1].upper(), "modified")

        existing = records.get(path)
        if existing is None and old_path:
            existing = records.get(old_path)
            if existing is not None:
                # Re-key the record under its final path, keeping its position.
                records = {(path if key == old_path else key): value for key, value in records.items()}

        if existing is None:
            existing = ChangeRecord(path=path, additions=0, deletions=0, status=status)
            records[path] = existing

        existing.path = path
        existing.status = status
        if status == "renamed" and old_path and old_path != path:
            existing.old_path = old_path

    return list(records.values())


def get_changed_files_with_stats(staged: bool = True) -> List[ChangeRecord]:
    """
    Return ChangeRecords (without diff text) for staged or unstaged changes.
    """

    numstat_output = get_numstat(staged)
    name_status_output = get_name_status(staged)
    if not numstat_output.strip() and not name_status_output.strip():
        return []
    return merge_change_stats(parse_numstat(numstat_output), parse_name_status(name_status_output))


def synthesize_untracked_record(path: str, content: bytes) -> ChangeRecord:
    """
    Build an "added" ChangeRecord for a file git does not track yet.

    The diff is shaped like git's own new-file diff: a header followed by
    one addition line per content line. Undecodable content is treated
    as binary and gets a header-only diff.
    """

    header = [
        f"diff --git a/{path} b/{path}",
        "new file mode 100644",
    ]
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        header.append(f"Binary files /dev/null and b/{path} differ")
        return ChangeRecord(path=path, additions=0, deletions=0, status="added", diff="\n".join(header) + "\n")

    lines = text.splitlines()
    if not lines:
        return ChangeRecord(path=path, additions=0, deletions=0, status="added", diff="\n".join(header) + "\n")

    diff_lines = header + [
        "--- /dev/null",
        f"+++ b/{path}",
        f"@@ -0,0 +1,{len(lines)} @@",
    ]
    diff_lines.extend(f"+{line}" for line in lines)
    return ChangeRecord(
        path=path,
        additions=len(lines),
        deletions=0,
        status="added",
        diff="\n".join(diff_lines) + "\n",
    )


def collect_changes(staged: bool = True, untracked: Iterable[str] = ()) -> List[ChangeRecord]:
    """
    Return the full change list: tracked changes with their diffs plus
    synthesized records for the given untracked paths.
    """

    records = get_changed_files_with_stats(staged)
    for record in records:
        record.diff = get_file_diff(record.path, staged=staged, old_path=record.old_path)

    seen = {record.path for record in records}
    for path in sorted(untracked):
        if path in seen:
            continue
        if path.endswith("/"):
            # Nested repositories are still reported as a directory.
            LOG.debug("Skipping untracked directory %s", path)
            continue
        records.append(synthesize_untracked_record(path, read_worktree_file(path)))
        seen.add(path)

    LOG.info("Collected %d changed files", len(records))
    return records
