"""
Git integration for commit-composer.

This module is responsible for interacting with the git CLI: reading
status and diffs, staging and unstaging paths, creating commits and
applying patches. Every invocation goes through _run_git so that error
handling and logging are centralized.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from .domain import LogEntry, RepositoryStatus
from .errors import GitError, NotARepositoryError

LOG = logging.getLogger(__name__)

_RELEASE_TAG_RE = re.compile(r"^v?\d+\.\d+\.\d+")


def _run_git(
    args: list[str],
    cwd: Optional[str] = None,
    input_text: Optional[str] = None,
) -> subprocess.CompletedProcess[str]:
    """
    Run a git command and return the completed process.

    Raises GitError carrying the command line and git's stderr when the
    command exits non-zero.
    """

    cmd = ["git", *args]
    LOG.debug("Running git command: %s", " ".join(cmd))
    try:
        completed = subprocess.run(
            cmd,
            cwd=cwd,
            check=False,
            text=True,
            capture_output=True,
            input=input_text,
        )
    except OSError as exc:  # noqa: BLE001
        raise GitError(f"failed to execute git: {exc}") from exc

    if completed.returncode != 0:
        stderr = (completed.stderr or "").strip()
        LOG.debug("git stderr: %s", stderr)
        message = f"git command failed: {' '.join(cmd)}"
        if stderr:
            message = f"{message}: {stderr}"
        raise GitError(message)

    return completed


def _run_git_at_root(args: list[str], input_text: Optional[str] = None) -> subprocess.CompletedProcess[str]:
    """
    Run a git command from the top of the work tree.

    Paths reported by status, numstat and name-status are relative to the
    repository root, so commands that take those paths back as pathspecs
    (add, reset, per-file diff, apply) must run there too.
    """

    return _run_git(args, cwd=get_repo_root(), input_text=input_text)


def is_git_repo() -> bool:
    try:
        _run_git(["rev-parse", "--is-inside-work-tree"])
    except GitError:
        return False
    return True


def ensure_git_repo() -> None:
    if not is_git_repo():
        raise NotARepositoryError("not a git repository")


def get_repo_root() -> str:
    return _run_git(["rev-parse", "--show-toplevel"]).stdout.strip()


def get_status() -> RepositoryStatus:
    """
    Return the staged, unstaged and untracked paths.

    The porcelain output is read without stripping because the leading
    columns carry the index and work-tree status. Untracked directories
    are expanded so every untracked entry is a single file.
    """

    output = _run_git_at_root(["status", "--porcelain", "-z", "--untracked-files=all"]).stdout
    return parse_porcelain_status(output)


def parse_porcelain_status(output: str) -> RepositoryStatus:
    """
    Parse `git status --porcelain -z` output.

    Rename and copy entries are followed by an extra NUL-terminated
    field holding the original path, which is skipped.
    """

    status = RepositoryStatus()
    fields = output.split("\0")
    i = 0
    while i < len(fields):
        entry = fields[i]
        i += 1
        if len(entry) < 4:
            continue
        index_status = entry[0]
        work_tree_status = entry[1]
        path = entry[3:]
        if index_status in ("R", "C"):
            i += 1

        if index_status == "?":
            status.untracked.add(path)
            continue
        if index_status != " ":
            status.staged.add(path)
        if work_tree_status not in (" ", "?"):
            status.unstaged.add(path)
    return status


def get_staged_diff() -> str:
    return _run_git_at_root(["diff", "--cached"]).stdout


def get_numstat(staged: bool = True) -> str:
    """
    Return raw `git diff --numstat -z` output.

    The NUL-separated form keeps rename paths unambiguous.
    """

    return _run_git_at_root(_diff_args(staged, "--numstat", "-z")).stdout


def get_name_status(staged: bool = True) -> str:
    return _run_git_at_root(_diff_args(staged, "--name-status", "-z")).stdout


def get_file_diff(path: str, staged: bool = True, old_path: Optional[str] = None) -> str:
    """
    Return the diff for a single file.

    Renames pass both paths so git can pair them up instead of
    reporting an add and a delete.
    """

    paths = [old_path, path] if old_path else [path]
    return _run_git_at_root(_diff_args(staged, "--find-renames", "--", *paths)).stdout


def _diff_args(staged: bool, *extra: str) -> list[str]:
    args = ["diff"]
    if staged:
        args.append("--cached")
    args.extend(extra)
    return args


def read_worktree_file(path: str) -> bytes:
    """
    Read a file from the working tree relative to the repository root.
    """

    full_path = Path(get_repo_root()) / path
    try:
        return full_path.read_bytes()
    except OSError as exc:
        raise GitError(f"failed to read {path}: {exc}") from exc


def stage_all() -> None:
    _run_git_at_root(["add", "-A"])


def stage_files(paths: Iterable[str]) -> None:
    """
    Stage exactly the given paths.

    `git add -A -- <path>` also records deletions and both halves of a
    rename, which a plain `git add` would refuse for missing files.
    """

    paths = list(paths)
    if not paths:
        return
    _run_git_at_root(["add", "-A", "--", *paths])


def unstage_all() -> None:
    _run_git_at_root(["reset", "-q"])


def unstage_files(paths: Iterable[str]) -> None:
    paths = list(paths)
    if not paths:
        return
    _run_git_at_root(["reset", "-q", "--", *paths])


def create_commit(message: str) -> str:
    """
    Create a git commit with the given commit message.

    The whole current index is committed. Returns git's summary output.
    """

    return _run_git(["commit", "-m", message]).stdout.strip()


def get_log(from_ref: Optional[str] = None, to_ref: str = "HEAD", limit: Optional[int] = None) -> str:
    args = ["log", "--oneline"]
    if limit:
        args.extend(["-n", str(limit)])
    if from_ref:
        args.append(f"{from_ref}..{to_ref}")
    return _run_git(args).stdout.strip()


def parse_oneline_log(output: str) -> List[LogEntry]:
    entries: List[LogEntry] = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        commit_hash, _, message = line.partition(" ")
        entries.append(LogEntry(hash=commit_hash, message=message))
    return entries


def get_commits_between(from_ref: str, to_ref: str = "HEAD") -> List[LogEntry]:
    return parse_oneline_log(get_log(from_ref=from_ref, to_ref=to_ref))


def get_tags() -> List[str]:
    """
    Return tags, newest first.

    A repository without tags yields an empty list.
    """

    output = _run_git(["tag", "--sort=-creatordate"]).stdout
    return [tag.strip() for tag in output.splitlines() if tag.strip()]


def get_releases() -> List[str]:
    return [tag for tag in get_tags() if _RELEASE_TAG_RE.match(tag)]


def get_diff_between(from_ref: str, to_ref: str) -> str:
    return _run_git(["diff", f"{from_ref}..{to_ref}"]).stdout


def get_changed_paths_between(from_ref: str, to_ref: str) -> List[str]:
    output = _run_git(["diff", "--name-only", f"{from_ref}..{to_ref}"]).stdout
    return [line.strip() for line in output.splitlines() if line.strip()]


def show_file(ref: str, path: str) -> Optional[str]:
    """
    Return the content of path at ref, or None when it does not exist there.
    """

    try:
        return _run_git(["show", f"{ref}:{path}"]).stdout
    except GitError:
        return None


def apply_patch(patch: str, reverse: bool = False, index: bool = True) -> None:
    """
    Apply a unified diff patch to the current repository.

    With index=True both the index and the working tree are updated.
    The patch is fed via stdin; git validates it and we raise GitError
    if it does not apply.
    """

    args = ["apply", "--whitespace=nowarn"]
    if index:
        args.append("--index")
    if reverse:
        args.append("--reverse")
    _run_git_at_root(args, input_text=patch)


def check_patch(patch: str, reverse: bool = False, index: bool = True) -> bool:
    """
    Return True if the patch would apply cleanly.
    """

    args = ["apply", "--check", "--whitespace=nowarn"]
    if index:
        args.append("--index")
    if reverse:
        args.append("--reverse")
    try:
        _run_git_at_root(args, input_text=patch)
    except GitError:
        return False
    return True
