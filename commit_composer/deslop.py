"""
Reversible cleanup patches ("deslop") for staged changes.

The generation collaborator is asked for a small patch that removes
noise from the staged changes. The patch is applied to the index and
the working tree together, and can be reverted exactly by applying it in
reverse. After either direction the paths the patch touches are put back
on the same side of the staging boundary as before.
"""

from __future__ import annotations

import logging
import re
import subprocess
import sys
from typing import Callable, Iterable, Optional, Set, TextIO, Tuple

from .ai.interface import GenerationClient
from .ai.prompts import DEFAULT_DESLOP_GUIDELINES, build_deslop_prompt
from .ai.replies import PatchReply, decode_reply
from .config import Config, ModelSelection, load_guidelines, model_overrides, resolve_model_config
from .domain import PatchSession
from .errors import ComposerError, GitError, NothingToDoError, PatchError
from .git_adapter import (
    apply_patch,
    check_patch,
    ensure_git_repo,
    get_diff_between,
    get_repo_root,
    get_staged_diff,
    get_status,
    stage_files,
    unstage_files,
)

LOG = logging.getLogger(__name__)

SESSION_TITLE = "commit-composer-deslop"
BASE_BRANCHES = ("main", "master")
FALLBACK_SUMMARY = "Deslop completed with minor cleanup adjustments."

_PATCH_HEADER_RE = re.compile(r"^(diff --git |---\s)", re.MULTILINE)
_DIFF_GIT_RE = re.compile(r"^diff --git a/(.+?) b/(.+)$", re.MULTILINE)
_FILE_HEADER_RE = re.compile(r"^(?:---|\+\+\+) (?:[ab]/)?(.+?)\s*$", re.MULTILINE)


def has_valid_patch(patch: Optional[str]) -> bool:
    """
    Minimal structural check: the text must contain a diff header.
    """

    return bool(patch) and _PATCH_HEADER_RE.search(patch) is not None


def patch_paths(patch: str) -> Set[str]:
    """
    Return every path named in the patch's file headers.
    """

    paths: Set[str] = set()
    for old, new in _DIFF_GIT_RE.findall(patch):
        paths.update((old, new))
    if paths:
        return paths

    # Plain unified diffs without git headers.
    for path in _FILE_HEADER_RE.findall(patch):
        if path != "/dev/null":
            paths.add(path)
    return paths


def get_base_diff(branches: Iterable[str] = BASE_BRANCHES) -> Tuple[str, str]:
    """
    Return (base_ref, diff) for the committed work on this branch.

    Tries each base branch in turn; when none exists the diff is empty.
    """

    branches = list(branches)
    for branch in branches:
        try:
            return branch, get_diff_between(branch, "HEAD")
        except GitError:
            LOG.debug("No base branch %s", branch)
    return branches[0] if branches else "main", ""


class DeslopWorkflow:
    """
    Generate, apply and revert cleanup patches against the staging index.

    staged_paths is the set of paths staged before any patch was applied;
    it defaults to the current staged set.
    """

    def __init__(
        self,
        client: GenerationClient,
        model: ModelSelection,
        guidelines: str = DEFAULT_DESLOP_GUIDELINES,
        staged_paths: Optional[Set[str]] = None,
    ) -> None:
        self.client = client
        self.model = model
        self.guidelines = guidelines
        self.staged_paths = set(staged_paths) if staged_paths is not None else set(get_status().staged)

    def generate(
        self,
        staged_diff: str,
        base_diff: str,
        base_ref: str,
        extra_prompt: Optional[str] = None,
    ) -> PatchSession:
        """
        Ask the collaborator for a cleanup patch.

        A reply whose patch has no recognizable diff header means no
        change is needed and yields a session with an empty patch.
        """

        prompt = build_deslop_prompt(self.guidelines, staged_diff, base_diff, base_ref, extra_prompt)
        reply = decode_reply(self.client.complete(prompt, self.model, SESSION_TITLE), PatchReply)

        patch = reply.patch
        if not has_valid_patch(patch):
            if patch.strip():
                LOG.info("Ignoring collaborator patch without a diff header")
            patch = ""
        elif not patch.endswith("\n"):
            patch += "\n"
        return PatchSession(patch=patch, summary=reply.summary.strip())

    def apply(self, session: PatchSession) -> None:
        self._apply(session.patch, reverse=False)

    def revert(self, session: PatchSession) -> None:
        """
        Undo a previously applied patch.

        Reverting a patch that is not currently applied raises PatchError.
        """

        self._apply(session.patch, reverse=True)

    def _apply(self, patch: str, reverse: bool) -> None:
        direction = "revert" if reverse else "apply"
        if not has_valid_patch(patch):
            raise PatchError(f"cannot {direction} an empty or malformed patch")

        if not check_patch(patch, reverse=reverse):
            if reverse:
                raise PatchError("cannot revert patch: it is not applied to the current index")
            raise PatchError("cleanup patch does not apply to the staged changes")

        try:
            apply_patch(patch, reverse=reverse, index=True)
        except GitError as exc:
            raise PatchError(
                f"failed to {direction} cleanup patch: {exc}",
                working_tree_touched=True,
            ) from exc

        self._restore_staging_boundary(patch)

    def _restore_staging_boundary(self, patch: str) -> None:
        touched = patch_paths(patch)
        restage = sorted(touched & self.staged_paths)
        unstage = sorted(touched - self.staged_paths)
        try:
            stage_files(restage)
            unstage_files(unstage)
        except GitError as exc:
            raise PatchError(
                f"patch applied but restoring the staged file set failed: {exc}",
                working_tree_touched=True,
            ) from exc


def review_with_critique() -> str:
    """
    Open the staged changes in the external `critique` viewer.

    Returns "ok", "failed" or "missing" when neither `critique` nor
    `bunx` can be run.
    """

    for cmd in (["critique", "--staged"], ["bunx", "critique", "--staged"]):
        try:
            completed = subprocess.run(cmd, check=False)
        except FileNotFoundError:
            continue
        except OSError as exc:
            LOG.debug("Failed to run %s: %s", cmd[0], exc)
            return "failed"
        return "ok" if completed.returncode == 0 else "failed"
    return "missing"


def run_deslop_flow(
    make_workflow: Callable[[], DeslopWorkflow],
    *,
    assume_yes: bool = False,
    auto_deslop: bool = False,
    extra_prompt: Optional[str] = None,
    staged_diff: Optional[str] = None,
    ask: Callable[[str], str] = input,
    reviewer: Callable[[], str] = review_with_critique,
    out: Optional[TextIO] = None,
) -> str:
    """
    Interactive deslop step.

    make_workflow is only called once the user has opted in, so no
    collaborator connection is made when deslop is skipped.

    Returns "continue" when nothing changed, "updated" when a cleanup
    patch was kept and "abort" when the user cancelled or the patch
    could not be handled.
    """

    def say(text: str, err: bool = False) -> None:
        print(text, file=sys.stderr if err else (out or sys.stdout))

    try:
        if assume_yes:
            should_deslop = auto_deslop
        else:
            default = "Y/n" if auto_deslop else "y/N"
            answer = ask(f"Deslop staged changes? [{default}] ").strip().lower()
            should_deslop = answer in ("y", "yes") or (not answer and auto_deslop)
        if not should_deslop:
            return "continue"

        staged_diff = staged_diff if staged_diff is not None else get_staged_diff()
        if not staged_diff.strip():
            say("No staged diff to deslop")
            return "continue"

        base_ref, base_diff = get_base_diff()

        extra = (extra_prompt or "").strip() or None
        if not assume_yes and extra is None:
            extra = ask("Deslop exclusions or extra instructions? (optional, Enter to skip) ").strip() or None
    except (EOFError, KeyboardInterrupt):
        say("Aborted", err=True)
        return "abort"

    try:
        workflow = make_workflow()
        session = workflow.generate(staged_diff, base_diff, base_ref, extra)
    except ComposerError as exc:
        say(f"Deslop failed: {exc}", err=True)
        return "abort"

    if not session.patch:
        say(session.summary or "No deslop changes were required.")
        return "continue"

    try:
        workflow.apply(session)
    except PatchError as exc:
        say(f"Deslop failed: {exc}", err=True)
        if exc.working_tree_touched:
            say("Warning: working tree files may have been modified; review `git status` and `git diff`.", err=True)
        return "abort"

    if assume_yes:
        say(session.summary or FALLBACK_SUMMARY)
        return "updated"

    say("Deslop applied (review pending)")
    review_result = reviewer()
    if review_result == "missing":
        say("critique is not available. Install Bun and run: bunx critique", err=True)
    elif review_result == "failed":
        say("critique exited with an error. Review manually if needed.", err=True)

    try:
        answer = ask("Keep deslop changes? [Y/n] ").strip().lower()
        keep = answer in ("", "y", "yes")
    except (EOFError, KeyboardInterrupt):
        answer, keep = None, False

    if keep:
        say(session.summary or FALLBACK_SUMMARY)
        return "updated"

    try:
        workflow.revert(session)
    except PatchError as exc:
        say(f"Failed to revert deslop changes: {exc}", err=True)
        say("Warning: working tree files may still contain the cleanup edits.", err=True)
        return "abort"

    if answer is None:
        say("Aborted", err=True)
        return "abort"
    say("Deslop changes reverted")
    return "continue"


def run_deslop(
    config: Config,
    get_client: Callable[[], GenerationClient],
    ask: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
) -> int:
    """
    Entry point for the standalone deslop command.
    """

    ensure_git_repo()
    staged = get_status().staged
    if not staged:
        raise NothingToDoError("no staged changes to deslop; stage changes with `git add` first")

    repo_root = get_repo_root()
    models = resolve_model_config(model_overrides("deslop", config.model_override), repo_root)
    guidelines = load_guidelines("deslop", repo_root)
    result = run_deslop_flow(
        lambda: DeslopWorkflow(get_client(), models.deslop, guidelines, staged_paths=staged),
        assume_yes=config.assume_yes,
        auto_deslop=True,
        extra_prompt=config.extra_prompt,
        ask=ask,
        out=out,
    )
    return 1 if result == "abort" else 0
