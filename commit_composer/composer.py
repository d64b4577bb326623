"""
High-level orchestration for `commit-composer compose`.

The composer is responsible for:
  - making sure there are staged changes to work with,
  - extracting one ChangeRecord per changed file,
  - asking the generation collaborator for a grouping,
  - letting the user revise the drafts, and
  - applying them as a sequence of commits.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional, TextIO

from .ai.interface import GenerationClient
from .apply import apply_drafts, describe_drafts
from .config import Config, load_guidelines, model_overrides, resolve_model_config
from .domain import RepositoryStatus
from .drafts import DraftSet
from .extractor import collect_changes
from .git_adapter import ensure_git_repo, get_repo_root, get_status, stage_all
from .review import review_drafts
from .synthesizer import synthesize

LOG = logging.getLogger(__name__)


def _say(out: Optional[TextIO], text: str) -> None:
    print(text, file=out or sys.stdout)


def prepare_staged_changes(
    config: Config,
    ask: Callable[[str], str],
    out: Optional[TextIO],
    noun: str = "compose",
) -> Optional[RepositoryStatus]:
    """
    Make sure something is staged, staging everything if allowed.

    Returns the fresh status, or None when there is nothing to do or the
    user declined to stage.
    """

    status = get_status()

    if config.stage_all and status.has_changes():
        stage_all()
        _say(out, "All changes staged")
        status = get_status()

    if not status.has_changes():
        _say(out, f"Nothing to {noun}, working tree clean")
        return None

    if not status.staged:
        _say(out, "No staged changes found")
        _say(out, "Unstaged/Untracked files:")
        for path in sorted(status.unstaged | status.untracked):
            _say(out, f"  {path}")

        if not config.assume_yes:
            try:
                answer = ask(f"Stage all changes for {noun}? [Y/n] ").strip().lower()
            except (EOFError, KeyboardInterrupt):
                answer = "n"
            if answer not in ("", "y", "yes"):
                _say(out, "Aborted. Stage changes with `git add` first.")
                return None

        stage_all()
        _say(out, "All changes staged")
        status = get_status()

    return status


def run_compose(
    config: Config,
    get_client: Callable[[], GenerationClient],
    ask: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
) -> int:
    """
    Entry point for the compose command. Returns the process exit code.

    Collaborator and git failures propagate as ComposerError subclasses
    for the CLI to report.
    """

    ensure_git_repo()

    status = prepare_staged_changes(config, ask, out)
    if status is None:
        return 0

    files = collect_changes(staged=True, untracked=status.untracked)
    if not files:
        _say(out, "No diff content to analyze")
        return 0

    _say(out, f"Found {len(files)} changed files to compose")
    if len(files) == 1:
        _say(out, "Tip: for single-file changes, consider `commit-composer commit` instead")

    instructions = config.instructions
    if not config.assume_yes and not instructions:
        try:
            instructions = ask("Additional instructions for AI? (optional, Enter to skip) ").strip() or None
        except (EOFError, KeyboardInterrupt):
            _say(out, "Aborted")
            return 0

    repo_root = get_repo_root()
    models = resolve_model_config(model_overrides("compose", config.model_override), repo_root)
    guidelines = load_guidelines("compose", repo_root)

    def regenerate() -> DraftSet:
        _say(out, "Analyzing changes with AI...")
        return synthesize(files, get_client(), models.compose, instructions, guidelines)

    drafts = regenerate()

    outcome = review_drafts(
        drafts,
        regenerate,
        interactive=not config.assume_yes,
        ask=ask,
        out=out,
    )
    if not outcome.apply:
        _say(out, "Aborted")
        return 0

    if config.dry_run:
        for line in describe_drafts(outcome.drafts):
            _say(out, line)
        return 0

    committed = apply_drafts(outcome.drafts)
    for index, draft in enumerate(committed, start=1):
        _say(out, f"Commit {index}/{len(outcome.drafts)}: {draft.message}")
    _say(out, f"Successfully created {len(committed)} commits!")
    return 0
