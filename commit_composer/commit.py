"""
The default `commit-composer commit` flow.

Generates one commit message for everything staged, lets the user
accept, edit or regenerate it, and commits.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, Optional, TextIO

from .ai.interface import GenerationClient
from .ai.prompts import DEFAULT_COMMIT_GUIDELINES, build_commit_prompt
from .ai.replies import strip_code_fences
from .composer import prepare_staged_changes
from .config import (
    Config,
    ModelSelection,
    load_guidelines,
    model_overrides,
    read_settings,
    resolve_model_config,
)
from .deslop import DeslopWorkflow, run_deslop_flow
from .errors import GenerationError
from .git_adapter import create_commit, ensure_git_repo, get_repo_root, get_staged_diff, get_status

LOG = logging.getLogger(__name__)

SESSION_TITLE = "commit-composer-commit"


def generate_commit_message(
    diff: str,
    client: GenerationClient,
    model: ModelSelection,
    guidelines: str = DEFAULT_COMMIT_GUIDELINES,
    context: Optional[str] = None,
) -> str:
    """
    Ask the collaborator for a commit message describing diff.
    """

    reply = client.complete(build_commit_prompt(guidelines, diff, context), model, SESSION_TITLE)
    message = strip_code_fences(reply)
    if not message:
        raise GenerationError("no commit message generated")
    return message


def run_commit(
    config: Config,
    get_client: Callable[[], GenerationClient],
    ask: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
) -> int:
    """
    Entry point for the commit command. Returns the process exit code.
    """

    out = out or sys.stdout
    ensure_git_repo()

    if prepare_staged_changes(config, ask, out, noun="commit") is None:
        return 0

    repo_root = get_repo_root()
    models = resolve_model_config(model_overrides("commit", config.model_override), repo_root)

    if config.deslop is not False:
        settings = read_settings(repo_root)
        auto_deslop = bool(config.deslop) or bool(settings.get("auto_deslop"))
        result = run_deslop_flow(
            lambda: DeslopWorkflow(
                get_client(),
                models.deslop,
                load_guidelines("deslop", repo_root),
                staged_paths=get_status().staged,
            ),
            assume_yes=config.assume_yes,
            auto_deslop=auto_deslop,
            extra_prompt=config.extra_prompt,
            ask=ask,
            out=out,
        )
        if result == "abort":
            return 0

    diff = get_staged_diff()
    if not diff.strip():
        print("No diff content to analyze", file=out)
        return 0
    print(f"Diff: {len(diff.splitlines())} lines", file=out)

    guidelines = load_guidelines("commit", repo_root)

    def generate() -> str:
        print("Generating commit message...", file=out)
        return generate_commit_message(diff, get_client(), models.commit, guidelines)

    message = config.message or generate()

    while not config.assume_yes:
        print(f"\nProposed commit message:\n  {message}\n", file=out)
        try:
            answer = ask("[c]ommit, [e]dit, [r]egenerate or [q]uit? ").strip().lower()
            if answer in ("", "c", "commit"):
                break
            if answer in ("e", "edit"):
                edited = ask("Enter commit message: ").strip()
                if edited:
                    message = edited
            elif answer in ("r", "regenerate"):
                message = generate()
            elif answer in ("q", "quit", "cancel"):
                print("Aborted.", file=out)
                return 0
        except (EOFError, KeyboardInterrupt):
            print("\nAborted.", file=out)
            return 0

    summary = create_commit(message)
    print("Committed successfully!", file=out)
    if summary:
        print(summary, file=out)
    return 0
