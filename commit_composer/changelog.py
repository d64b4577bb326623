"""
The `commit-composer changelog` flow.

Picks a starting ref (a release tag or a recent commit), collects the
commits up to the target ref and asks the generation collaborator for a
Keep-a-Changelog style summary.
"""

from __future__ import annotations

import json
import logging
import sys
import tomllib
from typing import Callable, List, Optional, TextIO, Tuple

from .ai.interface import GenerationClient
from .ai.prompts import DEFAULT_CHANGELOG_GUIDELINES, build_changelog_prompt
from .ai.replies import strip_code_fences
from .config import Config, ModelSelection, load_guidelines, model_overrides, resolve_model_config
from .domain import LogEntry
from .errors import GenerationError, GitError
from .git_adapter import (
    ensure_git_repo,
    get_changed_paths_between,
    get_commits_between,
    get_log,
    get_releases,
    get_repo_root,
    parse_oneline_log,
    show_file,
)

LOG = logging.getLogger(__name__)

SESSION_TITLE = "commit-composer-changelog"
RECENT_COMMIT_LIMIT = 20
RELEASE_CHOICE_LIMIT = 10


def _read_version(path: str, content: Optional[str]) -> Optional[str]:
    if content is None:
        return None
    try:
        if path == "package.json":
            version = json.loads(content).get("version")
        else:
            data = tomllib.loads(content)
            version = data.get("project", {}).get("version") or data.get("tool", {}).get("poetry", {}).get("version")
    except (ValueError, AttributeError) as exc:
        LOG.debug("Could not read version from %s: %s", path, exc)
        return None
    return version if isinstance(version, str) and version else None


def detect_version_bump(from_ref: str, to_ref: str) -> Optional[Tuple[Optional[str], str, str]]:
    """
    Return (old_version, new_version, file) when a root manifest's version
    changed between the refs, else None.
    """

    changed = set(get_changed_paths_between(from_ref, to_ref))
    for path in ("pyproject.toml", "package.json"):
        if path not in changed:
            continue
        old_version = _read_version(path, show_file(from_ref, path))
        new_version = _read_version(path, show_file(to_ref, path))
        if new_version and old_version != new_version:
            return old_version, new_version, path
    return None


def generate_changelog(
    commits: List[LogEntry],
    from_ref: str,
    to_ref: str,
    client: GenerationClient,
    model: ModelSelection,
    guidelines: str = DEFAULT_CHANGELOG_GUIDELINES,
    version: Optional[str] = None,
) -> str:
    prompt = build_changelog_prompt(guidelines, commits, from_ref, to_ref, version)
    changelog = strip_code_fences(client.complete(prompt, model, SESSION_TITLE))
    if not changelog:
        raise GenerationError("no changelog generated")
    return changelog


def starting_point_choices() -> List[Tuple[str, str]]:
    """
    Return (ref, label) pairs: recent release tags, then recent commits.

    A repository without tags or without commits simply contributes no
    choices.
    """

    try:
        releases = get_releases()
    except GitError as exc:
        LOG.debug("Could not list tags: %s", exc)
        releases = []
    try:
        recent = parse_oneline_log(get_log(limit=RECENT_COMMIT_LIMIT))
    except GitError as exc:
        LOG.debug("Could not read log: %s", exc)
        recent = []

    choices = [(tag, f"{tag} (release)") for tag in releases[:RELEASE_CHOICE_LIMIT]]
    choices.extend((entry.hash, f"{entry.hash} {entry.message}") for entry in recent)
    return choices


def run_changelog(
    config: Config,
    get_client: Callable[[], GenerationClient],
    ask: Callable[[str], str] = input,
    out: Optional[TextIO] = None,
) -> int:
    out = out or sys.stdout
    ensure_git_repo()

    from_ref = config.from_ref
    to_ref = config.to_ref or "HEAD"

    if not from_ref:
        choices = starting_point_choices()
        if not choices:
            print("No releases or commits found", file=out)
            return 0

        if config.assume_yes:
            from_ref = choices[0][0]
        else:
            print("Select starting point for changelog:", file=out)
            for number, (_, label) in enumerate(choices, start=1):
                print(f"  {number}) {label}", file=out)
            try:
                answer = ask("Choice [1]: ").strip() or "1"
            except (EOFError, KeyboardInterrupt):
                print("Aborted.", file=out)
                return 0
            if not answer.isdigit() or not 1 <= int(answer) <= len(choices):
                print(f"Invalid choice: {answer!r}", file=sys.stderr)
                return 1
            from_ref = choices[int(answer) - 1][0]

    commits = get_commits_between(from_ref, to_ref)
    if not commits:
        print("No commits found in the specified range", file=out)
        return 0

    print(f"Found {len(commits)} commits in {from_ref}..{to_ref}:", file=out)
    for entry in commits:
        print(f"  {entry.hash} {entry.message}", file=out)

    bump = detect_version_bump(from_ref, to_ref)
    version = bump[1] if bump else None
    if bump:
        print(f"Detected version bump in {bump[2]}: {bump[0] or 'none'} -> {bump[1]}", file=out)

    repo_root = get_repo_root()
    models = resolve_model_config(model_overrides("changelog", config.model_override), repo_root)
    changelog = generate_changelog(
        commits,
        from_ref,
        to_ref,
        get_client(),
        models.changelog,
        load_guidelines("changelog", repo_root),
        version=version,
    )

    print("\n--- Generated Changelog ---\n", file=out)
    print(changelog, file=out)
    print("\n--- End Changelog ---", file=out)
    return 0
