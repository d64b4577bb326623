"""
Prompt texts for the generation collaborator.

DEFAULT_GUIDELINES holds the built-in system instructions per task; a
repository may override any of them (see config.load_guidelines). The
build_* helpers combine guidelines with the structured payload.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

from ..domain import ChangeRecord, LogEntry

DEFAULT_COMMIT_GUIDELINES = """\
# Commit Message Guidelines

Generate commit messages following the Conventional Commits specification.

## Format

```
<type>: <description>

[optional body]
```

## Types

- `feat`: A new feature
- `fix`: A bug fix
- `docs`: Documentation only changes
- `style`: Changes that do not affect the meaning of the code
- `refactor`: A code change that neither fixes a bug nor adds a feature
- `perf`: A code change that improves performance
- `test`: Adding missing tests or correcting existing tests
- `chore`: Changes to the build process or auxiliary tools

## Rules

1. Use lowercase for the type
2. No scope (e.g., use `feat:` not `feat(api):`)
3. Use imperative mood in description ("add" not "added")
4. Keep the first line under 72 characters
5. Do not end the description with a period
6. Only return the commit message, no explanations or markdown formatting
"""

DEFAULT_COMPOSE_GUIDELINES = """\
# Commit Composer Guidelines

You are analyzing git changes to organize them into multiple logical commits.

## Task

Analyze the provided file diffs and group them into logical, atomic commits.
Each group should represent a single, coherent change that could be committed independently.

## Grouping Principles

1. **Feature Cohesion**: Group files that implement the same feature together
2. **Type Separation**: Separate different types of changes (features, fixes, refactors, docs, tests)
3. **Dependency Order**: Order commits so dependencies come before dependents
4. **Atomic Changes**: Each commit should be self-contained and not break the build
5. **Related Files**: Keep related files together (e.g., module + tests)

## Output Format

Return a JSON object with this exact structure:

```json
{
  "drafts": [
    {
      "id": "1",
      "message": "feat: add user authentication",
      "files": ["src/auth/login.py", "src/auth/middleware.py"],
      "reasoning": "These files implement the authentication feature"
    },
    {
      "id": "2",
      "message": "docs: update API documentation",
      "files": ["README.md", "docs/api.md"],
      "reasoning": "Documentation updates should be separate from code changes"
    }
  ],
  "overall_reasoning": "Brief explanation of the overall grouping strategy"
}
```

## Commit Message Rules

1. Use Conventional Commits format: `<type>: <description>`
2. Types: feat, fix, docs, style, refactor, perf, test, chore
3. Use imperative mood ("add" not "added")
4. Keep under 72 characters
5. Be specific about what changed

## Important

- Every file from the input MUST appear in exactly one draft
- Order drafts by logical dependency (what should be committed first)
- Prefer fewer, more meaningful commits over many tiny ones
- Return ONLY the JSON object, no markdown code blocks or explanations
"""

DEFAULT_DESLOP_GUIDELINES = """\
# Deslop Guidelines

You are reviewing staged changes before they are committed and removing
noise that a careful human reviewer would not have written.

## Remove

- Comments that restate the code or narrate the change
- Defensive checks and try/except blocks that cannot trigger
- Debug prints and leftover logging added only for development
- Needless type casts, redundant variables and dead code introduced by the change
- Style that is inconsistent with the surrounding file

## Keep

- Behavior: the cleanup must not change what the code does
- Anything that already existed on the base branch
- Files and hunks that need no cleanup

## Output Format

Return a JSON object:

```json
{
  "patch": "<unified diff against the staged version, or empty string>",
  "summary": "One or two sentences describing what was cleaned up"
}
```

The patch must be a valid `git apply` unified diff with `diff --git`
headers and correct hunk line counts. Return an empty patch when no
cleanup is needed. Return ONLY the JSON object.
"""

DEFAULT_CHANGELOG_GUIDELINES = """\
# Changelog Generation Guidelines

Generate a changelog from the provided commits.

## Format

Use the "Keep a Changelog" format (https://keepachangelog.com/).

## Structure

```markdown
## [Version] - YYYY-MM-DD

### Added
- New features

### Changed
- Changes in existing functionality

### Deprecated
- Soon-to-be removed features

### Removed
- Removed features

### Fixed
- Bug fixes

### Security
- Vulnerability fixes
```

## Rules

1. Group commits by type (feat -> Added, fix -> Fixed, etc.)
2. Write in past tense ("Added" not "Add")
3. Include the commit hash in parentheses at the end of each entry
4. Keep descriptions concise but informative
5. Skip empty sections
6. Only return the changelog content, no explanations
"""

DEFAULT_GUIDELINES = {
    "commit": DEFAULT_COMMIT_GUIDELINES,
    "compose": DEFAULT_COMPOSE_GUIDELINES,
    "deslop": DEFAULT_DESLOP_GUIDELINES,
    "changelog": DEFAULT_CHANGELOG_GUIDELINES,
}


def build_commit_prompt(guidelines: str, diff: str, context: Optional[str] = None) -> str:
    prompt = (
        f"{guidelines}\n\n---\n\n"
        f"Generate a commit message for the following diff:\n\n```diff\n{diff}\n```"
    )
    if context:
        prompt += f"\n\nAdditional context: {context}"
    return prompt


def format_file_summary(files: Iterable[ChangeRecord]) -> str:
    sections = []
    for record in files:
        stats = f"+{record.additions}/-{record.deletions}"
        sections.append(f"### {record.path} ({record.status}, {stats})\n```diff\n{record.diff}\n```")
    return "\n\n".join(sections)


def build_compose_prompt(
    guidelines: str,
    files: Sequence[ChangeRecord],
    instructions: Optional[str] = None,
) -> str:
    prompt = (
        f"{guidelines}\n\n---\n\n"
        f"## Files to analyze ({len(files)} files):\n\n{format_file_summary(files)}"
    )
    if instructions:
        prompt += f"\n\n## Additional Instructions:\n{instructions}"
    prompt += "\n\n---\n\nAnalyze these changes and return a JSON object grouping them into logical commits."
    return prompt


def build_deslop_prompt(
    guidelines: str,
    staged_diff: str,
    base_diff: str,
    base_ref: str,
    extra_prompt: Optional[str] = None,
) -> str:
    prompt = f"{guidelines}\n\n---\n\n## Staged changes to clean up:\n\n```diff\n{staged_diff}\n```"
    if base_diff.strip():
        prompt += (
            f"\n\n## Committed changes on this branch relative to {base_ref} (context only, do not patch):"
            f"\n\n```diff\n{base_diff}\n```"
        )
    if extra_prompt:
        prompt += f"\n\n## Additional Instructions:\n{extra_prompt}"
    prompt += "\n\n---\n\nReturn the JSON object with the cleanup patch and summary."
    return prompt


def build_changelog_prompt(
    guidelines: str,
    commits: Sequence[LogEntry],
    from_ref: str,
    to_ref: str,
    version: Optional[str] = None,
) -> str:
    commits_list = "\n".join(f"- {entry.hash}: {entry.message}" for entry in commits)
    if version:
        version_instruction = (
            f'IMPORTANT: A version bump to {version} was detected. Use "[{version}]" as the '
            'version header with today\'s date (format: YYYY-MM-DD), NOT "[Unreleased]".'
        )
    else:
        version_instruction = 'Use "[Unreleased]" as the version header since no version bump was detected.'
    return (
        f"{guidelines}\n\n---\n\n"
        f"Generate a changelog for the following commits (from {from_ref} to {to_ref}):\n\n"
        f"{version_instruction}\n\n{commits_list}"
    )
