"""
Configuration model for commit-composer.

The CLI constructs a Config instance and passes it down into the core
orchestration logic so behavior can be adjusted without relying on
global state. Persisted settings (model selections, guideline prompts)
are read from `.oc/` in the repository root and in the user's home
directory; this module never writes them.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

from .ai.prompts import DEFAULT_GUIDELINES
from .errors import ComposerError

LOG = logging.getLogger(__name__)

CONFIG_DIR = ".oc"
MODEL_CONFIG_FILE = "models.json"
SETTINGS_FILE = "settings.json"
GUIDELINE_FILES = {
    "commit": "config.md",
    "compose": "compose.md",
    "deslop": "deslop.md",
    "changelog": "changelog.md",
}

DEFAULT_SERVER_URL = "http://127.0.0.1:4096"
SERVER_URL_ENV = "COMMIT_COMPOSER_SERVER_URL"


@dataclass
class Config:
    """
    Top-level configuration for a commit-composer run.
    """

    command: str = "commit"
    stage_all: bool = False
    assume_yes: bool = False
    instructions: Optional[str] = None
    model_override: Optional[str] = None
    message: Optional[str] = None
    from_ref: Optional[str] = None
    to_ref: str = "HEAD"
    deslop: Optional[bool] = None
    dry_run: bool = False
    extra_prompt: Optional[str] = None
    verbosity: int = 0
    server_url: str = field(default_factory=lambda: os.environ.get(SERVER_URL_ENV, DEFAULT_SERVER_URL))


@dataclass(frozen=True)
class ModelSelection:
    provider: str
    model: str

    def __str__(self) -> str:
        return f"{self.provider}/{self.model}"


@dataclass
class ModelConfig:
    """
    Model selection per task type.
    """

    commit: ModelSelection = ModelSelection("opencode", "gpt-5-nano")
    compose: ModelSelection = ModelSelection("opencode", "claude-sonnet-4-5")
    deslop: ModelSelection = ModelSelection("opencode", "claude-sonnet-4-5")
    changelog: ModelSelection = ModelSelection("opencode", "claude-sonnet-4-5")


def parse_model_string(model_string: Optional[str]) -> Optional[ModelSelection]:
    """
    Parse "provider/model" into a ModelSelection.

    Everything after the first slash belongs to the model id, so model
    names containing slashes survive. Returns None when the string has
    no provider part.
    """

    if not model_string:
        return None
    provider, sep, model = model_string.strip().partition("/")
    if not sep or not provider or not model:
        return None
    return ModelSelection(provider=provider, model=model)


def global_config_dir(home: Optional[Path] = None) -> Path:
    return (home or Path.home()) / CONFIG_DIR


def repo_config_dir(repo_root: Optional[str]) -> Optional[Path]:
    if not repo_root:
        return None
    return Path(repo_root) / CONFIG_DIR


def _read_json(path: Path) -> Dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        LOG.warning("Ignoring unreadable config file %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        LOG.warning("Ignoring config file %s: expected a JSON object", path)
        return {}
    return data


def read_model_config(path: Path) -> Dict[str, ModelSelection]:
    """
    Read per-task model selections from a models.json file.

    Entries that are not {"provider": ..., "model": ...} objects are
    skipped.
    """

    selections: Dict[str, ModelSelection] = {}
    for task, value in _read_json(path).items():
        if not isinstance(value, dict):
            continue
        provider = value.get("provider")
        model = value.get("model")
        if isinstance(provider, str) and provider and isinstance(model, str) and model:
            selections[task] = ModelSelection(provider=provider, model=model)
        else:
            LOG.debug("Skipping malformed model entry %r in %s", task, path)
    return selections


def resolve_model_config(
    overrides: Optional[Dict[str, ModelSelection]] = None,
    repo_root: Optional[str] = None,
    home: Optional[Path] = None,
) -> ModelConfig:
    """
    Resolve the effective model for each task.

    Precedence: explicit override > repository file > user-global file >
    built-in default.
    """

    config = ModelConfig()
    task_names = {f.name for f in fields(ModelConfig)}

    layers = [read_model_config(global_config_dir(home) / MODEL_CONFIG_FILE)]
    repo_dir = repo_config_dir(repo_root)
    if repo_dir is not None:
        layers.append(read_model_config(repo_dir / MODEL_CONFIG_FILE))
    layers.append(dict(overrides or {}))

    for layer in layers:
        known = {task: selection for task, selection in layer.items() if task in task_names}
        config = replace(config, **known)
    return config


def read_settings(repo_root: Optional[str] = None, home: Optional[Path] = None) -> Dict[str, Any]:
    """
    Merge settings.json from the user-global and repository config dirs.
    """

    settings = _read_json(global_config_dir(home) / SETTINGS_FILE)
    repo_dir = repo_config_dir(repo_root)
    if repo_dir is not None:
        settings.update(_read_json(repo_dir / SETTINGS_FILE))
    return settings


def load_guidelines(kind: str, repo_root: Optional[str] = None) -> str:
    """
    Return the guideline prompt for a task.

    A repository can override the built-in text with `.oc/<file>.md`.
    """

    if kind not in GUIDELINE_FILES:
        raise ValueError(f"unknown guideline kind: {kind}")

    repo_dir = repo_config_dir(repo_root)
    if repo_dir is not None:
        path = repo_dir / GUIDELINE_FILES[kind]
        if path.is_file():
            try:
                return path.read_text(encoding="utf-8")
            except OSError as exc:
                LOG.warning("Falling back to built-in %s guidelines: %s", kind, exc)

    return DEFAULT_GUIDELINES[kind]


def model_overrides(task: str, model_string: Optional[str]) -> Dict[str, ModelSelection]:
    """
    Turn a --model flag into an override mapping for one task.
    """

    if not model_string:
        return {}
    selection = parse_model_string(model_string)
    if selection is None:
        raise ComposerError(f"invalid model {model_string!r}; expected provider/model")
    return {task: selection}
