import json

from commit_composer.config import (
    Config,
    ModelSelection,
    load_guidelines,
    model_overrides,
    parse_model_string,
    read_settings,
    resolve_model_config,
)
from commit_composer.errors import ComposerError


def _write_models(directory, data):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "models.json").write_text(json.dumps(data))


def test_parse_model_string_keeps_slashes_in_model_id():
    assert parse_model_string("openrouter/meta/llama-3") == ModelSelection("openrouter", "meta/llama-3")
    assert parse_model_string("no-provider") is None
    assert parse_model_string("/model") is None
    assert parse_model_string(None) is None


def test_model_precedence_override_then_repo_then_global_then_default(tmp_path):
    home = tmp_path / "home"
    repo = tmp_path / "repo"
    _write_models(home / ".oc", {
        "commit": {"provider": "global", "model": "c"},
        "compose": {"provider": "global", "model": "m"},
        "deslop": {"provider": "global", "model": "d"},
    })
    _write_models(repo / ".oc", {
        "compose": {"provider": "repo", "model": "m"},
        "deslop": {"provider": "repo", "model": "d"},
    })

    models = resolve_model_config(
        {"deslop": ModelSelection("flag", "d")},
        repo_root=str(repo),
        home=home,
    )

    assert models.commit == ModelSelection("global", "c")
    assert models.compose == ModelSelection("repo", "m")
    assert models.deslop == ModelSelection("flag", "d")
    assert str(models.changelog) == "opencode/claude-sonnet-4-5"


def test_malformed_model_files_are_ignored(tmp_path):
    home = tmp_path / "home"
    (home / ".oc").mkdir(parents=True)
    (home / ".oc" / "models.json").write_text("{not json")
    repo = tmp_path / "repo"
    _write_models(repo / ".oc", {"commit": "opencode/gpt", "unknown": {"provider": "x", "model": "y"}})

    models = resolve_model_config(repo_root=str(repo), home=home)

    assert str(models.commit) == "opencode/gpt-5-nano"


def test_model_overrides_rejects_invalid_flag():
    assert model_overrides("compose", None) == {}
    assert model_overrides("compose", "anthropic/claude") == {"compose": ModelSelection("anthropic", "claude")}

    try:
        model_overrides("compose", "claude")
    except ComposerError as exc:
        assert "provider/model" in str(exc)
    else:
        raise AssertionError("expected ComposerError to be raised")


def test_repository_guidelines_override_builtin(tmp_path):
    (tmp_path / ".oc").mkdir()
    (tmp_path / ".oc" / "compose.md").write_text("Group by directory.")

    assert load_guidelines("compose", str(tmp_path)) == "Group by directory."
    assert "commit message" in load_guidelines("commit", str(tmp_path)).lower()


def test_repository_settings_override_global(tmp_path):
    home = tmp_path / "home"
    repo = tmp_path / "repo"
    (home / ".oc").mkdir(parents=True)
    (repo / ".oc").mkdir(parents=True)
    (home / ".oc" / "settings.json").write_text(json.dumps({"auto_deslop": True, "other": 1}))
    (repo / ".oc" / "settings.json").write_text(json.dumps({"auto_deslop": False}))

    assert read_settings(str(repo), home) == {"auto_deslop": False, "other": 1}


def test_server_url_comes_from_environment(monkeypatch):
    monkeypatch.setenv("COMMIT_COMPOSER_SERVER_URL", "http://127.0.0.1:5000")

    assert Config().server_url == "http://127.0.0.1:5000"
