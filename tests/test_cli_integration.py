import json
import shutil
import subprocess
from pathlib import Path

import pytest

from commit_composer.ai.interface import GenerationClient
from commit_composer.cli import _with_default_command, main

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git executable not available")


def _run_git(args, cwd: Path) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        text=True,
        capture_output=True,
        check=True,
    )


class ScriptedClient(GenerationClient):
    def __init__(self, reply):
        self.reply = reply
        self.titles = []

    def complete(self, prompt, model, title):
        self.titles.append(title)
        return self.reply


def _install_server(monkeypatch, client):
    class FakeServer:
        closed = False

        def __init__(self, base_url):
            self.base_url = base_url

        def start(self):
            return client

        def close(self):
            FakeServer.closed = True

    monkeypatch.setattr("commit_composer.cli.OpencodeServer", FakeServer)
    return FakeServer


@pytest.fixture
def repo(tmp_path, monkeypatch):
    repo = tmp_path / "repo"
    repo.mkdir()
    _run_git(["init"], cwd=repo)
    _run_git(["config", "user.name", "commit-composer"], cwd=repo)
    _run_git(["config", "user.email", "commit-composer@example.com"], cwd=repo)

    (repo / "app.py").write_text("def run():\n    return 0\n")
    _run_git(["add", "app.py"], cwd=repo)
    _run_git(["commit", "-m", "base"], cwd=repo)

    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(repo)
    return repo


def _files_in(commit: str, cwd: Path):
    output = _run_git(["show", "--name-only", "--format=", commit], cwd=cwd).stdout
    return sorted(line for line in output.splitlines() if line)


def test_compose_splits_changes_into_separate_commits(repo, monkeypatch):
    """
    End-to-end compose run against a real repository.

    A modified tracked file and a new untracked file are grouped into two
    drafts by a scripted collaborator; each resulting commit must contain
    only its own file and the working tree must end up clean.
    """

    (repo / "app.py").write_text("def run():\n    return 1\n")
    (repo / "README.md").write_text("# Demo\n")
    reply = {
        "drafts": [
            {"id": "1", "message": "fix: return 1 from run", "files": ["app.py"]},
            {"id": "2", "message": "docs: add readme", "files": ["README.md"]},
        ],
        "overall_reasoning": "code and docs separately",
    }
    client = ScriptedClient(json.dumps(reply))
    server = _install_server(monkeypatch, client)

    exit_code = main(["compose", "-a", "-y"])

    assert exit_code == 0
    assert server.closed
    assert client.titles == ["commit-composer-compose"]
    log = _run_git(["log", "--format=%s"], cwd=repo).stdout.splitlines()
    assert log == ["docs: add readme", "fix: return 1 from run", "base"]
    assert _files_in("HEAD", repo) == ["README.md"]
    assert _files_in("HEAD~1", repo) == ["app.py"]
    assert _run_git(["status", "--porcelain"], cwd=repo).stdout == ""


def test_compose_from_a_subdirectory_uses_repository_paths(repo, monkeypatch):
    package = repo / "pkg"
    package.mkdir()
    (package / "a.py").write_text("A = 1\n")
    (package / "b.py").write_text("B = 2\n")
    _run_git(["add", "pkg/a.py", "pkg/b.py"], cwd=repo)
    reply = {
        "drafts": [
            {"id": "1", "message": "feat: add a", "files": ["pkg/a.py"]},
            {"id": "2", "message": "feat: add b", "files": ["pkg/b.py"]},
        ]
    }
    _install_server(monkeypatch, ScriptedClient(json.dumps(reply)))
    monkeypatch.chdir(package)

    exit_code = main(["compose", "-y"])

    assert exit_code == 0
    log = _run_git(["log", "--format=%s"], cwd=repo).stdout.splitlines()
    assert log == ["feat: add b", "feat: add a", "base"]
    assert _files_in("HEAD", repo) == ["pkg/b.py"]
    assert _files_in("HEAD~1", repo) == ["pkg/a.py"]
    assert _run_git(["status", "--porcelain"], cwd=repo).stdout == ""


def test_compose_includes_files_inside_untracked_directories(repo, monkeypatch):
    (repo / "app.py").write_text("def run():\n    return 4\n")
    _run_git(["add", "app.py"], cwd=repo)
    (repo / "newdir").mkdir()
    (repo / "newdir" / "x.txt").write_text("notes\n")
    reply = {
        "drafts": [
            {"id": "1", "message": "fix: return 4", "files": ["app.py"]},
            {"id": "2", "message": "docs: add notes", "files": ["newdir/x.txt"]},
        ]
    }
    _install_server(monkeypatch, ScriptedClient(json.dumps(reply)))

    exit_code = main(["compose", "-y"])

    assert exit_code == 0
    assert _files_in("HEAD", repo) == ["newdir/x.txt"]
    assert _files_in("HEAD~1", repo) == ["app.py"]
    assert _run_git(["status", "--porcelain"], cwd=repo).stdout == ""


def test_compose_dry_run_creates_no_commits(repo, monkeypatch, capsys):
    (repo / "app.py").write_text("def run():\n    return 2\n")
    reply = {"drafts": [{"id": "1", "message": "fix: return 2", "files": ["app.py"]}]}
    _install_server(monkeypatch, ScriptedClient(json.dumps(reply)))

    exit_code = main(["compose", "-a", "-y", "--dry-run"])

    assert exit_code == 0
    assert "Dry run: would create 1 commits" in capsys.readouterr().out
    assert _run_git(["log", "--format=%s"], cwd=repo).stdout.splitlines() == ["base"]


def test_commit_with_explicit_message_is_the_default_command(repo, monkeypatch):
    (repo / "app.py").write_text("def run():\n    return 3\n")

    def no_client():
        raise AssertionError("no generation needed when a message is given")

    server = _install_server(monkeypatch, None)
    monkeypatch.setattr(server, "start", lambda self: no_client())

    exit_code = main(["-a", "-y", "--no-deslop", "fix: return 3"])

    assert exit_code == 0
    assert _run_git(["log", "-1", "--format=%s"], cwd=repo).stdout.strip() == "fix: return 3"


def test_clean_tree_is_nothing_to_do(repo, monkeypatch, capsys):
    _install_server(monkeypatch, ScriptedClient("{}"))

    assert main(["compose", "-y"]) == 0
    assert "Nothing to compose, working tree clean" in capsys.readouterr().out


def test_outside_a_repository_exits_with_error(tmp_path, monkeypatch, capsys):
    outside = tmp_path / "plain"
    outside.mkdir()
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    monkeypatch.chdir(outside)
    _install_server(monkeypatch, ScriptedClient("{}"))

    assert main(["compose", "-y"]) == 1
    assert "not a git repository" in capsys.readouterr().err


def test_default_command_is_inserted_after_verbosity_flags():
    assert _with_default_command(["-vv", "-a"]) == ["-vv", "commit", "-a"]
    assert _with_default_command(["fix: typo"]) == ["commit", "fix: typo"]
    assert _with_default_command(["-v", "compose", "-y"]) == ["-v", "compose", "-y"]
    assert _with_default_command(["--help"]) == ["--help"]
