from commit_composer.apply import apply_drafts, describe_drafts, paths_to_stage
from commit_composer.domain import ChangeRecord, DraftCommit
from commit_composer.drafts import build_draft_set
from commit_composer.errors import ApplyError, GitError


def _draft_set(groups, changes=None):
    paths = [path for _, files in groups for path in files]
    changes = changes or [ChangeRecord(path=path) for path in paths]
    proposed = [DraftCommit(id=str(n), message=message, files=list(files)) for n, (message, files) in enumerate(groups, 1)]
    return build_draft_set(proposed, changes)


class FakeIndex:
    """
    Records which paths are staged at each commit.
    """

    def __init__(self, fail_on_commit=None):
        self.staged = set()
        self.commits = []
        self.fail_on_commit = fail_on_commit

    def unstage_all(self):
        self.staged.clear()

    def stage_files(self, paths):
        self.staged.update(paths)

    def create_commit(self, message):
        if self.fail_on_commit is not None and len(self.commits) + 1 == self.fail_on_commit:
            raise GitError("git command failed: git commit -m: pre-commit hook failed")
        self.commits.append((message, sorted(self.staged)))
        return ""


def _install(monkeypatch, index):
    monkeypatch.setattr("commit_composer.apply.unstage_all", index.unstage_all)
    monkeypatch.setattr("commit_composer.apply.stage_files", index.stage_files)
    monkeypatch.setattr("commit_composer.apply.create_commit", index.create_commit)


def test_each_commit_contains_only_its_draft_files(monkeypatch):
    index = FakeIndex()
    index.staged = {"x", "y"}
    _install(monkeypatch, index)

    committed = apply_drafts(_draft_set([("feat: x", ["x"]), ("feat: y", ["y"])]))

    assert [d.message for d in committed] == ["feat: x", "feat: y"]
    assert index.commits == [("feat: x", ["x"]), ("feat: y", ["y"])]


def test_failure_on_second_commit_reports_partial_progress(monkeypatch):
    index = FakeIndex(fail_on_commit=2)
    _install(monkeypatch, index)
    drafts = _draft_set([("one", ["a"]), ("two", ["b"]), ("three", ["c"])])

    try:
        apply_drafts(drafts)
    except ApplyError as exc:
        assert [d.message for d in exc.committed] == ["one"]
        assert exc.total == 3
        assert "1 of 3 commits were created" in str(exc)
        assert "pre-commit hook failed" in str(exc)
    else:
        raise AssertionError("expected ApplyError to be raised")

    # The third draft is never attempted.
    assert [message for message, _ in index.commits] == ["one"]
    assert index.staged == {"b"}


def test_renamed_files_stage_old_and_new_paths():
    changes = [
        ChangeRecord(path="new_name.py", status="renamed", old_path="old_name.py"),
        ChangeRecord(path="other.py"),
    ]
    drafts = _draft_set([("refactor: rename", ["new_name.py", "other.py"])], changes)

    assert paths_to_stage(drafts, 0) == ["old_name.py", "new_name.py", "other.py"]


def test_describe_drafts_lists_every_commit():
    drafts = _draft_set([("feat: x", ["x", "z"]), ("feat: y", ["y"])])

    assert describe_drafts(drafts) == [
        "Dry run: would create 2 commits",
        "  Commit 1: feat: x (2 files)",
        "  Commit 2: feat: y (1 files)",
    ]
