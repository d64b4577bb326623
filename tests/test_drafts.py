from commit_composer.domain import ChangeRecord, DraftCommit
from commit_composer.drafts import FALLBACK_MESSAGE, DraftSet, build_draft_set
from commit_composer.errors import DraftValidationError


def _changes(*paths):
    return [ChangeRecord(path=path, additions=1, deletions=0, diff=f"+{path}\n") for path in paths]


def test_omitted_files_are_appended_to_last_draft():
    changes = _changes("x", "y", "z")
    proposed = [
        DraftCommit(id="1", message="feat: x", files=["x"]),
        DraftCommit(id="2", message="fix: y", files=["y"]),
    ]

    drafts = build_draft_set(proposed, changes)

    assert len(drafts) == 2
    assert drafts[1].files == ["y", "z"]
    assert sorted(drafts.paths()) == ["x", "y", "z"]


def test_zero_drafts_become_single_fallback_draft():
    drafts = build_draft_set([], _changes("x", "y"))

    assert len(drafts) == 1
    assert drafts[0].message == FALLBACK_MESSAGE
    assert drafts[0].files == ["x", "y"]


def test_unknown_and_duplicate_paths_are_dropped_first_claim_wins():
    proposed = [
        DraftCommit(id="1", message="feat: a", files=["a", "ghost.py"]),
        DraftCommit(id="2", message="feat: b", files=["a", "b"]),
        DraftCommit(id="3", message="docs: nothing", files=["ghost.py"]),
    ]

    drafts = build_draft_set(proposed, _changes("a", "b"))

    assert [d.id for d in drafts] == ["1", "2"]
    assert drafts[0].files == ["a"]
    assert drafts[1].files == ["b"]


def test_blank_message_is_replaced_with_fallback():
    drafts = build_draft_set([DraftCommit(id="1", message="  ", files=["a"])], _changes("a"))

    assert drafts[0].message == FALLBACK_MESSAGE


def test_validate_rejects_file_in_two_drafts():
    draft_set = DraftSet(
        [
            DraftCommit(id="1", message="one", files=["a"]),
            DraftCommit(id="2", message="two", files=["a", "b"]),
        ],
        _changes("a", "b"),
    )

    try:
        draft_set.validate()
    except DraftValidationError as exc:
        assert "duplicated=['a']" in str(exc)
    else:
        raise AssertionError("expected DraftValidationError to be raised")


def test_validate_rejects_missing_file():
    draft_set = DraftSet([DraftCommit(id="1", message="one", files=["a"])], _changes("a", "b"))

    try:
        draft_set.validate()
    except DraftValidationError as exc:
        assert "missing=['b']" in str(exc)
    else:
        raise AssertionError("expected DraftValidationError to be raised")


def test_edit_message_rejects_blank_and_keeps_previous():
    drafts = build_draft_set([DraftCommit(id="1", message="feat: a", files=["a"])], _changes("a"))

    try:
        drafts.edit_message(0, "   ")
    except ValueError:
        pass
    else:
        raise AssertionError("expected ValueError to be raised")

    assert drafts[0].message == "feat: a"
    drafts.edit_message(0, " fix: a ")
    assert drafts[0].message == "fix: a"


def test_summary_and_detail_lines():
    changes = _changes("a")
    changes[0].diff = "\n".join(f"+line {n}" for n in range(20))
    drafts = build_draft_set([DraftCommit(id="1", message="feat: a", files=["a"], reasoning="why")], changes)

    summary = drafts.summary_lines()
    assert summary[0] == "Proposed 1 commits:"
    assert "[1] feat: a" in summary
    assert "    M a (+1/-0)" in summary

    detail = drafts.detail_lines(0)
    assert detail[0] == "Draft 1: feat: a"
    assert "  (why)" in detail
    assert "... (truncated)" in detail
