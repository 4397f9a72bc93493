from __future__ import annotations

from pathlib import Path

import pytest

from restage.git import GitRepository, IndexLockedError, RepositoryError


def test_open_outside_working_tree_raises(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
    outside = tmp_path / "plain"
    outside.mkdir()

    with pytest.raises(RepositoryError, match="Not inside a git working tree"):
        GitRepository.open(cwd=outside)


def test_open_from_subdirectory_finds_top_level(git_sandbox) -> None:
    nested = git_sandbox.root / "a" / "b"
    nested.mkdir(parents=True)

    repository = GitRepository.open(cwd=nested)

    assert repository.root == git_sandbox.root.resolve()
    assert repository.git_dir == (git_sandbox.root / ".git").resolve()


def test_staged_paths_in_unborn_repository(git_sandbox) -> None:
    git_sandbox.write("src/A.js", "let x=1")
    git_sandbox.write("notes.txt", "unstaged")
    git_sandbox.stage("src/A.js")

    repository = GitRepository.open(cwd=git_sandbox.root)

    assert repository.list_staged_paths() == ["src/A.js"]
    assert repository.read_staged_content("src/A.js") == b"let x=1"


def test_staged_deletions_are_excluded_and_renames_report_new_path(git_sandbox) -> None:
    git_sandbox.write("old.txt", "rename me")
    git_sandbox.write("drop.txt", "delete me")
    git_sandbox.stage("old.txt", "drop.txt")
    git_sandbox.commit()
    git_sandbox.git("mv", "old.txt", "new.txt")
    git_sandbox.git("rm", "--quiet", "drop.txt")

    repository = GitRepository.open(cwd=git_sandbox.root)

    assert repository.list_staged_paths() == ["new.txt"]


def test_stage_add_and_remove_with_special_file_names(git_sandbox) -> None:
    names = ["with space.txt", "star*.txt", "[bracket].txt"]
    for name in names:
        git_sandbox.write(name, "v1")
    git_sandbox.stage(*names)
    for name in names:
        git_sandbox.write(name, "v2")
    repository = GitRepository.open(cwd=git_sandbox.root)

    repository.stage_add(names[:2])
    repository.stage_remove(names[2:])

    assert git_sandbox.staged_content("with space.txt") == "v2"
    assert git_sandbox.staged_content("star*.txt") == "v2"
    assert not git_sandbox.in_index("[bracket].txt")
    assert (git_sandbox.root / "[bracket].txt").exists()


def test_held_index_lock_is_reported_distinctly(git_sandbox) -> None:
    git_sandbox.write("a.txt", "v1")
    git_sandbox.stage("a.txt")
    git_sandbox.write("a.txt", "v2")
    (git_sandbox.root / ".git" / "index.lock").write_text("", encoding="utf-8")
    repository = GitRepository.open(cwd=git_sandbox.root)

    with pytest.raises(IndexLockedError) as excinfo:
        repository.stage_add(["a.txt"])

    assert "retry" in excinfo.value.hint


def test_has_staged_changes_tracks_index_against_head(git_sandbox) -> None:
    git_sandbox.write("a.txt", "v1")
    git_sandbox.stage("a.txt")
    repository = GitRepository.open(cwd=git_sandbox.root)
    assert repository.has_staged_changes() is True

    git_sandbox.commit()
    assert repository.has_staged_changes() is False


def test_unstaged_patch_round_trip(git_sandbox) -> None:
    git_sandbox.write("doc.txt", "line one\nline two\n")
    git_sandbox.stage("doc.txt")
    git_sandbox.write("doc.txt", "line one\nline two\nunstaged three\n")
    repository = GitRepository.open(cwd=git_sandbox.root)

    assert repository.unstaged_paths(["doc.txt"]) == ["doc.txt"]
    patch = repository.save_unstaged_patch(["doc.txt"])
    repository.checkout_staged(["doc.txt"])
    assert (git_sandbox.root / "doc.txt").read_text(encoding="utf-8") == "line one\nline two\n"

    assert repository.apply_patch(patch) is True
    assert (git_sandbox.root / "doc.txt").read_text(encoding="utf-8").endswith("unstaged three\n")
    assert git_sandbox.staged_content("doc.txt") == "line one\nline two\n"


def test_read_tree_puts_back_a_recorded_index(git_sandbox) -> None:
    git_sandbox.write("a.txt", "v1")
    git_sandbox.stage("a.txt")
    repository = GitRepository.open(cwd=git_sandbox.root)
    tree = repository.write_tree()
    git_sandbox.write("a.txt", "v2")
    git_sandbox.write("b.txt", "new")
    repository.stage_add(["a.txt", "b.txt"])

    repository.read_tree(tree)

    assert git_sandbox.staged_content("a.txt") == "v1"
    assert not git_sandbox.in_index("b.txt")
    assert (git_sandbox.root / "a.txt").read_text(encoding="utf-8") == "v2"
