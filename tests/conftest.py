from __future__ import annotations

import os
import subprocess
from collections.abc import Sequence
from pathlib import Path

import pytest

from restage.git import IndexLockedError, RepositoryError


class FakeRepository:
    """In-memory index over a real working-tree directory."""

    def __init__(self, root: Path, staged: dict[str, bytes]) -> None:
        self._root = root
        self.git_dir = root / ".git"
        self.index = dict(staged)
        self.add_calls: list[tuple[str, ...]] = []
        self.remove_calls: list[tuple[str, ...]] = []
        self.fail_add: set[str] = set()
        self.trees: dict[str, dict[str, bytes]] = {}
        self.locked = False

    @property
    def root(self) -> Path:
        return self._root

    def write(self, path: str, content: bytes, stage: bool = True) -> None:
        full_path = self._root / path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content)
        if stage:
            self.index[path] = content

    def list_staged_paths(self) -> list[str]:
        return sorted(self.index)

    def read_staged_content(self, path: str) -> bytes:
        return self.index[path]

    def stage_add(self, paths: Sequence[str]) -> None:
        self.add_calls.append(tuple(paths))
        if self.locked:
            raise IndexLockedError(reason="index.lock exists", hint="retry")
        failing = [path for path in paths if path in self.fail_add]
        if failing:
            raise RepositoryError(reason=f"cannot add {failing[0]}")
        for path in paths:
            self.index[path] = (self._root / path).read_bytes()

    def stage_remove(self, paths: Sequence[str]) -> None:
        self.remove_calls.append(tuple(paths))
        if self.locked:
            raise IndexLockedError(reason="index.lock exists", hint="retry")
        for path in paths:
            self.index.pop(path, None)

    def write_tree(self) -> str:
        tree = f"tree-{len(self.trees)}"
        self.trees[tree] = dict(self.index)
        return tree

    def read_tree(self, tree: str) -> None:
        self.index = dict(self.trees[tree])

    def has_staged_changes(self) -> bool:
        return bool(self.index)

    def unstaged_paths(self, paths: Sequence[str]) -> list[str]:
        return []

    def save_unstaged_patch(self, paths: Sequence[str]) -> bytes:
        return b""

    def checkout_staged(self, paths: Sequence[str]) -> None:
        return None

    def apply_patch(self, patch: bytes) -> bool:
        return True


class GitSandbox:
    """A throwaway git repository driven through the git executable."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.git("init", "--quiet")
        self.git("config", "user.name", "Test User")
        self.git("config", "user.email", "test@example.com")
        self.git("config", "commit.gpgsign", "false")

    def git(self, *args: str) -> str:
        completed = subprocess.run(
            ["git", *args],
            cwd=self.root,
            capture_output=True,
            text=True,
            check=True,
        )
        return completed.stdout

    def write(self, path: str, content: str) -> Path:
        full_path = self.root / path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content.encode("utf-8"))
        return full_path

    def stage(self, *paths: str) -> None:
        self.git("--literal-pathspecs", "add", "--", *paths)

    def commit(self, message: str = "commit") -> None:
        self.git("commit", "--quiet", "--no-verify", "-m", message)

    def staged_content(self, path: str) -> str:
        return self.git("show", f":{path}")

    def staged_paths(self) -> list[str]:
        return self.git("diff", "--cached", "--name-only").splitlines()

    def index_listing(self) -> str:
        return self.git("ls-files", "--stage")

    def in_index(self, path: str) -> bool:
        return bool(self.git("--literal-pathspecs", "ls-files", "--", path).strip())

    def script(self, name: str, body: str) -> Path:
        """Write a shell script outside the working tree's tracked files."""
        scripts_dir = self.root.parent / "scripts"
        scripts_dir.mkdir(exist_ok=True)
        path = scripts_dir / name
        path.write_text(body, encoding="utf-8")
        return path


@pytest.fixture
def fake_repository(tmp_path: Path) -> FakeRepository:
    root = tmp_path / "work"
    root.mkdir()
    return FakeRepository(root, staged={})


@pytest.fixture
def git_sandbox(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> GitSandbox:
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)
    for name in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE"):
        monkeypatch.delenv(name, raising=False)
    root = tmp_path / "repo"
    root.mkdir()
    return GitSandbox(root)
