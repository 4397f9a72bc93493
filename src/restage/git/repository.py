"""Thin wrapper over git plumbing for reading and updating the index."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol


class RepositoryError(Exception):
    """Raised when the repository cannot be read or the index cannot be updated."""

    def __init__(self, reason: str, hint: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.hint = hint


class IndexLockedError(RepositoryError):
    """Raised when another process holds the index lock."""


class EmptyCommitPreventedError(RepositoryError):
    """Raised when re-staging leaves nothing staged to commit."""


class VersionControl(Protocol):
    """Operations the staging pipeline needs from version control."""

    @property
    def root(self) -> Path: ...

    def list_staged_paths(self) -> list[str]: ...

    def read_staged_content(self, path: str) -> bytes: ...

    def stage_add(self, paths: Sequence[str]) -> None: ...

    def stage_remove(self, paths: Sequence[str]) -> None: ...


class GitRepository:
    """Index access for one git working tree.

    Paths are always repository-relative with forward slashes. Every git call
    runs from the top-level directory with literal pathspecs so that file
    names containing glob characters are never expanded by git.
    """

    def __init__(self, root: Path, git_dir: Path, git_executable: str = "git") -> None:
        self._root = root.resolve()
        self._git_dir = git_dir.resolve()
        self._git_executable = git_executable

    @classmethod
    def open(cls, cwd: Path | None = None, git_executable: str = "git") -> GitRepository:
        """Locate the working tree containing cwd, honouring GIT_DIR."""
        start = (cwd or Path.cwd()).resolve()
        completed = _run_git(
            git_executable,
            start,
            ["rev-parse", "--show-toplevel", "--absolute-git-dir"],
        )
        if completed.returncode != 0:
            raise RepositoryError(
                reason="Not inside a git working tree.",
                hint="Run restage from a directory inside a git repository.",
            )
        lines = completed.stdout.decode("utf-8", errors="surrogateescape").splitlines()
        if len(lines) < 2 or not lines[0]:
            raise RepositoryError(
                reason="Not inside a git working tree.",
                hint="Bare repositories have no working tree to format.",
            )
        return cls(root=Path(lines[0]), git_dir=Path(lines[1]), git_executable=git_executable)

    @property
    def root(self) -> Path:
        """Return the top-level directory of the working tree."""
        return self._root

    @property
    def git_dir(self) -> Path:
        """Return the absolute git directory."""
        return self._git_dir

    def list_staged_paths(self) -> list[str]:
        """Return staged paths, excluding staged deletions, in sorted order."""
        # --cached diffs against the empty tree when HEAD is unborn.
        output = self._git(
            ["diff", "--cached", "--name-only", "-z", "--no-renames", "--diff-filter=d"]
        )
        return sorted(set(_split_nul(output)))

    def read_staged_content(self, path: str) -> bytes:
        """Return the bytes recorded in the index for path."""
        return self._git(["cat-file", "blob", f":{path}"])

    def stage_add(self, paths: Sequence[str]) -> None:
        """Add working-tree content of paths to the index in one batch."""
        if not paths:
            return
        self._git(
            ["add", "--pathspec-from-file=-", "--pathspec-file-nul"],
            stdin=_join_nul(paths),
        )

    def stage_remove(self, paths: Sequence[str]) -> None:
        """Remove paths from the index in one batch, leaving the working tree alone."""
        if not paths:
            return
        self._git(
            [
                "rm",
                "--cached",
                "--force",
                "--quiet",
                "--ignore-unmatch",
                "--pathspec-from-file=-",
                "--pathspec-file-nul",
            ],
            stdin=_join_nul(paths),
        )

    def write_tree(self) -> str:
        """Record the current index as a tree object and return its id."""
        return self._git(["write-tree"]).decode("ascii").strip()

    def read_tree(self, tree: str) -> None:
        """Replace the index with the entries of tree, then refresh stat data."""
        self._git(["read-tree", tree])
        # Exit status 1 only means some entries still need updating.
        self._run(["update-index", "-q", "--refresh"])

    def has_staged_changes(self) -> bool:
        """Return True when the index differs from HEAD."""
        completed = self._run(["diff", "--cached", "--quiet"])
        if completed.returncode == 0:
            return False
        if completed.returncode == 1:
            return True
        raise _error_from(completed, "git diff --cached")

    def unstaged_paths(self, paths: Sequence[str]) -> list[str]:
        """Return the subset of paths whose working tree differs from the index."""
        if not paths:
            return []
        # Plumbing diff-files never refreshes or rewrites the index.
        output = self._git(["diff-files", "--name-only", "-z", "--diff-filter=d"])
        wanted = set(paths)
        return sorted(path for path in _split_nul(output) if path in wanted)

    def save_unstaged_patch(self, paths: Sequence[str]) -> bytes:
        """Return a binary patch of working-tree changes not yet staged for paths."""
        return self._git(
            [
                "diff-files",
                "--patch",
                "--binary",
                "--src-prefix=a/",
                "--dst-prefix=b/",
                "--",
                *paths,
            ]
        )

    def checkout_staged(self, paths: Sequence[str]) -> None:
        """Overwrite working-tree files with their staged content."""
        if not paths:
            return
        self._git(["checkout-index", "--force", "-z", "--stdin"], stdin=_join_nul(paths))

    def apply_patch(self, patch: bytes) -> bool:
        """Apply a patch to the working tree only; return False when it does not apply."""
        if not patch:
            return True
        completed = self._run(["apply", "--binary", "--whitespace=nowarn", "-"], stdin=patch)
        return completed.returncode == 0

    def _git(self, args: list[str], stdin: bytes | None = None) -> bytes:
        completed = self._run(args, stdin=stdin)
        if completed.returncode != 0:
            raise _error_from(completed, f"git {args[0]}")
        return completed.stdout

    def _run(
        self, args: list[str], stdin: bytes | None = None
    ) -> subprocess.CompletedProcess[bytes]:
        return _run_git(self._git_executable, self._root, args, stdin=stdin)


def _run_git(
    git_executable: str,
    cwd: Path,
    args: list[str],
    stdin: bytes | None = None,
) -> subprocess.CompletedProcess[bytes]:
    env = os.environ.copy()
    env["GIT_LITERAL_PATHSPECS"] = "1"
    env.setdefault("LC_ALL", "C")
    try:
        return subprocess.run(
            [git_executable, *args],
            cwd=cwd,
            input=stdin,
            capture_output=True,
            env=env,
            check=False,
        )
    except OSError as error:
        raise RepositoryError(
            reason=f"Could not execute {git_executable!r}: {error.strerror or error}.",
            hint="Install git or make sure it is on PATH.",
        ) from error


def _error_from(completed: subprocess.CompletedProcess[bytes], action: str) -> RepositoryError:
    stderr = completed.stderr.strip()
    message = stderr.decode("utf-8", errors="replace") or f"exit status {completed.returncode}"
    if b"index.lock" in stderr:
        return IndexLockedError(
            reason=f"{action} failed because the index is locked: {message}",
            hint="Another git process is running. Wait for it to finish, then retry.",
        )
    return RepositoryError(reason=f"{action} failed: {message}")


def _split_nul(output: bytes) -> list[str]:
    return [
        item.decode("utf-8", errors="surrogateescape") for item in output.split(b"\0") if item
    ]


def _join_nul(paths: Sequence[str]) -> bytes:
    return b"".join(path.encode("utf-8", errors="surrogateescape") + b"\0" for path in paths)
