"""Staged file listing with filtering applied before fingerprinting."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from restage.filtering import CompiledGlob, normalize_path
from restage.git import RepositoryError, VersionControl
from restage.staging.fingerprint import sha256_bytes, worktree_fingerprint
from restage.staging.models import StagedFile


def filter_paths(paths: Iterable[str], pattern: CompiledGlob | None) -> list[str]:
    """Return normalized, de-duplicated paths matching pattern in sorted order."""
    normalized = sorted({normalize_path(path) for path in paths})
    if pattern is None:
        return normalized
    return [path for path in normalized if pattern.matches(path)]


def staged_paths(repository: VersionControl, pattern: CompiledGlob | None = None) -> list[str]:
    """Return staged paths matching pattern, without reading any file content."""
    selected = filter_paths(repository.list_staged_paths(), pattern)
    return [path for path in selected if not _is_directory(repository.root / path)]


def snapshot(repository: VersionControl, paths: Sequence[str]) -> list[StagedFile]:
    """Fingerprint paths from the working tree, or from the index when missing on disk."""
    records: list[StagedFile] = []
    for path in paths:
        try:
            fingerprint = worktree_fingerprint(repository.root / path)
        except OSError as error:
            raise RepositoryError(
                reason=f"Could not read staged file {path}: {error.strerror or error}.",
                hint="Check the file permissions and retry.",
            ) from error
        if fingerprint is not None:
            records.append(StagedFile(path=path, fingerprint=fingerprint))
            continue
        staged = repository.read_staged_content(path)
        records.append(StagedFile(path=path, fingerprint=sha256_bytes(staged), on_disk=False))
    return records


def list_staged(
    repository: VersionControl, pattern: CompiledGlob | None = None
) -> list[StagedFile]:
    """List staged files matching pattern with their pre-command fingerprints."""
    return snapshot(repository, staged_paths(repository, pattern))


def _is_directory(full_path: Path) -> bool:
    # Submodule checkouts are not files a command can rewrite.
    return full_path.is_dir() and not full_path.is_symlink()
