"""Post-command change classification."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

from restage.git import RepositoryError
from restage.staging.fingerprint import worktree_fingerprint
from restage.staging.models import ChangeSet, StagedFile


def detect(
    before: Sequence[StagedFile],
    filtered_paths: Iterable[str],
    repo_root: Path,
) -> ChangeSet:
    """Compute deterministic modified/deleted/unchanged groups.

    Any fingerprint mismatch counts as modified, whatever the command's exit
    status was. A path that was already missing before the command ran and is
    still missing is unchanged, not deleted: the command did not remove it, so
    the staged entry the user recorded is kept as is.
    """
    previous = {record.path: record for record in before}
    modified: list[str] = []
    deleted: list[str] = []
    unchanged: list[str] = []
    for path in sorted(set(filtered_paths)):
        try:
            current = worktree_fingerprint(repo_root / path)
        except OSError as error:
            raise RepositoryError(
                reason=f"Could not re-read {path}: {error.strerror or error}.",
            ) from error
        record = previous.get(path)
        if current is None:
            if record is not None and not record.on_disk:
                unchanged.append(path)
                continue
            deleted.append(path)
            continue
        if record is None or record.fingerprint != current:
            modified.append(path)
            continue
        unchanged.append(path)
    return ChangeSet(
        modified=tuple(modified),
        deleted=tuple(deleted),
        unchanged=tuple(unchanged),
    )
