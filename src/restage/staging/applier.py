"""Selective re-staging of paths the command changed."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from restage.git import IndexLockedError, RepositoryError, VersionControl
from restage.staging.models import ChangeSet, RestageReport

IndexUpdate = Callable[[Sequence[str]], None]


class RestageError(RepositoryError):
    """Raised when some or all changed paths could not be written to the index."""

    def __init__(
        self,
        reason: str,
        succeeded: tuple[str, ...],
        failed: tuple[str, ...],
        hint: str = "",
    ) -> None:
        super().__init__(reason=reason, hint=hint)
        self.succeeded = succeeded
        self.failed = failed


def apply(repository: VersionControl, changeset: ChangeSet) -> RestageReport:
    """Add modified paths and remove deleted paths; unchanged paths are never touched.

    Each group is written in one batched call. When a batch fails for a reason
    other than a held index lock, the group is retried path by path in sorted
    order so the error can name exactly which paths failed.
    """
    succeeded: list[str] = []
    failed: list[str] = []
    errors: list[RepositoryError] = []

    added = _apply_group(repository.stage_add, changeset.modified, succeeded, failed, errors)
    if errors and isinstance(errors[0], IndexLockedError):
        failed.extend(changeset.deleted)
        removed: tuple[str, ...] = ()
    else:
        removed = _apply_group(
            repository.stage_remove, changeset.deleted, succeeded, failed, errors
        )

    if errors:
        first = errors[0]
        raise RestageError(
            reason=(
                f"Re-staging failed for {len(failed)} path(s): {first.reason} "
                f"Re-staged: {', '.join(succeeded) or 'none'}. "
                f"Not re-staged: {', '.join(failed)}."
            ),
            succeeded=tuple(succeeded),
            failed=tuple(failed),
            hint=first.hint
            or "Stage the listed paths manually with 'git add' or 'git rm --cached'.",
        ) from first
    return RestageReport(added=added, removed=removed)


def _apply_group(
    update: IndexUpdate,
    paths: tuple[str, ...],
    succeeded: list[str],
    failed: list[str],
    errors: list[RepositoryError],
) -> tuple[str, ...]:
    if not paths:
        return ()
    ordered = tuple(sorted(paths))
    try:
        update(ordered)
    except IndexLockedError as error:
        errors.append(error)
        failed.extend(ordered)
        return ()
    except RepositoryError:
        return _apply_each(update, ordered, succeeded, failed, errors)
    succeeded.extend(ordered)
    return ordered


def _apply_each(
    update: IndexUpdate,
    paths: tuple[str, ...],
    succeeded: list[str],
    failed: list[str],
    errors: list[RepositoryError],
) -> tuple[str, ...]:
    applied: list[str] = []
    for path in paths:
        try:
            update((path,))
        except RepositoryError as error:
            errors.append(error)
            failed.append(path)
            continue
        applied.append(path)
        succeeded.append(path)
    return tuple(applied)
