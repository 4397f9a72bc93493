"""Typed models for one staging run."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class StagedFile:
    """A staged path and the fingerprint captured before the command ran.

    ``on_disk`` is False when the path was staged but missing from the working
    tree, in which case the fingerprint was taken from the staged bytes.
    """

    path: str
    fingerprint: str
    on_disk: bool = True


@dataclass(slots=True, frozen=True)
class ChangeSet:
    """Deterministic classification of filtered paths after the command ran."""

    modified: tuple[str, ...]
    deleted: tuple[str, ...]
    unchanged: tuple[str, ...]

    def __post_init__(self) -> None:
        classified = [*self.modified, *self.deleted, *self.unchanged]
        if len(classified) != len(set(classified)):
            duplicates = sorted({path for path in classified if classified.count(path) > 1})
            raise ValueError(f"ChangeSet groups overlap: {duplicates}")

    @property
    def has_changes(self) -> bool:
        """Return True when anything needs to be written to the index."""
        return bool(self.modified or self.deleted)

    def paths(self) -> tuple[str, ...]:
        """Return every classified path in sorted order."""
        return tuple(sorted((*self.modified, *self.deleted, *self.unchanged)))


@dataclass(slots=True, frozen=True)
class RestageReport:
    """Paths written to the index by one re-stage pass."""

    added: tuple[str, ...]
    removed: tuple[str, ...]
