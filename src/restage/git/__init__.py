"""Version-control collaborator backed by the git executable."""

from .repository import (
    EmptyCommitPreventedError,
    GitRepository,
    IndexLockedError,
    RepositoryError,
    VersionControl,
)

__all__ = [
    "EmptyCommitPreventedError",
    "GitRepository",
    "IndexLockedError",
    "RepositoryError",
    "VersionControl",
]
