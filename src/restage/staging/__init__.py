"""Staged-file snapshots, change detection and re-staging."""

from .applier import RestageError, apply
from .detector import detect
from .fingerprint import sha256_bytes, sha256_file, worktree_fingerprint
from .models import ChangeSet, RestageReport, StagedFile
from .query import filter_paths, list_staged, snapshot, staged_paths

__all__ = [
    "ChangeSet",
    "RestageError",
    "RestageReport",
    "StagedFile",
    "apply",
    "detect",
    "filter_paths",
    "list_staged",
    "sha256_bytes",
    "sha256_file",
    "snapshot",
    "staged_paths",
    "worktree_fingerprint",
]
