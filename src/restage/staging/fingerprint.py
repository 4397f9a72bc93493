"""Content fingerprints for working-tree files and staged blobs."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path

_CHUNK_BYTES = 1024 * 128
_SYMLINK_PREFIX = b"symlink\0"


def sha256_file(path: Path) -> str:
    """Compute SHA-256 hash in deterministic chunked reads."""
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        while True:
            chunk = handle.read(_CHUNK_BYTES)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def sha256_bytes(payload: bytes) -> str:
    """Compute SHA-256 hash of an in-memory payload."""
    return hashlib.sha256(payload).hexdigest()


def symlink_fingerprint(target: bytes) -> str:
    """Fingerprint a symlink by its target, the way git stores it."""
    return sha256_bytes(_SYMLINK_PREFIX + target)


def worktree_fingerprint(path: Path) -> str | None:
    """Return the fingerprint of a working-tree entry, or None when it is absent.

    Symlinks are fingerprinted by their target rather than followed.
    Directories (such as submodule checkouts) count as absent.
    """
    if path.is_symlink():
        return symlink_fingerprint(os.fsencode(os.readlink(path)))
    if not path.is_file():
        return None
    return sha256_file(path)
