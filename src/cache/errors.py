# src/cache/errors.py — v1
"""Cache exception hierarchy.

A miss is never an exception. Only local faults surface as CacheError;
remote transport faults are absorbed by the remote backend.
"""

from __future__ import annotations


class CacheError(Exception):
    """Base class for cache faults the scheduler must see."""


class InvalidPathError(CacheError):
    """A cacheable path is absolute, empty, or escapes the workspace root."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid cache path {path!r}: {reason}")


class CacheWriteError(CacheError):
    """Storing an entry failed (disk full, permission denied, missing output)."""

    def __init__(self, key: str, cause: Exception | str) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Could not store cache entry {key!r}: {cause}")


class CacheRestoreError(CacheError):
    """Restoring an entry into the workspace failed."""

    def __init__(self, key: str, cause: Exception | str) -> None:
        self.key = key
        self.cause = cause
        super().__init__(f"Could not restore cache entry {key!r}: {cause}")
