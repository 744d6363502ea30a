# src/cache/base_cache.py — v1
"""Abstract cache backend interface.

Every backend (local, remote, multiplexer, noop) implements this contract.
Paths passed as ``files`` / ``expected_files`` are relative to ``root``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from taskcache.cache.models import FetchResult, ItemStatus


class BaseCache(ABC):
    """Unified interface for task output cache backends."""

    @property
    def enabled(self) -> bool:
        """False only for backends that never store anything."""
        return True

    @abstractmethod
    async def put(
        self, root: Path, key: str, duration: int, files: Sequence[str]
    ) -> None:
        """Persist files (already on disk under root) and duration under key."""

    @abstractmethod
    async def fetch(
        self, root: Path, key: str, expected_files: Sequence[str] = ()
    ) -> FetchResult:
        """Restore the entry for key into root. A miss returns FetchResult.miss()."""

    @abstractmethod
    async def exists(self, key: str) -> ItemStatus:
        """Presence check without restoring anything."""

    @abstractmethod
    async def clean(self, root: Path) -> None:
        """Best-effort removal of entries captured from root."""

    @abstractmethod
    async def clean_all(self) -> None:
        """Best-effort removal of every entry."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Flush pending work and release resources."""
