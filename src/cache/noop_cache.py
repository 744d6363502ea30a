# src/cache/noop_cache.py — v1
"""Backend used when caching is disabled or misconfigured: always misses."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from taskcache.cache.base_cache import BaseCache
from taskcache.cache.models import FetchResult, ItemStatus


class NoopCache(BaseCache):
    """Cache that stores nothing and never hits."""

    @property
    def enabled(self) -> bool:
        return False

    async def put(
        self, root: Path, key: str, duration: int, files: Sequence[str]
    ) -> None:
        return None

    async def fetch(
        self, root: Path, key: str, expected_files: Sequence[str] = ()
    ) -> FetchResult:
        return FetchResult.miss()

    async def exists(self, key: str) -> ItemStatus:
        return ItemStatus()

    async def clean(self, root: Path) -> None:
        return None

    async def clean_all(self) -> None:
        return None

    async def shutdown(self) -> None:
        return None
