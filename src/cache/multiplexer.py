# src/cache/multiplexer.py — v1
"""Compose several backends into one logical cache.

Backends are ordered fastest first (local before remote). Reads go through
the list until one hits and the hit is copied back into every faster
backend. Writes, cleans and shutdown go to every backend.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from taskcache.cache.base_cache import BaseCache
from taskcache.cache.models import FetchResult, ItemStatus

logger = logging.getLogger(__name__)


class CacheMultiplexer(BaseCache):
    """Read-through / write-through cache over an ordered list of backends."""

    def __init__(self, backends: Sequence[BaseCache]) -> None:
        self._backends = list(backends)

    @property
    def backends(self) -> list[BaseCache]:
        return list(self._backends)

    @property
    def enabled(self) -> bool:
        return any(backend.enabled for backend in self._backends)

    async def put(
        self, root: Path, key: str, duration: int, files: Sequence[str]
    ) -> None:
        """Write to every backend; the first failure is raised after all ran."""
        errors: list[Exception] = []
        for backend in self._backends:
            try:
                await backend.put(root, key, duration, files)
            except Exception as e:
                logger.warning(
                    "%s put failed for %s: %s", type(backend).__name__, key, e
                )
                errors.append(e)
        if errors:
            raise errors[0]

    async def fetch(
        self, root: Path, key: str, expected_files: Sequence[str] = ()
    ) -> FetchResult:
        for index, backend in enumerate(self._backends):
            result = await backend.fetch(root, key, expected_files)
            if not result.hit:
                continue
            if index > 0:
                await self._backfill(self._backends[:index], root, key, result)
            return result
        return FetchResult.miss()

    async def exists(self, key: str) -> ItemStatus:
        status = ItemStatus()
        for backend in self._backends:
            status = status | await backend.exists(key)
        return status

    async def clean(self, root: Path) -> None:
        for backend in self._backends:
            try:
                await backend.clean(root)
            except Exception as e:
                logger.warning("%s clean failed for %s: %s", type(backend).__name__, root, e)

    async def clean_all(self) -> None:
        for backend in self._backends:
            try:
                await backend.clean_all()
            except Exception as e:
                logger.warning("%s clean-all failed: %s", type(backend).__name__, e)

    async def shutdown(self) -> None:
        for backend in self._backends:
            try:
                await backend.shutdown()
            except Exception as e:
                logger.warning("%s shutdown failed: %s", type(backend).__name__, e)

    async def _backfill(
        self,
        backends: Sequence[BaseCache],
        root: Path,
        key: str,
        result: FetchResult,
    ) -> None:
        """Copy a hit from a slower backend into the faster ones."""
        for backend in backends:
            try:
                await backend.put(root, key, result.duration, result.files)
            except Exception as e:
                logger.warning(
                    "Backfilling %s into %s failed: %s", key, type(backend).__name__, e
                )
