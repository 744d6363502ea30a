# src/cache/local_cache.py — v1
"""Filesystem cache backend.

Layout under the cache directory:

    <entry>/meta.json          sidecar metadata (origin, duration, file list)
    <entry>/files/...          captured outputs at their relative paths
    .tmp/<entry>-<uuid>/       staging area, renamed onto <entry> when complete
    .origins/<origin>/<entry>  index of entries per workspace root

An entry directory only ever appears through a single rename of a fully
written staging directory, so readers see either nothing or a whole entry.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from taskcache.cache.base_cache import BaseCache
from taskcache.cache.errors import CacheRestoreError, CacheWriteError
from taskcache.cache.models import EntryMetadata, FetchResult, FileRecord, ItemStatus
from taskcache.cache.paths import (
    clear_target,
    collect_outputs,
    key_dirname,
    missing_expected,
    origin_id,
    resolve_root,
)

logger = logging.getLogger(__name__)

META_FILE = "meta.json"
FILES_DIR = "files"
STAGING_DIR = ".tmp"
ORIGINS_DIR = ".origins"


class LocalCache(BaseCache):
    """Content store keyed by cache key under a local cache directory."""

    def __init__(self, cache_dir: Path | str, staging_max_age_s: float = 3600) -> None:
        self._root = Path(cache_dir).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)
        self._closed = False
        self.sweep_stale_staging(staging_max_age_s)

    @property
    def cache_dir(self) -> Path:
        return self._root

    # --- Contract ---

    async def put(
        self, root: Path, key: str, duration: int, files: Sequence[str]
    ) -> None:
        """Stage the outputs and publish them with one rename."""
        await asyncio.to_thread(self._put_sync, resolve_root(root), key, duration, files)

    async def fetch(
        self, root: Path, key: str, expected_files: Sequence[str] = ()
    ) -> FetchResult:
        return await asyncio.to_thread(
            self._fetch_sync, resolve_root(root), key, expected_files
        )

    async def exists(self, key: str) -> ItemStatus:
        present = await asyncio.to_thread((self._entry_dir(key) / META_FILE).is_file)
        return ItemStatus(local=present)

    async def clean(self, root: Path) -> None:
        try:
            await asyncio.to_thread(self._clean_sync, resolve_root(root))
        except OSError as e:
            logger.warning("Local cache clean failed for %s: %s", root, e)

    async def clean_all(self) -> None:
        try:
            await asyncio.to_thread(self._clean_all_sync)
        except OSError as e:
            logger.warning("Local cache clean-all failed: %s", e)

    async def shutdown(self) -> None:
        self._closed = True

    # --- Maintenance ---

    def sweep_stale_staging(self, max_age_s: float) -> int:
        """Remove staging directories left behind by crashed writers."""
        staging = self._root / STAGING_DIR
        if not staging.is_dir():
            return 0
        cutoff = time.time() - max_age_s
        removed = 0
        for path in staging.iterdir():
            try:
                if path.stat().st_mtime < cutoff:
                    shutil.rmtree(path, ignore_errors=True)
                    removed += 1
            except OSError:
                continue
        if removed:
            logger.debug("Swept %d stale staging directories", removed)
        return removed

    # --- Put ---

    def _put_sync(self, root: Path, key: str, duration: int, files: Sequence[str]) -> None:
        final = self._entry_dir(key)
        if (final / META_FILE).is_file():
            logger.debug("Local cache entry %s already present, skipping put", key)
            return

        try:
            records = collect_outputs(root, files)
        except OSError as e:
            raise CacheWriteError(key, e) from e

        staging = self._root / STAGING_DIR / f"{final.name}-{uuid.uuid4().hex}"
        try:
            self._stage(staging, root, key, duration, records)
            self._publish(staging, final, key)
        except OSError as e:
            raise CacheWriteError(key, e) from e
        finally:
            if staging.exists():
                shutil.rmtree(staging, ignore_errors=True)

        self._index_origin(root, final.name)

    def _stage(
        self,
        staging: Path,
        root: Path,
        key: str,
        duration: int,
        records: list[FileRecord],
    ) -> None:
        files_dir = staging / FILES_DIR
        files_dir.mkdir(parents=True)
        for record in records:
            source = root / record.path
            target = files_dir / record.path
            target.parent.mkdir(parents=True, exist_ok=True)
            if record.kind == "dir":
                target.mkdir(exist_ok=True)
            elif record.kind == "symlink":
                os.symlink(record.link_target or "", target)
            else:
                shutil.copy2(source, target)

        meta = EntryMetadata(
            key=key,
            origin=root.as_posix(),
            duration=duration,
            created_at=datetime.now(timezone.utc),
            files=records,
        )
        # Metadata last: an entry without meta.json is never considered complete.
        (staging / META_FILE).write_text(meta.model_dump_json(indent=2), encoding="utf-8")

    def _publish(self, staging: Path, final: Path, key: str) -> None:
        if final.exists():
            if (final / META_FILE).is_file():
                logger.debug("Concurrent put won for %s, discarding staging copy", key)
                return
            # Debris from an older layout or an interrupted heal.
            shutil.rmtree(final, ignore_errors=True)
        try:
            os.rename(staging, final)
        except OSError:
            if (final / META_FILE).is_file():
                logger.debug("Concurrent put won for %s, discarding staging copy", key)
                return
            raise

    def _index_origin(self, root: Path, entry_name: str) -> None:
        index = self._root / ORIGINS_DIR / origin_id(root)
        try:
            index.mkdir(parents=True, exist_ok=True)
            (index / entry_name).touch()
        except OSError as e:
            logger.warning("Could not index cache entry %s for %s: %s", entry_name, root, e)

    # --- Fetch ---

    def _fetch_sync(
        self, root: Path, key: str, expected_files: Sequence[str]
    ) -> FetchResult:
        entry = self._entry_dir(key)
        meta = self._read_meta(entry)
        if meta is None:
            return FetchResult.miss()

        files_dir = entry / FILES_DIR
        for record in meta.files:
            if not (files_dir / record.path).is_symlink() and not (files_dir / record.path).exists():
                logger.warning(
                    "Local cache entry %s is missing %s, removing it", key, record.path
                )
                self._remove_entry(entry)
                return FetchResult.miss()

        missing = missing_expected(meta.paths, expected_files)
        if missing:
            logger.debug("Local cache entry %s lacks expected outputs %s", key, missing)
            return FetchResult.miss()

        try:
            restored = self._restore(files_dir, root, meta.files)
        except OSError as e:
            raise CacheRestoreError(key, e) from e

        logger.debug("Local cache hit for %s (%d files)", key, len(restored))
        return FetchResult(
            status=ItemStatus(local=True), files=restored, duration=meta.duration
        )

    def _restore(self, files_dir: Path, root: Path, records: list[FileRecord]) -> list[str]:
        restored: list[str] = []
        for record in records:
            source = files_dir / record.path
            target = root / record.path
            target.parent.mkdir(parents=True, exist_ok=True)
            if record.kind == "dir":
                if target.is_symlink() or target.is_file():
                    target.unlink()
                target.mkdir(exist_ok=True)
            else:
                clear_target(target)
                if record.kind == "symlink":
                    os.symlink(os.readlink(source), target)
                else:
                    shutil.copy2(source, target)
            restored.append(record.path)
        return restored

    def _read_meta(self, entry: Path) -> EntryMetadata | None:
        meta_path = entry / META_FILE
        if not meta_path.is_file():
            return None
        try:
            return EntryMetadata.model_validate_json(meta_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Corrupt cache metadata in %s: %s", entry.name, e)
            self._remove_entry(entry)
            return None

    # --- Clean ---

    def _clean_sync(self, root: Path) -> None:
        index = self._root / ORIGINS_DIR / origin_id(root)
        if not index.is_dir():
            return
        origin = root.as_posix()
        removed = 0
        for marker in index.iterdir():
            entry = self._root / marker.name
            meta = self._read_meta(entry)
            if meta is not None and meta.origin == origin:
                self._remove_entry(entry)
                removed += 1
        shutil.rmtree(index, ignore_errors=True)
        logger.debug("Removed %d local cache entries for %s", removed, origin)

    def _clean_all_sync(self) -> None:
        if self._root.exists():
            shutil.rmtree(self._root)
        self._root.mkdir(parents=True, exist_ok=True)

    # --- Helpers ---

    def _entry_dir(self, key: str) -> Path:
        return self._root / key_dirname(key)

    def _remove_entry(self, entry: Path) -> None:
        """Move the entry aside before deleting so readers never see half of it."""
        trash = self._root / STAGING_DIR / f"{entry.name}-{uuid.uuid4().hex}.trash"
        try:
            trash.parent.mkdir(parents=True, exist_ok=True)
            os.rename(entry, trash)
        except OSError:
            return
        shutil.rmtree(trash, ignore_errors=True)
