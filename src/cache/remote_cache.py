# src/cache/remote_cache.py — v1
"""Remote cache backend over the artifact API.

Uploads are fire-and-forget: put() archives the outputs, queues the archive
and returns. Worker tasks drain the queue; shutdown() waits for them up to a
deadline and abandons the rest. Transport faults never leave this module:
they turn into misses and log lines.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Coroutine, Sequence

import httpx

from taskcache.cache.archive import ArchiveError, pack_outputs, unpack_outputs
from taskcache.cache.base_cache import BaseCache
from taskcache.cache.errors import CacheRestoreError, CacheWriteError
from taskcache.cache.models import FetchResult, ItemStatus
from taskcache.cache.paths import origin_label, resolve_root
from taskcache.remote.api_client import HTTP_FORBIDDEN, ArtifactApiError, ArtifactClient
from taskcache.remote.signature import ArtifactSignature

logger = logging.getLogger(__name__)

_REMOTE_FAULTS = (httpx.HTTPError, ArtifactApiError)


@dataclass(frozen=True)
class _Upload:
    key: str
    body: bytes
    duration: int
    origin: str


class RemoteCache(BaseCache):
    """Shared artifact store reached over HTTP."""

    def __init__(
        self,
        client: ArtifactClient,
        repo_root: Path | str | None = None,
        signature: ArtifactSignature | None = None,
        upload_workers: int = 4,
        upload_queue_size: int = 128,
        shutdown_timeout_s: float = 10.0,
    ) -> None:
        self._client = client
        self._repo_root = repo_root
        self._signature = signature
        self._upload_workers = upload_workers
        self._upload_queue_size = upload_queue_size
        self._shutdown_timeout_s = shutdown_timeout_s

        self._queue: asyncio.Queue[_Upload] | None = None
        self._workers: list[asyncio.Task[None]] = []
        self._background: set[asyncio.Task[None]] = set()
        self._in_flight = 0
        self._uploads_disabled = False
        self._closed = False

    @property
    def pending_uploads(self) -> int:
        queued = self._queue.qsize() if self._queue is not None else 0
        return queued + self._in_flight

    # --- Contract ---

    async def put(
        self, root: Path, key: str, duration: int, files: Sequence[str]
    ) -> None:
        """Archive outputs now, upload them in the background."""
        if self._closed or self._uploads_disabled:
            return
        root = resolve_root(root)
        try:
            body = await asyncio.to_thread(pack_outputs, root, files)
        except OSError as e:
            raise CacheWriteError(key, e) from e

        upload = _Upload(
            key=key,
            body=body,
            duration=duration,
            origin=origin_label(root, self._repo_root),
        )
        queue = self._ensure_workers()
        try:
            queue.put_nowait(upload)
        except asyncio.QueueFull:
            logger.warning("Remote upload queue full, dropping upload of %s", key)

    async def fetch(
        self, root: Path, key: str, expected_files: Sequence[str] = ()
    ) -> FetchResult:
        if self._closed:
            return FetchResult.miss()
        try:
            artifact = await self._client.fetch_artifact(key)
        except _REMOTE_FAULTS as e:
            logger.warning("Remote cache fetch for %s failed, treating as miss: %s", key, e)
            return FetchResult.miss()
        if artifact is None:
            return FetchResult.miss()

        if self._signature is not None and not self._signature.validate(
            key, artifact.body, artifact.expected_tag
        ):
            logger.warning("Remote artifact %s failed signature verification", key)
            return FetchResult.miss()

        try:
            restored = await asyncio.to_thread(
                unpack_outputs, artifact.body, resolve_root(root), expected_files
            )
        except ArchiveError as e:
            logger.warning("Remote artifact %s unusable, treating as miss: %s", key, e)
            return FetchResult.miss()
        except OSError as e:
            raise CacheRestoreError(key, e) from e

        logger.debug("Remote cache hit for %s (%d files)", key, len(restored))
        return FetchResult(
            status=ItemStatus(remote=True), files=restored, duration=artifact.duration
        )

    async def exists(self, key: str) -> ItemStatus:
        if self._closed:
            return ItemStatus()
        try:
            present = await self._client.artifact_exists(key)
        except _REMOTE_FAULTS as e:
            logger.debug("Remote existence check for %s failed: %s", key, e)
            present = False
        return ItemStatus(remote=present)

    async def clean(self, root: Path) -> None:
        self._spawn(self._delete(origin_label(root, self._repo_root)))

    async def clean_all(self) -> None:
        self._spawn(self._delete(None))

    async def shutdown(self) -> None:
        """Drain uploads and background deletes, then close the HTTP client."""
        if self._closed:
            return
        self._closed = True

        pending: list[asyncio.Future[object] | asyncio.Task[object]] = []
        if self._queue is not None:
            pending.append(asyncio.ensure_future(self._queue.join()))
        pending.extend(self._background)

        if pending:
            _, not_done = await asyncio.wait(pending, timeout=self._shutdown_timeout_s)
            if not_done:
                logger.warning(
                    "Remote cache shutdown timed out after %.1fs, abandoning %d pending uploads",
                    self._shutdown_timeout_s, self.pending_uploads,
                )
            for task in not_done:
                task.cancel()

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, *self._background, return_exceptions=True)
        self._workers.clear()
        await self._client.aclose()

    # --- Upload workers ---

    def _ensure_workers(self) -> asyncio.Queue[_Upload]:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._upload_queue_size)
            self._workers = [
                asyncio.create_task(self._upload_worker(self._queue), name=f"taskcache-upload-{i}")
                for i in range(self._upload_workers)
            ]
        return self._queue

    async def _upload_worker(self, queue: asyncio.Queue[_Upload]) -> None:
        while True:
            upload = await queue.get()
            self._in_flight += 1
            try:
                await self._upload(upload)
            except Exception:
                logger.exception("Unexpected error uploading %s", upload.key)
            finally:
                self._in_flight -= 1
                queue.task_done()

    async def _upload(self, upload: _Upload) -> None:
        if self._uploads_disabled:
            return
        tag = None
        if self._signature is not None:
            tag = self._signature.generate_tag(upload.key, upload.body)
        try:
            await self._client.put_artifact(
                upload.key, upload.body, upload.duration, tag=tag, origin=upload.origin
            )
        except ArtifactApiError as e:
            if e.status_code == HTTP_FORBIDDEN:
                if not self._uploads_disabled:
                    logger.warning("Remote caching is disabled for this team, skipping uploads: %s", e)
                self._uploads_disabled = True
                return
            logger.warning("Remote upload of %s failed: %s", upload.key, e)
        except httpx.HTTPError as e:
            logger.warning("Remote upload of %s failed: %s", upload.key, e)
        else:
            logger.debug("Uploaded %s (%d bytes)", upload.key, len(upload.body))

    # --- Background deletes ---

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        if self._closed:
            coro.close()
            return
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _delete(self, origin: str | None) -> None:
        try:
            await self._client.delete_artifacts(origin)
        except _REMOTE_FAULTS as e:
            scope = origin if origin is not None else "all origins"
            logger.warning("Remote cache clean for %s failed: %s", scope, e)
