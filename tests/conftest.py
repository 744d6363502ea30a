# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a populated workspace, a local cache directory, and an in-memory
artifact client double. No network access: remote I/O is faked or mocked.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from taskcache.remote.api_client import ArtifactApiError
from taskcache.remote.models import ArtifactResponse, CachingStatus, CachingStatusResponse


# === FIXTURES: Workspace ===


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Package root with a typical build output tree."""
    root = tmp_path / "repo" / "packages" / "app"
    (root / "dist" / "nested").mkdir(parents=True)
    (root / "dist" / "index.js").write_text("console.log('hi');\n", encoding="utf-8")
    (root / "dist" / "nested" / "chunk.js").write_bytes(b"\x00\x01binary\xff")
    (root / ".turbo").mkdir()
    (root / ".turbo" / "build.log").write_text("build ok\n", encoding="utf-8")
    return root


@pytest.fixture
def other_workspace(tmp_path: Path) -> Path:
    root = tmp_path / "repo" / "packages" / "lib"
    (root / "out").mkdir(parents=True)
    (root / "out" / "lib.js").write_text("export {};\n", encoding="utf-8")
    return root


@pytest.fixture
def restore_root(tmp_path: Path) -> Path:
    root = tmp_path / "restore"
    root.mkdir()
    return root


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


OUTPUTS = ["dist", ".turbo/build.log"]


def read_tree(root: Path) -> dict[str, bytes]:
    """Relative path -> bytes for every regular file under root."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }


# === DOUBLES ===


class FakeArtifactClient:
    """In-memory stand-in for ArtifactClient.

    Records every call. ``offline`` makes every request fail like a dead
    network; ``upload_delay_s`` slows uploads down to exercise shutdown.
    """

    def __init__(self, upload_delay_s: float = 0.0) -> None:
        self.artifacts: dict[str, ArtifactResponse] = {}
        self.origins: dict[str, str | None] = {}
        self.uploaded: list[str] = []
        self.deleted: list[str | None] = []
        self.upload_delay_s = upload_delay_s
        self.offline = False
        self.upload_status: int | None = None
        self.closed = False

    def _check(self) -> None:
        if self.offline:
            import httpx
            raise httpx.ConnectError("connection refused")

    async def fetch_artifact(self, key: str) -> ArtifactResponse | None:
        self._check()
        return self.artifacts.get(key)

    async def artifact_exists(self, key: str) -> bool:
        self._check()
        return key in self.artifacts

    async def put_artifact(
        self,
        key: str,
        body: bytes,
        duration: int,
        tag: str | None = None,
        origin: str | None = None,
    ) -> None:
        self._check()
        if self.upload_delay_s:
            await asyncio.sleep(self.upload_delay_s)
        if self.upload_status is not None:
            raise ArtifactApiError(self.upload_status, "upload")
        self.uploaded.append(key)
        self.origins[key] = origin
        self.artifacts[key] = ArtifactResponse(duration=duration, expected_tag=tag, body=body)

    async def delete_artifacts(self, origin: str | None = None) -> None:
        self._check()
        self.deleted.append(origin)
        if origin is None:
            self.artifacts.clear()
        else:
            for key in [k for k, o in self.origins.items() if o == origin]:
                self.artifacts.pop(key, None)

    async def get_caching_status(self) -> CachingStatusResponse:
        self._check()
        return CachingStatusResponse(status=CachingStatus.ENABLED)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeArtifactClient:
    return FakeArtifactClient()
