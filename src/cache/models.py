# src/cache/models.py — v1
"""Cache domain models: ItemStatus, FetchResult, FileRecord, EntryMetadata."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict


class ItemStatus(BaseModel):
    """Where a cache entry was found. Both flags false means a full miss."""

    model_config = ConfigDict(frozen=True)

    local: bool = False
    remote: bool = False

    @property
    def hit(self) -> bool:
        return self.local or self.remote

    def __or__(self, other: ItemStatus) -> ItemStatus:
        return ItemStatus(
            local=self.local or other.local,
            remote=self.remote or other.remote,
        )


class FetchResult(BaseModel):
    """Outcome of a fetch: status, restored relative paths and task duration (ms)."""

    status: ItemStatus = ItemStatus()
    files: list[str] = []
    duration: int = 0

    @classmethod
    def miss(cls) -> FetchResult:
        return cls()

    @property
    def hit(self) -> bool:
        return self.status.hit


class FileRecord(BaseModel):
    """One captured path inside a local entry."""

    path: str
    kind: Literal["file", "dir", "symlink"]
    link_target: str | None = None


class EntryMetadata(BaseModel):
    """Sidecar metadata written next to the captured files of a local entry."""

    key: str
    origin: str
    duration: int
    created_at: datetime
    files: list[FileRecord]

    @property
    def paths(self) -> list[str]:
        return [record.path for record in self.files]
