# src/remote/models.py — v1
"""Artifact API models: CachingStatus, CachingStatusResponse, ArtifactResponse."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class CachingStatus(str, Enum):
    """Remote caching state reported for a team."""

    DISABLED = "disabled"
    ENABLED = "enabled"
    OVER_LIMIT = "over_limit"
    PAUSED = "paused"


class CachingStatusResponse(BaseModel):
    status: CachingStatus


class ArtifactResponse(BaseModel):
    """Downloaded artifact with its recorded duration (ms) and signature tag."""

    duration: int = 0
    expected_tag: str | None = None
    body: bytes
