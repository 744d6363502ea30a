# src/remote/api_client.py — v1
"""Async HTTP client for the remote artifact API.

Endpoints (relative to the configured base URL):
    GET    /v8/artifacts/{key}      download
    HEAD   /v8/artifacts/{key}      existence probe
    PUT    /v8/artifacts/{key}      upload
    DELETE /v8/artifacts?origin=    scoped delete (no origin = purge)
    GET    /v8/artifacts/status     team caching status
"""

from __future__ import annotations

import logging
import platform
from typing import Any
from urllib.parse import quote

import httpx

from taskcache import __version__
from taskcache.remote.models import ArtifactResponse, CachingStatusResponse
from taskcache.remote.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404
HTTP_FORBIDDEN = 403


class ArtifactApiError(Exception):
    """Non-success response from the artifact API."""

    def __init__(self, status_code: int, operation: str, detail: str = "") -> None:
        self.status_code = status_code
        self.operation = operation
        self.detail = detail
        message = f"Artifact {operation} failed with HTTP {status_code}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


def default_user_agent() -> str:
    return (
        f"taskcache {__version__} python {platform.python_version()} "
        f"{platform.system().lower()} {platform.machine().lower()}"
    )


class ArtifactClient:
    """Thin wrapper over httpx.AsyncClient for one team's artifact store."""

    def __init__(
        self,
        base_url: str,
        token: str,
        team_id: str = "",
        team_slug: str = "",
        timeout_s: float = 30.0,
        retry_config: RetryConfig | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the artifact client.

        Args:
            base_url: API root, e.g. "https://vercel.com/api".
            token: Bearer token sent with every request.
            team_id: Team identifier ("team_..." ids go into the teamId param).
            team_slug: Team slug, sent as the slug param when set.
            timeout_s: Per-request timeout.
            retry_config: Backoff policy for 429 / 5xx responses.
            client: Pre-built httpx client (tests, custom transports).
        """
        self._retry_config = retry_config
        self._team_params: dict[str, str] = {}
        if team_id.startswith("team_"):
            self._team_params["teamId"] = team_id
        if team_slug:
            self._team_params["slug"] = team_slug
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout_s,
            headers={
                "Authorization": f"Bearer {token}",
                "User-Agent": default_user_agent(),
            },
        )

    async def fetch_artifact(self, key: str) -> ArtifactResponse | None:
        """Download an artifact. Returns None when the remote has no such key."""
        response = await self._request("GET", self._artifact_path(key), operation="fetch")
        if response.status_code == HTTP_NOT_FOUND:
            return None
        _raise_for_status(response, "fetch")
        return ArtifactResponse(
            duration=_parse_duration(response.headers.get("x-artifact-duration")),
            expected_tag=response.headers.get("x-artifact-tag"),
            body=response.content,
        )

    async def artifact_exists(self, key: str) -> bool:
        response = await self._request("HEAD", self._artifact_path(key), operation="exists")
        if response.status_code == HTTP_NOT_FOUND:
            return False
        _raise_for_status(response, "exists")
        return True

    async def put_artifact(
        self,
        key: str,
        body: bytes,
        duration: int,
        tag: str | None = None,
        origin: str | None = None,
    ) -> None:
        headers = {
            "Content-Type": "application/octet-stream",
            "x-artifact-duration": str(duration),
        }
        if tag:
            headers["x-artifact-tag"] = tag
        if origin:
            headers["x-artifact-origin"] = origin
        response = await self._request(
            "PUT", self._artifact_path(key), operation="upload",
            content=body, headers=headers,
        )
        _raise_for_status(response, "upload")

    async def delete_artifacts(self, origin: str | None = None) -> None:
        """Delete artifacts uploaded from origin, or every artifact when origin is None."""
        params = {"origin": origin} if origin is not None else {}
        response = await self._request(
            "DELETE", "/v8/artifacts", operation="delete", params=params
        )
        _raise_for_status(response, "delete")

    async def get_caching_status(self) -> CachingStatusResponse:
        response = await self._request("GET", "/v8/artifacts/status", operation="status")
        _raise_for_status(response, "status")
        return CachingStatusResponse.model_validate(response.json())

    async def aclose(self) -> None:
        await self._client.aclose()

    def _artifact_path(self, key: str) -> str:
        return f"/v8/artifacts/{quote(key, safe='')}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        merged = {**self._team_params, **(params or {})}

        async def _send() -> httpx.Response:
            return await self._client.request(method, path, params=merged, **kwargs)

        return await with_retry(_send, operation=operation, config=self._retry_config)


def _raise_for_status(response: httpx.Response, operation: str) -> None:
    if response.is_success:
        return
    detail = ""
    try:
        body = response.json()
    except ValueError:
        detail = response.text[:200]
    else:
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                detail = str(error.get("message", ""))
            elif error:
                detail = str(error)
    raise ArtifactApiError(response.status_code, operation, detail)


def _parse_duration(value: str | None) -> int:
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        logger.debug("Ignoring malformed x-artifact-duration header %r", value)
        return 0
