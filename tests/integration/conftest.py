# tests/integration/conftest.py — v1
"""Fixtures for integration tests: a stateful artifact server behind respx.

The server keeps artifacts in memory and speaks the same HTTP contract the
ArtifactClient uses, so the full stack (factory, multiplexer, local store,
remote store, HTTP client) runs without a network.
"""

from __future__ import annotations

from collections.abc import Iterator

import httpx
import pytest
import respx

HOST = "artifacts.test"
BASE_URL = f"https://{HOST}/api"
PREFIX = "/api/v8/artifacts"


class ArtifactServer:
    """In-memory artifact store answering respx-routed requests."""

    def __init__(self) -> None:
        self.artifacts: dict[str, tuple[bytes, dict[str, str]]] = {}
        self.origins: dict[str, str] = {}
        self.available = True
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.available:
            raise httpx.ConnectError("connection refused", request=request)
        if request.headers.get("Authorization") != "Bearer test-token":
            return httpx.Response(401, json={"error": {"message": "unauthorized"}})

        path = request.url.path
        if path == PREFIX:
            return self._delete(request)
        key = path[len(PREFIX) + 1:]
        if request.method == "PUT":
            headers = {"x-artifact-duration": request.headers.get("x-artifact-duration", "0")}
            if "x-artifact-tag" in request.headers:
                headers["x-artifact-tag"] = request.headers["x-artifact-tag"]
            self.artifacts[key] = (request.content, headers)
            self.origins[key] = request.headers.get("x-artifact-origin", "")
            return httpx.Response(202)
        if key not in self.artifacts:
            return httpx.Response(404)
        if request.method == "HEAD":
            return httpx.Response(200)
        body, headers = self.artifacts[key]
        return httpx.Response(200, content=body, headers=headers)

    def _delete(self, request: httpx.Request) -> httpx.Response:
        origin = request.url.params.get("origin")
        if origin is None:
            self.artifacts.clear()
        else:
            for key in [k for k, o in self.origins.items() if o == origin]:
                self.artifacts.pop(key, None)
        return httpx.Response(200)


@pytest.fixture
def artifact_server() -> Iterator[ArtifactServer]:
    server = ArtifactServer()
    with respx.mock(assert_all_called=False) as router:
        router.route(host=HOST).mock(side_effect=server.handle)
        yield server
