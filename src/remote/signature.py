# src/remote/signature.py — v1
"""HMAC-SHA256 signing of remote artifacts.

tag = base64(HMAC-SHA256(secret, key || team_id || body))
"""

from __future__ import annotations

import base64
import hashlib
import hmac


class ArtifactSignature:
    """Signs uploads and verifies downloads for one team."""

    def __init__(self, secret: str, team_id: str) -> None:
        if not secret:
            raise ValueError("artifact signature secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._team_id = team_id

    def generate_tag(self, key: str, body: bytes) -> str:
        mac = hmac.new(self._secret, digestmod=hashlib.sha256)
        mac.update(key.encode("utf-8"))
        mac.update(self._team_id.encode("utf-8"))
        mac.update(body)
        return base64.b64encode(mac.digest()).decode("ascii")

    def validate(self, key: str, body: bytes, tag: str | None) -> bool:
        """True when tag matches the artifact; a missing tag never validates."""
        if not tag:
            return False
        return hmac.compare_digest(self.generate_tag(key, body), tag)
