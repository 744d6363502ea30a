# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for which cache backends are active, where the
local cache lives, how to reach the remote artifact store, and logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_BACKENDS = ("local", "remote")


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Cache settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Cache ===
    cache_enabled: bool = True
    cache_backends: str = "local,remote"
    cache_dir: Path = Path("~/.taskcache/cache")
    cache_staging_max_age_s: float = 3600.0

    # === Remote artifact store ===
    remote_cache_url: str = "https://vercel.com/api"
    remote_cache_token: str = ""
    remote_cache_team_id: str = ""
    remote_cache_team_slug: str = ""
    remote_cache_timeout_s: float = 30.0
    remote_cache_upload_workers: int = 4
    remote_cache_upload_queue_size: int = 128
    remote_cache_shutdown_timeout_s: float = 10.0
    remote_cache_signature_key: str = ""

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("remote_cache_url")
    @classmethod
    def validate_remote_url(cls, v: str) -> str:
        """Remote URL must be http(s); trailing slashes are dropped."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("remote_cache_url must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        unknown = [b for b in self.cache_backends_list if b not in SUPPORTED_BACKENDS]
        if unknown:
            errors.append(
                f"CACHE_BACKENDS contains unsupported backends: {', '.join(unknown)}"
            )

        if self.remote_cache_upload_workers < 1:
            errors.append("REMOTE_CACHE_UPLOAD_WORKERS must be >= 1")

        if self.remote_cache_upload_queue_size < 1:
            errors.append("REMOTE_CACHE_UPLOAD_QUEUE_SIZE must be >= 1")

        if self.remote_cache_timeout_s <= 0:
            errors.append("REMOTE_CACHE_TIMEOUT_S must be > 0")

        if self.remote_cache_shutdown_timeout_s <= 0:
            errors.append("REMOTE_CACHE_SHUTDOWN_TIMEOUT_S must be > 0")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def cache_backends_list(self) -> list[str]:
        """Parse comma-separated backend names, preserving order."""
        return [b.strip().lower() for b in self.cache_backends.split(",") if b.strip()]

    @property
    def remote_cache_configured(self) -> bool:
        """Token plus a team id or slug are required to talk to the remote."""
        return bool(
            self.remote_cache_token
            and (self.remote_cache_team_id or self.remote_cache_team_slug)
        )


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-run config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
