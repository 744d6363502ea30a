# src/cache/cache_factory.py — v1
"""Factory for cache backend instantiation.

Any configuration problem degrades to NoopCache so the scheduler never
needs an absent-cache special case.
"""

from __future__ import annotations

import logging
from pathlib import Path

from taskcache.cache.base_cache import BaseCache
from taskcache.cache.noop_cache import NoopCache
from taskcache.config.settings import Settings

logger = logging.getLogger(__name__)


def create_cache(
    settings: Settings | None = None, repo_root: Path | str | None = None
) -> BaseCache:
    """Instantiate the configured cache backends.

    Args:
        settings: Application settings. Defaults to a local-only cache.
        repo_root: Repository root, used to scope remote clean requests.

    Returns:
        NoopCache, a single backend, or a CacheMultiplexer (local first).
    """
    if settings is None:
        settings = Settings(_env_file=None, cache_backends="local")  # type: ignore[call-arg]

    if not settings.cache_enabled:
        logger.info("Caching disabled by configuration")
        return NoopCache()

    backends: list[BaseCache] = []
    try:
        for name in settings.cache_backends_list:
            if name == "local":
                backends.append(_create_local(settings))
            elif name == "remote":
                remote = _create_remote(settings, repo_root)
                if remote is not None:
                    backends.append(remote)
    except Exception as e:
        logger.warning("Cache construction failed, caching disabled: %s", e)
        return NoopCache()

    if not backends:
        return NoopCache()
    if len(backends) == 1:
        return backends[0]

    from taskcache.cache.multiplexer import CacheMultiplexer
    return CacheMultiplexer(backends)


def _create_local(settings: Settings) -> BaseCache:
    from taskcache.cache.local_cache import LocalCache
    return LocalCache(
        cache_dir=settings.cache_dir,
        staging_max_age_s=settings.cache_staging_max_age_s,
    )


def _create_remote(settings: Settings, repo_root: Path | str | None) -> BaseCache | None:
    if not settings.remote_cache_configured:
        logger.warning(
            "Remote cache requires REMOTE_CACHE_TOKEN and a team id or slug, skipping it"
        )
        return None

    from taskcache.cache.remote_cache import RemoteCache
    from taskcache.remote.api_client import ArtifactClient
    from taskcache.remote.signature import ArtifactSignature

    client = ArtifactClient(
        base_url=settings.remote_cache_url,
        token=settings.remote_cache_token,
        team_id=settings.remote_cache_team_id,
        team_slug=settings.remote_cache_team_slug,
        timeout_s=settings.remote_cache_timeout_s,
    )
    signature = None
    if settings.remote_cache_signature_key:
        signature = ArtifactSignature(
            settings.remote_cache_signature_key,
            settings.remote_cache_team_id or settings.remote_cache_team_slug,
        )
    return RemoteCache(
        client=client,
        repo_root=repo_root,
        signature=signature,
        upload_workers=settings.remote_cache_upload_workers,
        upload_queue_size=settings.remote_cache_upload_queue_size,
        shutdown_timeout_s=settings.remote_cache_shutdown_timeout_s,
    )
