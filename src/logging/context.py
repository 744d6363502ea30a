# src/logging/context.py — v1
"""Contextual logging support: attach package, task and cache key to log records.

Each scheduled task runs in its own asyncio task, which copies the current
context, so values set here stay scoped to that task.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_package: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "package", default=None
)
_task: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "task", default=None
)
_cache_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "cache_key", default=None
)


@dataclass
class LogContext:
    """Snapshot of current logging context."""

    package: str | None = None
    task: str | None = None
    cache_key: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(
        package=_package.get(),
        task=_task.get(),
        cache_key=_cache_key.get(),
    )


def set_task_context(package: str, task: str, cache_key: str | None = None) -> None:
    """Set the task being cached (called once per task invocation)."""
    _package.set(package)
    _task.set(task)
    _cache_key.set(cache_key)


def clear_context() -> None:
    _package.set(None)
    _task.set(None)
    _cache_key.set(None)
