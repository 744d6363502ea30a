# src/cache/paths.py — v1
"""Key and path helpers shared by the cache backends.

Relative paths are normalized to POSIX form and must stay inside the
workspace root. Keys are mapped to filesystem-safe entry names.
"""

from __future__ import annotations

import hashlib
import os
import re
import shutil
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Iterable, Sequence

from taskcache.cache.errors import InvalidPathError
from taskcache.cache.models import FileRecord

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.\-]{0,127}$")


def key_dirname(key: str) -> str:
    """Return the directory name used to store key on disk."""
    if _SAFE_KEY.match(key):
        return key
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def resolve_root(root: Path | str) -> Path:
    """Absolute, symlink-resolved form of a workspace root."""
    return Path(root).expanduser().resolve()


def origin_id(root: Path | str) -> str:
    """Stable identifier of a workspace root, used to index local entries."""
    posix = resolve_root(root).as_posix()
    return hashlib.sha256(posix.encode("utf-8")).hexdigest()[:32]


def origin_label(root: Path | str, repo_root: Path | str | None) -> str:
    """Origin scope sent to the remote: root relative to repo_root when possible."""
    resolved = resolve_root(root)
    if repo_root is not None:
        try:
            relative = resolved.relative_to(resolve_root(repo_root))
        except ValueError:
            pass
        else:
            return relative.as_posix() or "."
    return resolved.as_posix()


def normalize_relative(path: str) -> str:
    """Normalize a root-relative path, rejecting anything outside the root."""
    if not path or not path.strip():
        raise InvalidPathError(path, "empty path")
    raw = path.replace(os.sep, "/") if os.sep != "/" else path
    if PurePosixPath(raw).is_absolute() or PureWindowsPath(path).drive:
        raise InvalidPathError(path, "absolute path")

    parts: list[str] = []
    for part in PurePosixPath(raw).parts:
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise InvalidPathError(path, "escapes the workspace root")
            parts.pop()
            continue
        parts.append(part)

    if not parts:
        raise InvalidPathError(path, "refers to the workspace root itself")
    return "/".join(parts)


def collect_outputs(root: Path, files: Sequence[str]) -> list[FileRecord]:
    """Expand the listed outputs into file, directory and symlink records.

    Directories are walked recursively without following symlinks; a
    directory is always listed before its children.

    Raises:
        InvalidPathError: If a listed path escapes root.
        FileNotFoundError: If a listed path does not exist.
    """
    records: list[FileRecord] = []
    seen: set[str] = set()

    def _add(rel: str) -> None:
        if rel in seen:
            return
        absolute = root / rel
        if absolute.is_symlink():
            record = FileRecord(
                path=rel, kind="symlink", link_target=os.readlink(absolute)
            )
        elif absolute.is_dir():
            record = FileRecord(path=rel, kind="dir")
        elif absolute.exists():
            record = FileRecord(path=rel, kind="file")
        else:
            raise FileNotFoundError(f"{rel} does not exist under {root}")
        seen.add(rel)
        records.append(record)
        if record.kind == "dir":
            for child in sorted(absolute.iterdir()):
                _add(f"{rel}/{child.name}")

    for path in files:
        _add(normalize_relative(path))
    return records


def missing_expected(recorded: Iterable[str], expected: Sequence[str]) -> list[str]:
    """Expected paths not present in an entry's recorded paths."""
    available = set(recorded)
    missing = []
    for path in expected:
        normalized = normalize_relative(path)
        if normalized not in available:
            missing.append(normalized)
    return missing


def clear_target(target: Path) -> None:
    """Remove whatever occupies target so a file or symlink can be written there."""
    if target.is_symlink() or target.is_file():
        target.unlink()
    elif target.is_dir():
        shutil.rmtree(target)
