# src/cache/archive.py — v1
"""Gzip tar codec for remote cache artifacts.

An artifact is a single archive holding the captured outputs at their
relative paths. Archives are fully validated before anything is written
to the workspace, so a corrupt or hostile artifact never restores partially.
"""

from __future__ import annotations

import io
import os
import posixpath
import tarfile
import zlib
from pathlib import Path, PureWindowsPath
from typing import Sequence

from taskcache.cache.errors import InvalidPathError
from taskcache.cache.paths import (
    clear_target,
    collect_outputs,
    missing_expected,
    normalize_relative,
)


class ArchiveError(Exception):
    """Artifact cannot be decoded, is unsafe, or lacks expected outputs."""


def pack_outputs(root: Path, files: Sequence[str]) -> bytes:
    """Archive the listed outputs under root.

    Raises:
        InvalidPathError: If a listed path escapes root.
        OSError: If an output is missing or unreadable.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz", format=tarfile.PAX_FORMAT) as tar:
        for record in collect_outputs(root, files):
            tar.add(str(root / record.path), arcname=record.path, recursive=False)
    return buffer.getvalue()


def unpack_outputs(data: bytes, root: Path, expected_files: Sequence[str] = ()) -> list[str]:
    """Restore an archive into root and return the restored relative paths.

    Raises:
        ArchiveError: If the archive is corrupt, unsafe, or incomplete.
        OSError: If writing into root fails.
    """
    members = _read_members(data)
    missing = missing_expected([name for name, _, _ in members], expected_files)
    if missing:
        raise ArchiveError(f"archive lacks expected outputs: {', '.join(missing)}")

    restored: list[str] = []
    for name, info, content in members:
        target = root / name
        target.parent.mkdir(parents=True, exist_ok=True)
        if info.isdir():
            if target.is_symlink() or target.is_file():
                target.unlink()
            target.mkdir(exist_ok=True)
        else:
            clear_target(target)
            if info.issym():
                os.symlink(info.linkname, target)
            else:
                target.write_bytes(content or b"")
                os.chmod(target, info.mode & 0o777)
                os.utime(target, (info.mtime, info.mtime))
        restored.append(name)
    return restored


def _read_members(data: bytes) -> list[tuple[str, tarfile.TarInfo, bytes | None]]:
    members: list[tuple[str, tarfile.TarInfo, bytes | None]] = []
    links: set[str] = set()
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
            for info in tar:
                try:
                    name = normalize_relative(info.name)
                except InvalidPathError as e:
                    raise ArchiveError(str(e)) from e
                if name != info.name.rstrip("/"):
                    raise ArchiveError(f"non-canonical member name {info.name!r}")
                if any(parent in links for parent in _parents(name)):
                    raise ArchiveError(f"member {name!r} is nested under a symlink")
                if info.isfile():
                    extracted = tar.extractfile(info)
                    content = extracted.read() if extracted is not None else b""
                    members.append((name, info, content))
                    links.discard(name)
                elif info.issym():
                    _check_link(name, info.linkname)
                    members.append((name, info, None))
                    links.add(name)
                elif info.isdir():
                    members.append((name, info, None))
                    links.discard(name)
                else:
                    raise ArchiveError(f"unsupported member type for {info.name!r}")
    except (tarfile.TarError, EOFError, OSError, zlib.error) as e:
        raise ArchiveError(f"corrupt archive: {e}") from e
    return members


def _parents(name: str) -> list[str]:
    parts = name.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


def _check_link(name: str, linkname: str) -> None:
    """Symlink targets must resolve inside the restored tree."""
    if not linkname or posixpath.isabs(linkname) or PureWindowsPath(linkname).is_absolute():
        raise ArchiveError(f"symlink {name!r} has absolute or empty target {linkname!r}")
    resolved = posixpath.normpath(posixpath.join(posixpath.dirname(name), linkname))
    if resolved == ".." or resolved.startswith("../"):
        raise ArchiveError(f"symlink {name!r} points outside the workspace: {linkname!r}")
