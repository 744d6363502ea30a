# tests/unit/cache/test_paths.py — v1
"""Tests for cache/paths.py — key mapping and relative path handling."""

from __future__ import annotations

import os

import pytest

from taskcache.cache.errors import InvalidPathError
from taskcache.cache.paths import (
    collect_outputs,
    key_dirname,
    missing_expected,
    normalize_relative,
    origin_id,
    origin_label,
)


class TestKeyDirname:
    def test_safe_key_used_verbatim(self):
        assert key_dirname("a1b2c3d4e5f60718") == "a1b2c3d4e5f60718"

    def test_unsafe_key_hashed(self):
        name = key_dirname("../escape")
        assert len(name) == 64
        assert "/" not in name

    def test_dot_prefixed_key_hashed(self):
        assert key_dirname(".tmp") != ".tmp"

    def test_hash_is_stable(self):
        assert key_dirname("with space") == key_dirname("with space")


class TestNormalizeRelative:
    def test_collapses_dots(self):
        assert normalize_relative("./dist/../dist/a.js") == "dist/a.js"

    def test_strips_trailing_slash(self):
        assert normalize_relative("dist/") == "dist"

    @pytest.mark.parametrize("path", ["", "   ", ".", "dist/.."])
    def test_rejects_empty(self, path):
        with pytest.raises(InvalidPathError):
            normalize_relative(path)

    @pytest.mark.parametrize("path", ["/etc/passwd", "C:\\Windows"])
    def test_rejects_absolute(self, path):
        with pytest.raises(InvalidPathError, match="absolute"):
            normalize_relative(path)

    def test_rejects_escape(self):
        with pytest.raises(InvalidPathError, match="escapes"):
            normalize_relative("../sibling/file")


class TestOrigin:
    def test_origin_id_stable_for_same_root(self, tmp_path):
        assert origin_id(tmp_path) == origin_id(tmp_path / "x" / "..")

    def test_origin_id_differs_per_root(self, tmp_path):
        assert origin_id(tmp_path / "a") != origin_id(tmp_path / "b")

    def test_label_relative_to_repo(self, tmp_path):
        assert origin_label(tmp_path / "packages" / "app", tmp_path) == "packages/app"

    def test_label_for_repo_root(self, tmp_path):
        assert origin_label(tmp_path, tmp_path) == "."

    def test_label_outside_repo_is_absolute(self, tmp_path):
        label = origin_label(tmp_path / "elsewhere", tmp_path / "repo")
        assert label.startswith("/")


class TestCollectOutputs:
    def test_directory_walked_recursively(self, workspace):
        records = collect_outputs(workspace, ["dist"])
        paths = [r.path for r in records]
        assert paths[0] == "dist"
        assert "dist/index.js" in paths
        assert "dist/nested" in paths
        assert "dist/nested/chunk.js" in paths
        kinds = {r.path: r.kind for r in records}
        assert kinds["dist/nested"] == "dir"
        assert kinds["dist/index.js"] == "file"

    def test_single_file_does_not_pull_in_siblings(self, workspace):
        records = collect_outputs(workspace, ["dist/index.js"])
        assert [r.path for r in records] == ["dist/index.js"]

    def test_duplicates_collapsed(self, workspace):
        records = collect_outputs(workspace, ["dist/index.js", "./dist/index.js"])
        assert len(records) == 1

    def test_symlink_recorded_not_followed(self, workspace):
        os.symlink("index.js", workspace / "dist" / "alias.js")
        records = {r.path: r for r in collect_outputs(workspace, ["dist/alias.js"])}
        assert records["dist/alias.js"].kind == "symlink"
        assert records["dist/alias.js"].link_target == "index.js"

    def test_missing_output(self, workspace):
        with pytest.raises(FileNotFoundError):
            collect_outputs(workspace, ["nope.txt"])


class TestMissingExpected:
    def test_all_present(self):
        assert missing_expected(["dist", "dist/a.js"], ["dist/a.js"]) == []

    def test_reports_missing_normalized(self):
        assert missing_expected(["dist"], ["./dist/b.js"]) == ["dist/b.js"]
