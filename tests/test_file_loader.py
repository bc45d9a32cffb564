"""Tests for file discovery and loading."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from secretscanner.config_loader import Configuration
from secretscanner.file_loader import (
    FileCollector,
    collect_files,
    glob_to_regex,
    matches_glob,
    read_text,
    split_lines,
)


def _touch(root: Path, relative: str, content: str = "x = 1\n") -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _collect(root: Path, **overrides) -> set[str]:
    files = collect_files(Configuration(**overrides), base_dir=str(root))
    return {os.path.relpath(f, root).replace(os.sep, "/") for f in files}


# ── glob matching ──────────────────────────────────────────────────────────


@pytest.mark.parametrize("pattern,path,expected", [
    ("*.lock", "Cargo.lock", True),
    ("*.lock", "sub/Cargo.lock", False),
    ("node_modules/**", "node_modules/lib/index.js", True),
    ("node_modules/**", "src/node_modules/index.js", False),
    ("**/Mock/**", "src/Mock/data.swift", True),
    ("**/*Test*.swift", "Tests/LoginTests.swift", True),
    ("*.min.js", "app.min.js", True),
    ("*.min.js", "appXminYjs", False),
    ("Package.resolved", "Package.resolved", True),
])
def test_matches_glob(pattern, path, expected):
    assert matches_glob(pattern, path) is expected


def test_glob_regex_is_anchored():
    assert glob_to_regex("build/**").pattern.startswith("^")
    assert not matches_glob("build/**", "src/build/out.js")


# ── read_text ──────────────────────────────────────────────────────────────


def test_read_text_splits_lines(tmp_path):
    path = tmp_path / "a.py"
    path.write_bytes(b"one\r\ntwo\nthree")
    content = read_text(str(path))
    assert content.lines == ["one", "two", "three"]
    assert content.line_count == 3


@pytest.mark.parametrize("text,expected", [
    ("", []),
    ("a\n\n", ["a", ""]),
    ("a\rb", ["a", "b"]),
    ("x = 1\x0c\ny = 2", ["x = 1\x0c", "y = 2"]),
    ("a\x0bb\x85c\u2028d\n", ["a\x0bb\x85c\u2028d"]),
])
def test_split_lines_only_on_line_breaks(text, expected):
    assert split_lines(text) == expected


def test_read_text_keeps_form_feed_in_line(tmp_path):
    path = tmp_path / "a.c"
    path.write_bytes(b"x = 1\x0c\nkey = 2\n")
    content = read_text(str(path))
    assert content.lines == ["x = 1\x0c", "key = 2"]


def test_read_text_rejects_binary(tmp_path):
    path = tmp_path / "blob.py"
    path.write_bytes(b"\xff\xfe\x00\x80binary")
    with pytest.raises(UnicodeDecodeError):
        read_text(str(path))


def test_read_text_missing_file(tmp_path):
    with pytest.raises(OSError):
        read_text(str(tmp_path / "missing.py"))


# ── FileCollector ──────────────────────────────────────────────────────────


def test_collect_walks_and_filters(tmp_path):
    _touch(tmp_path, "app.py")
    _touch(tmp_path, "src/deep/Service.swift")
    _touch(tmp_path, "Dockerfile")
    _touch(tmp_path, "notes.txt")
    _touch(tmp_path, ".env.local.py")
    _touch(tmp_path, ".hidden/secret.py")
    _touch(tmp_path, "node_modules/pkg/index.js")
    _touch(tmp_path, "yarn.lock")
    _touch(tmp_path, "app.min.js")

    assert _collect(tmp_path) == {"app.py", "src/deep/Service.swift", "Dockerfile"}


def test_collect_returns_absolute_paths(tmp_path):
    _touch(tmp_path, "app.py")
    files = collect_files(Configuration(), base_dir=str(tmp_path))
    assert all(os.path.isabs(f) for f in files)


def test_collect_empty_directory(tmp_path):
    assert _collect(tmp_path) == set()


def test_collect_only_unaccepted_extensions(tmp_path):
    _touch(tmp_path, "readme.txt")
    _touch(tmp_path, "image.png")
    assert _collect(tmp_path) == set()


def test_collect_missing_root_skipped(tmp_path):
    assert _collect(tmp_path, paths=("does-not-exist",)) == set()


def test_collect_explicit_file_root(tmp_path):
    _touch(tmp_path, "app.py")
    _touch(tmp_path, "other.py")
    assert _collect(tmp_path, paths=("app.py",)) == {"app.py"}


def test_collect_explicit_file_still_filtered(tmp_path):
    _touch(tmp_path, "notes.txt")
    assert _collect(tmp_path, paths=("notes.txt",)) == set()


def test_collect_extension_case_insensitive(tmp_path):
    _touch(tmp_path, "LEGACY.PY")
    assert _collect(tmp_path) == {"LEGACY.PY"}


def test_collect_custom_ignore_prunes_directory(tmp_path):
    _touch(tmp_path, "keep/a.py")
    _touch(tmp_path, "fixtures/b.py")
    assert _collect(tmp_path, ignore_paths=frozenset({"fixtures/**"})) == {"keep/a.py"}


def test_collect_custom_extensions(tmp_path):
    _touch(tmp_path, "a.py")
    _touch(tmp_path, "b.txt")
    assert _collect(tmp_path, extensions=frozenset({"txt"})) == {"b.txt"}


def test_overlapping_roots_deduplicated(tmp_path):
    _touch(tmp_path, "src/a.py")
    assert _collect(tmp_path, paths=(".", "src", "src/a.py")) == {"src/a.py"}


def test_relative_uses_forward_slashes(tmp_path):
    collector = FileCollector(Configuration(), base_dir=str(tmp_path))
    assert collector.relative(os.path.join(str(tmp_path), "a", "b.py")) == "a/b.py"


def test_is_eligible_extensionless_by_name(tmp_path):
    collector = FileCollector(Configuration(), base_dir=str(tmp_path))
    assert collector.is_eligible(str(tmp_path / "Makefile"))
    assert not collector.is_eligible(str(tmp_path / "LICENSE"))
