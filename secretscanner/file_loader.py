"""
File discovery and loading for SecretScanner.

Handles root resolution, recursive walking with hidden-entry and glob-based
pruning, extension allow-listing, and text decoding.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from secretscanner.config_loader import Configuration

logger = logging.getLogger(__name__)


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """
    Translate an ignore glob into an anchored regex.

    ``**`` matches anything including ``/``; ``*`` matches anything but ``/``.
    Every other character is literal.
    """
    parts = [
        "[^/]*".join(re.escape(piece) for piece in chunk.split("*"))
        for chunk in pattern.split("**")
    ]
    return re.compile("^" + ".*".join(parts) + "$")


def matches_glob(pattern: str, path: str) -> bool:
    return glob_to_regex(pattern).match(path) is not None


_LINE_BREAK = re.compile(r"\r\n|\r|\n")


def split_lines(text: str) -> list[str]:
    """Split on CRLF, CR and LF only; other separators like form feed stay in the line."""
    lines = _LINE_BREAK.split(text)
    if lines[-1] == "":
        lines.pop()
    return lines


@dataclass
class FileContent:
    """Holds the decoded content of a scanned file."""

    path: str
    lines: list[str]

    @property
    def line_count(self) -> int:
        return len(self.lines)


def read_text(path: str) -> FileContent:
    """
    Read a whole file as strict UTF-8 text.

    Raises OSError if the file cannot be read and UnicodeDecodeError if the
    bytes are not text.
    """
    with open(path, "rb") as f:
        data = f.read()
    return FileContent(path=path, lines=split_lines(data.decode("utf-8")))


class FileCollector:
    """Resolves configured roots into the set of absolute file paths eligible for scanning."""

    def __init__(self, config: "Configuration", base_dir: str | None = None) -> None:
        self._config = config
        self._base_dir = os.path.abspath(base_dir or os.getcwd())
        self._ignore = sorted(config.ignore_paths)
        self._tree_ignore = [p for p in self._ignore if p.endswith("**")]

    def collect(self) -> set[str]:
        files: set[str] = set()
        for root in self._config.paths:
            absolute = os.path.normpath(os.path.join(self._base_dir, os.path.expanduser(root)))
            if os.path.isdir(absolute):
                files.update(self._walk(absolute))
            elif os.path.isfile(absolute):
                if self.is_eligible(absolute):
                    files.add(absolute)
            else:
                logger.debug("Skipping missing root %s", absolute)
        logger.debug("Collected %d file(s) from %d root(s)", len(files), len(self._config.paths))
        return files

    def _walk(self, root: str) -> Iterable[str]:
        for dirpath, dirnames, filenames in os.walk(root):
            # Prune hidden and ignored directories in-place to prevent descent
            dirnames[:] = [
                d for d in dirnames
                if not d.startswith(".")
                and not self._is_ignored_dir(os.path.join(dirpath, d))
            ]

            for filename in filenames:
                if filename.startswith("."):
                    continue
                path = os.path.join(dirpath, filename)
                if self.is_eligible(path):
                    yield path

    def relative(self, path: str) -> str:
        """Path relative to the base directory with ``/`` separators; absolute if outside it."""
        prefix = self._base_dir.rstrip(os.sep) + os.sep
        if path.startswith(prefix):
            path = path[len(prefix):]
        return path.replace(os.sep, "/")

    def is_ignored(self, path: str) -> bool:
        relative = self.relative(path)
        return any(matches_glob(pattern, relative) for pattern in self._ignore)

    def _is_ignored_dir(self, path: str) -> bool:
        if self.is_ignored(path):
            return True
        # "dir/**" covers the directory itself, not only what is below it
        as_tree = self.relative(path) + "/"
        return any(matches_glob(pattern, as_tree) for pattern in self._tree_ignore)

    def is_eligible(self, path: str) -> bool:
        """Not ignored, and its extension (or bare name when it has none) is accepted."""
        if self.is_ignored(path):
            return False
        name = os.path.basename(path)
        _, ext = os.path.splitext(name)
        if ext:
            return ext[1:].lower() in self._config.extensions
        return name in self._config.extensions


def collect_files(config: "Configuration", base_dir: str | None = None) -> set[str]:
    """Return the absolute paths of every file under the configured roots that should be scanned."""
    return FileCollector(config, base_dir=base_dir).collect()
