"""
High-level scan orchestrator for SecretScanner.

Coordinates file collection, per-file rule application on a worker pool,
and result aggregation into a single blocking scan pipeline.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Sequence

from secretscanner.aggregator import FileScanResult, ScanError, ScanResult, aggregate
from secretscanner.config_loader import Configuration
from secretscanner.file_loader import collect_files, read_text
from secretscanner.pattern_engine import Finding
from secretscanner.rules import Rule, RuleCatalog, build_catalog

logger = logging.getLogger(__name__)

_C_STYLE = ("//", "/*", "*")
_HASH_STYLE = ("#",)
_MARKUP_STYLE = ("<!--",)

COMMENT_PREFIXES: dict[str, tuple[str, ...]] = {
    **dict.fromkeys(
        ("swift", "java", "kt", "kts", "js", "ts", "jsx", "tsx", "go", "c", "cpp",
         "h", "m", "mm", "cs", "scala", "groovy", "rs"),
        _C_STYLE,
    ),
    **dict.fromkeys(("py", "rb", "sh", "bash", "zsh", "yml", "yaml", "toml"), _HASH_STYLE),
    **dict.fromkeys(("html", "xml"), _MARKUP_STYLE),
}


def is_comment_line(stripped: str, file_path: str) -> bool:
    """True if an already-stripped line starts with a comment prefix for the file's extension."""
    ext = os.path.splitext(file_path)[1][1:].lower()
    prefixes = COMMENT_PREFIXES.get(ext)
    return prefixes is not None and stripped.startswith(prefixes)


def scan_lines(lines: Sequence[str], file_path: str, rules: Sequence[Rule]) -> list[Finding]:
    """Apply every rule, in catalog order, to each non-blank, non-comment line."""
    findings: list[Finding] = []
    for line_number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or is_comment_line(stripped, file_path):
            continue
        for rule in rules:
            findings.extend(rule.detect(line, line_number, file_path))
    return findings


def _failed(path: str, message: str) -> FileScanResult:
    return FileScanResult(file_path=path, error=ScanError(file=path, message=message))


def scan_file(path: str, rules: Sequence[Rule], config: Configuration) -> FileScanResult:
    """
    Scan a single file.

    Oversized files are skipped silently; unreadable or undecodable files
    yield a ScanError and no findings.
    """
    try:
        size = os.path.getsize(path)
        if size > config.max_file_size:
            logger.debug("Skipping %s (%d bytes > %d)", path, size, config.max_file_size)
            return FileScanResult(file_path=path)
        content = read_text(path)
    except UnicodeDecodeError:
        return _failed(path, "Unable to decode file as UTF-8 text")
    except OSError as exc:
        return _failed(path, f"Unable to read file: {exc.strerror or exc}")

    return FileScanResult(
        file_path=path,
        findings=scan_lines(content.lines, path, rules),
        line_count=content.line_count,
    )


def _run_workers(files: Sequence[str], catalog: RuleCatalog, config: Configuration) -> list[FileScanResult]:
    results: list[FileScanResult] = []
    if not files:
        return results

    rules = catalog.rules
    with ThreadPoolExecutor(max_workers=config.max_workers or os.cpu_count()) as executor:
        future_to_path = {executor.submit(scan_file, path, rules, config): path for path in files}

        # Single collection point: results are integrated one file at a time
        for future in as_completed(future_to_path):
            path = future_to_path[future]
            try:
                results.append(future.result())
            except Exception as exc:
                logger.warning("Unexpected failure scanning %s: %s", path, exc)
                results.append(_failed(path, str(exc)))
    return results


def scan(config: Configuration | None = None, base_dir: str | None = None) -> ScanResult:
    """
    Run a full scan and return the final result.

    ``base_dir`` is the directory relative roots and ignore globs are
    resolved against; it defaults to the working directory.
    """
    config = config or Configuration()
    started = time.monotonic()

    catalog = build_catalog(config)
    files = sorted(collect_files(config, base_dir=base_dir))
    logger.debug("Scanning %d file(s) with %d rule(s)", len(files), len(catalog))

    file_results = _run_workers(files, catalog, config)
    return aggregate(file_results, config.allowlist, config.min_severity, started)


def scan_paths(paths: Sequence[str], config: Configuration, base_dir: str | None = None) -> ScanResult:
    """Scan an explicit list of paths with an otherwise unchanged configuration."""
    return scan(replace(config, paths=tuple(paths)), base_dir=base_dir)
