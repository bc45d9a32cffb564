"""
Result aggregation for SecretScanner.

Merges per-file outputs, collapses duplicate fingerprints, applies allowlist
suppression and the minimum-severity threshold, and produces the final,
deterministically ordered ScanResult.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterable

from secretscanner.pattern_engine import Finding, Severity


@dataclass(frozen=True)
class AllowlistEntry:
    """Suppresses findings by exact fingerprint, or by rule id optionally narrowed to a path substring."""

    fingerprint: str | None = None
    rule_id: str | None = None
    path: str | None = None
    reason: str | None = None

    def matches(self, finding: Finding) -> bool:
        if self.fingerprint is not None and finding.fingerprint == self.fingerprint:
            return True
        if self.rule_id is not None and finding.rule_id == self.rule_id:
            return self.path is None or self.path in finding.file_path
        return False


@dataclass(frozen=True)
class ScanError:
    """A file that could not be scanned."""

    file: str
    message: str


@dataclass(frozen=True)
class FileScanResult:
    """Output of scanning one file."""

    file_path: str
    findings: list[Finding] = field(default_factory=list)
    line_count: int = 0
    error: ScanError | None = None


@dataclass(frozen=True)
class ScanResult:
    """Final, sorted output of a whole scan."""

    findings: list[Finding] = field(default_factory=list)
    scanned_files: int = 0
    scanned_lines: int = 0
    duration: float = 0.0
    errors: list[ScanError] = field(default_factory=list)

    @property
    def has_secrets(self) -> bool:
        return bool(self.findings)

    @property
    def exit_code(self) -> int:
        return 1 if self.has_secrets else 0

    @property
    def finding_count(self) -> int:
        return len(self.findings)


def is_allowlisted(finding: Finding, allowlist: Iterable[AllowlistEntry]) -> bool:
    return any(entry.matches(finding) for entry in allowlist)


def _deduplicate(findings: Iterable[Finding]) -> list[Finding]:
    """Keep the first finding per fingerprint."""
    seen: set[str] = set()
    result: list[Finding] = []
    for f in findings:
        if f.fingerprint not in seen:
            seen.add(f.fingerprint)
            result.append(f)
    return result


def sort_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Stable sort: severity descending, then file path, then line number."""
    return sorted(findings, key=lambda f: (-f.severity.rank, f.file_path, f.line_number))


def filter_findings(
    findings: Iterable[Finding],
    allowlist: Iterable[AllowlistEntry],
    min_severity: Severity,
) -> list[Finding]:
    entries = list(allowlist)
    return [
        f for f in _deduplicate(findings)
        if not is_allowlisted(f, entries) and f.severity >= min_severity
    ]


def aggregate(
    file_results: Iterable[FileScanResult],
    allowlist: Iterable[AllowlistEntry],
    min_severity: Severity,
    started: float,
) -> ScanResult:
    """
    Merge per-file results into a ScanResult.

    ``started`` is the ``time.monotonic()`` reading taken before file
    collection, so the duration covers collection through aggregation.
    """
    findings: list[Finding] = []
    errors: list[ScanError] = []
    scanned_files = 0
    scanned_lines = 0

    for result in file_results:
        scanned_files += 1
        scanned_lines += result.line_count
        findings.extend(result.findings)
        if result.error is not None:
            errors.append(result.error)

    kept = sort_findings(filter_findings(findings, allowlist, min_severity))

    return ScanResult(
        findings=kept,
        scanned_files=scanned_files,
        scanned_lines=scanned_lines,
        duration=time.monotonic() - started,
        errors=errors,
    )
