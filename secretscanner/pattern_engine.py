"""
Regex-based pattern detection engine for SecretScanner.

Compiles rule definitions into PatternRule objects and applies them to
single lines, returning structured findings with column-level precision.
"""

from __future__ import annotations

import re
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any

_MASK_VISIBLE = 4
_MASK_MAX_STARS = 20
_FINGERPRINT_SEED = 5381
_FINGERPRINT_MASK = 0xFFFFFFFFFFFFFFFF


class Severity(str, Enum):
    """Totally ordered severity level."""

    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self.value]

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Parse a severity name in any case; raises ValueError if unknown."""
        return cls(str(value).strip().lower())

    # str's lexical comparisons must not leak through the mixin
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank

    def __str__(self) -> str:
        return self.value


_SEVERITY_RANK: dict[str, int] = {
    "info": 0,
    "low": 1,
    "medium": 2,
    "high": 3,
    "critical": 4,
}


class SecretCategory(str, Enum):
    """Descriptive classification of a secret."""

    CLOUD_PROVIDER = "cloud-provider"
    API_KEY = "api-key"
    TOKEN = "token"
    PRIVATE_KEY = "private-key"
    CONNECTION_STRING = "connection-string"
    PASSWORD = "password"
    CREDENTIAL = "credential"
    CERTIFICATE = "certificate"
    GENERIC = "generic"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Finding:
    """A single detected secret on one line of one file."""

    rule_id: str
    description: str
    severity: Severity
    category: SecretCategory
    file_path: str
    line_number: int
    column_start: int
    column_end: int
    line: str
    secret: str  # masked, never the raw value
    fingerprint: str


@dataclass(frozen=True)
class RuleBuildError:
    """A rule definition that could not be compiled and was dropped."""

    rule_id: str
    message: str


def mask_secret(secret: str) -> str:
    """Mask a secret, keeping 4 characters on each side of a bounded run of stars."""
    if len(secret) <= 2 * _MASK_VISIBLE:
        return "*" * len(secret)
    stars = min(len(secret) - 2 * _MASK_VISIBLE, _MASK_MAX_STARS)
    return secret[:_MASK_VISIBLE] + "*" * stars + secret[-_MASK_VISIBLE:]


def fingerprint(file_path: str, line_number: int, rule_id: str, secret: str) -> str:
    """
    Deterministic 64-bit identity of a finding as 16 lowercase hex digits.

    djb2 over the UTF-8 bytes of ``path:line:rule:secret``; the secret is the
    unmasked value.
    """
    value = _FINGERPRINT_SEED
    for byte in f"{file_path}:{line_number}:{rule_id}:{secret}".encode("utf-8"):
        value = ((value << 5) + value + byte) & _FINGERPRINT_MASK
    return f"{value:016x}"


def contains_keyword(line: str, keywords: tuple[str, ...]) -> bool:
    """Case-insensitive substring check used as a cheap prefilter."""
    lowered = line.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def make_finding(
    rule_id: str,
    description: str,
    severity: Severity,
    category: SecretCategory,
    file_path: str,
    line_number: int,
    line: str,
    secret: str,
    start: int,
    end: int,
) -> Finding:
    """Build a Finding from a 0-based half-open character span of ``line``."""
    return Finding(
        rule_id=rule_id,
        description=description,
        severity=severity,
        category=category,
        file_path=file_path,
        line_number=line_number,
        column_start=start + 1,
        column_end=end,
        line=line,
        secret=mask_secret(secret),
        fingerprint=fingerprint(file_path, line_number, rule_id, secret),
    )


@dataclass(frozen=True)
class PatternRule:
    """A single compiled regex detection rule."""

    id: str
    description: str
    pattern: re.Pattern[str]
    severity: Severity
    category: SecretCategory
    keywords: tuple[str, ...] = ()
    secret_group: int = 0
    case_sensitive: bool = True

    def detect(self, line: str, line_number: int, file_path: str) -> list[Finding]:
        """Return one finding per non-overlapping match on the line."""
        if self.keywords and not contains_keyword(line, self.keywords):
            return []

        findings: list[Finding] = []
        for match in self.pattern.finditer(line):
            group = self._group_for(match)
            findings.append(
                make_finding(
                    rule_id=self.id,
                    description=self.description,
                    severity=self.severity,
                    category=self.category,
                    file_path=file_path,
                    line_number=line_number,
                    line=line,
                    secret=match.group(group),
                    start=match.start(group),
                    end=match.end(group),
                )
            )
        return findings

    def _group_for(self, match: re.Match[str]) -> int:
        # Missing or non-participating groups fall back to the whole match
        if 0 < self.secret_group <= self.pattern.groups and match.group(self.secret_group) is not None:
            return self.secret_group
        return 0


def _parse_category(value: Any) -> SecretCategory:
    try:
        return SecretCategory(str(value).strip().lower())
    except ValueError:
        return SecretCategory.GENERIC


def _parse_severity(value: Any) -> Severity:
    try:
        return Severity.parse(value)
    except ValueError:
        return Severity.MEDIUM


def build_rule(entry: dict[str, Any]) -> PatternRule:
    """
    Compile a single rule definition.

    Raises KeyError for missing fields and re.error for an invalid pattern.
    Unknown severities fall back to medium and unknown categories to generic.
    """
    case_sensitive = bool(entry.get("case_sensitive", True))
    flags = 0 if case_sensitive else re.IGNORECASE
    return PatternRule(
        id=entry["id"],
        description=entry["description"],
        pattern=re.compile(entry["regex"], flags),
        severity=_parse_severity(entry.get("severity", "medium")),
        category=_parse_category(entry.get("category", "generic")),
        keywords=tuple(entry.get("keywords") or ()),
        secret_group=int(entry.get("secret_group", 0)),
        case_sensitive=case_sensitive,
    )


def build_rules(patterns_config: list[dict[str, Any]]) -> tuple[list[PatternRule], list[RuleBuildError]]:
    """Compile rule definitions, dropping and reporting the ones that fail."""
    rules: list[PatternRule] = []
    errors: list[RuleBuildError] = []
    for entry in patterns_config:
        rule_id = str(entry.get("id", "?"))
        try:
            rules.append(build_rule(entry))
        except re.error as exc:
            message = f"Invalid regex in rule '{rule_id}': {exc}"
        except (KeyError, TypeError, ValueError) as exc:
            message = f"Malformed rule '{rule_id}': {exc}"
        else:
            continue
        # Malformed rule: skip and warn without crashing
        warnings.warn(message)
        errors.append(RuleBuildError(rule_id=rule_id, message=message))
    return rules, errors
