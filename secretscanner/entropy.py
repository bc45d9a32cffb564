"""
Shannon entropy-based secret detection for SecretScanner.

Identifies high-entropy quoted tokens that may represent secrets even when
they don't match known patterns (e.g., random keys, unknown formats).
"""

from __future__ import annotations

import math
import re
from collections import Counter
from dataclasses import dataclass, field

from secretscanner.pattern_engine import Finding, SecretCategory, Severity, make_finding

ENTROPY_RULE_ID = "high-entropy-string"
DEFAULT_THRESHOLD = 4.5
DEFAULT_MIN_LENGTH = 20

_PLACEHOLDER_MARKERS = ("example", "placeholder", "xxxxxxxx")


def shannon_entropy(data: str) -> float:
    """
    Calculate Shannon entropy of a string in bits per character.

    Returns a value in [0, log2(len(charset))].
    Higher values indicate more randomness.
    """
    if not data:
        return 0.0
    total = len(data)
    return -sum((c / total) * math.log2(c / total) for c in Counter(data).values())


def is_likely_not_secret(token: str) -> bool:
    """Filter out base64 padding, low-variety runs, placeholders and UUIDs."""
    lowered = token.lower()
    return (
        token.endswith("====")
        or len(set(token)) <= 2
        or any(marker in lowered for marker in _PLACEHOLDER_MARKERS)
        or ("-" in token and token.count("-") == 4)
    )


def _candidate_pattern(min_length: int) -> re.Pattern[str]:
    return re.compile(r"""['"]([A-Za-z0-9+/=_\-]{%d,})['"]""" % min_length)


@dataclass(frozen=True)
class EntropyRule:
    """Flags quoted tokens whose character distribution looks random."""

    threshold: float = DEFAULT_THRESHOLD
    min_length: int = DEFAULT_MIN_LENGTH
    id: str = ENTROPY_RULE_ID
    description: str = "High entropy string (possible secret)"
    severity: Severity = Severity.MEDIUM
    category: SecretCategory = SecretCategory.GENERIC
    keywords: tuple[str, ...] = ()
    pattern: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", _candidate_pattern(self.min_length))

    def detect(self, line: str, line_number: int, file_path: str) -> list[Finding]:
        findings: list[Finding] = []
        for match in self.pattern.finditer(line):
            token = match.group(1)
            if is_likely_not_secret(token):
                continue

            entropy = shannon_entropy(token)
            if entropy < self.threshold:
                continue

            findings.append(
                make_finding(
                    rule_id=self.id,
                    description=f"{self.description} (entropy: {entropy:.2f})",
                    severity=self.severity,
                    category=self.category,
                    file_path=file_path,
                    line_number=line_number,
                    line=line,
                    secret=token,
                    start=match.start(1),
                    end=match.end(1),
                )
            )
        return findings
