"""
Configuration loader for SecretScanner.

Locates and parses a YAML or JSON configuration file and builds the single,
read-only Configuration object consumed by every scan.
"""

from __future__ import annotations

import json
import logging
import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from secretscanner.aggregator import AllowlistEntry
from secretscanner.entropy import DEFAULT_MIN_LENGTH, DEFAULT_THRESHOLD
from secretscanner.pattern_engine import Severity

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAMES: tuple[str, ...] = (
    ".secretscanner.yml",
    ".secretscanner.yaml",
    ".secretscanner.json",
    "secretscanner.yml",
    "secretscanner.yaml",
    "secretscanner.json",
)

DEFAULT_MAX_FILE_SIZE = 1_000_000

DEFAULT_EXTENSIONS: frozenset[str] = frozenset({
    # Apple
    "swift", "m", "mm", "h",
    # Web
    "js", "ts", "jsx", "tsx", "vue", "svelte",
    # Scripting
    "py", "rb", "php", "sh", "bash", "zsh",
    # Compiled
    "go", "java", "kt", "kts", "gradle", "c", "cpp", "cc", "cxx", "hpp", "cs", "rs",
    # Config
    "json", "yml", "yaml", "toml", "xml", "plist",
    "env", "properties", "ini", "cfg", "conf",
    # Misc
    "sql", "graphql", "tf", "tfvars",
    # Extensionless files, matched by name
    "Dockerfile", "Makefile", "Gemfile", "Podfile",
    "Fastfile", "Appfile", "Matchfile", "Gymfile",
})

DEFAULT_IGNORE_PATHS: frozenset[str] = frozenset({
    ".git/**",
    "node_modules/**",
    "vendor/**",
    "Pods/**",
    ".build/**",
    "build/**",
    "DerivedData/**",
    "*.xcodeproj/**",
    "*.xcworkspace/**",
    "Carthage/**",
    ".swiftpm/**",
    "Package.resolved",
    "*.lock",
    "*.min.js",
    "*.min.css",
})


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or is invalid."""


@dataclass(frozen=True)
class CustomRuleConfig:
    """A user-supplied pattern rule, validated for shape but not yet compiled."""

    id: str
    description: str
    pattern: str
    severity: str
    category: str
    keywords: tuple[str, ...] = ()

    def to_definition(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "regex": self.pattern,
            "severity": self.severity,
            "category": self.category,
            "keywords": list(self.keywords),
        }


@dataclass(frozen=True)
class Configuration:
    """Scan parameters. Built once per invocation and read-only afterwards."""

    paths: tuple[str, ...] = (".",)
    ignore_paths: frozenset[str] = DEFAULT_IGNORE_PATHS
    disabled_rules: frozenset[str] = frozenset()
    min_severity: Severity = Severity.LOW
    enable_entropy: bool = True
    entropy_threshold: float = DEFAULT_THRESHOLD
    entropy_min_length: int = DEFAULT_MIN_LENGTH
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    extensions: frozenset[str] = DEFAULT_EXTENSIONS
    allowlist: tuple[AllowlistEntry, ...] = ()
    custom_rules: tuple[CustomRuleConfig, ...] = ()
    max_workers: int | None = None


# ── raw value helpers ──────────────────────────────────────────────────────


def _string_list(raw: dict, key: str) -> list[str] | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{key}' must be a list of strings")
    return value


def _typed(raw: dict, key: str, types: tuple[type, ...], default: Any) -> Any:
    value = raw.get(key)
    if value is None:
        return default
    # bool is an int subclass; reject it where a number is expected
    if (isinstance(value, bool) and bool not in types) or not isinstance(value, types):
        raise ConfigurationError(f"'{key}' has an invalid value: {value!r}")
    return value


def _parse_allowlist(raw: dict) -> tuple[AllowlistEntry, ...]:
    items = raw.get("allowlist") or []
    if not isinstance(items, list):
        raise ConfigurationError("'allowlist' must be a list")

    entries: list[AllowlistEntry] = []
    for item in items:
        if not isinstance(item, dict):
            raise ConfigurationError(f"Allowlist entries must be mappings, got {item!r}")
        entries.append(
            AllowlistEntry(
                fingerprint=_optional_str(item.get("fingerprint")),
                rule_id=_optional_str(item.get("ruleId")),
                path=_optional_str(item.get("path")),
                reason=_optional_str(item.get("reason")),
            )
        )
    return tuple(entries)


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _parse_custom_rules(raw: dict) -> tuple[CustomRuleConfig, ...]:
    items = raw.get("customRules") or []
    if not isinstance(items, list):
        raise ConfigurationError("'customRules' must be a list")

    rules: list[CustomRuleConfig] = []
    required = ("id", "description", "pattern", "severity", "category")
    for item in items:
        if not isinstance(item, dict) or not all(isinstance(item.get(k), str) for k in required):
            # Malformed entries are dropped, never fatal
            warnings.warn(f"Ignoring malformed custom rule: {item!r}")
            continue
        keywords = item.get("keywords") or []
        if not isinstance(keywords, list):
            warnings.warn(f"Ignoring malformed custom rule: {item!r}")
            continue
        rules.append(
            CustomRuleConfig(
                id=item["id"],
                description=item["description"],
                pattern=item["pattern"],
                severity=item["severity"],
                category=item["category"],
                keywords=tuple(str(k) for k in keywords),
            )
        )
    return tuple(rules)


def build_config(
    raw: dict[str, Any],
    default_ignore_paths: frozenset[str] = DEFAULT_IGNORE_PATHS,
    default_extensions: frozenset[str] = DEFAULT_EXTENSIONS,
) -> Configuration:
    """
    Construct a Configuration from a parsed document.

    ``ignorePaths`` is unioned with ``default_ignore_paths``; ``extensions``
    replaces ``default_extensions`` when present.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"Configuration must be a mapping, got {type(raw).__name__}"
        )

    paths = _string_list(raw, "paths")
    ignore = _string_list(raw, "ignorePaths") or []
    disabled = _string_list(raw, "disabledRules") or []
    extensions = _string_list(raw, "extensions")

    severity_name = _typed(raw, "minSeverity", (str,), Severity.LOW.value)
    try:
        min_severity = Severity.parse(severity_name)
    except ValueError:
        raise ConfigurationError(f"Unknown minSeverity: {severity_name!r}") from None

    max_workers = _typed(raw, "maxWorkers", (int,), None)
    if max_workers is not None and max_workers < 1:
        raise ConfigurationError(f"'maxWorkers' must be positive, got {max_workers}")

    entropy_min_length = _typed(raw, "entropyMinLength", (int,), DEFAULT_MIN_LENGTH)
    if entropy_min_length < 1:
        raise ConfigurationError(f"'entropyMinLength' must be positive, got {entropy_min_length}")

    max_file_size = _typed(raw, "maxFileSize", (int,), DEFAULT_MAX_FILE_SIZE)
    if max_file_size < 1:
        raise ConfigurationError(f"'maxFileSize' must be positive, got {max_file_size}")

    return Configuration(
        paths=tuple(paths) if paths is not None else (".",),
        ignore_paths=frozenset(default_ignore_paths) | frozenset(ignore),
        disabled_rules=frozenset(disabled),
        min_severity=min_severity,
        enable_entropy=_typed(raw, "enableEntropy", (bool,), True),
        entropy_threshold=float(_typed(raw, "entropyThreshold", (int, float), DEFAULT_THRESHOLD)),
        entropy_min_length=entropy_min_length,
        max_file_size=max_file_size,
        extensions=(
            frozenset(e.lstrip(".") for e in extensions)
            if extensions is not None
            else frozenset(default_extensions)
        ),
        allowlist=_parse_allowlist(raw),
        custom_rules=_parse_custom_rules(raw),
        max_workers=max_workers,
    )


def _parse_text(path: Path, text: str) -> Any:
    try:
        if path.suffix.lower() == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Invalid configuration file format: {path}: {exc}") from exc


def _find_default(directory: Path) -> Path | None:
    for name in DEFAULT_CONFIG_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None


def load_config(config_path: Path | str | None = None) -> Configuration:
    """
    Load and parse a configuration file.

    Without a path, the first default file name present in the working
    directory is used; if there is none, the defaults apply.
    """
    if config_path is None:
        path = _find_default(Path(os.getcwd()))
        if path is None:
            logger.debug("No configuration file found, using defaults")
            return Configuration()
    else:
        path = Path(config_path)

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigurationError(f"Unable to read configuration file: {path}") from exc

    raw = _parse_text(path, text)
    logger.debug("Loaded configuration from %s", path)
    # An empty document means all defaults
    return build_config(raw if raw is not None else {})


SAMPLE_CONFIG = """\
# SecretScanner configuration

# Paths to scan (relative to the working directory)
paths:
  - .

# Paths to ignore (glob patterns, added to the built-in defaults)
ignorePaths:
  - "**/*Test*.swift"
  - "**/Mock/**"
  - "**/Fixtures/**"

# Rules to disable
disabledRules:
  # - high-entropy-string
  # - jwt-token

# Minimum severity to report: info, low, medium, high, critical
minSeverity: low

# Enable entropy-based detection
enableEntropy: true

# Entropy threshold in bits per character (higher = fewer false positives)
entropyThreshold: 4.5

# Minimum length of a quoted token considered by the entropy rule
entropyMinLength: 20

# Maximum file size in bytes (larger files are skipped)
maxFileSize: 1000000

# Allowlist known false positives
allowlist:
  # By fingerprint (most specific)
  # - fingerprint: "0123456789abcdef"
  #   reason: "Test fixture"

  # By rule id and path
  # - ruleId: "generic-password"
  #   path: "Tests/"
  #   reason: "Test passwords"

# Custom rules
customRules:
  # - id: my-internal-key
  #   description: "Internal API Key"
  #   pattern: "MYCOMPANY_[A-Z0-9]{32}"
  #   severity: high
  #   category: api-key
  #   keywords:
  #     - MYCOMPANY_
"""


def write_sample_config(path: Path, force: bool = False) -> None:
    """Write SAMPLE_CONFIG to ``path``; refuses to overwrite unless ``force``."""
    if path.exists() and not force:
        raise ConfigurationError(f"File already exists: {path} (use --force to overwrite)")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(SAMPLE_CONFIG, encoding="utf-8")
