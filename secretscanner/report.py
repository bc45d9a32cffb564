"""
Report rendering for SecretScanner scan results.

Handles console output (rich-formatted) plus JSON, SARIF 2.1.0 and compact
text renderers, and the rule listing used by ``list-rules``.
"""

from __future__ import annotations

import json
from collections import defaultdict
from typing import Any, Iterable

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from secretscanner.aggregator import ScanResult
from secretscanner.pattern_engine import Finding, SecretCategory, Severity
from secretscanner.rules import RuleSummary

VERSION = "1.0.0"

SARIF_SCHEMA = "https://json.schemastore.org/sarif-2.1.0.json"
INFORMATION_URI = "https://github.com/secretscanner/secretscanner"

_SEVERITY_COLORS: dict[Severity, str] = {
    Severity.CRITICAL: "bold red",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "cyan",
    Severity.INFO: "dim",
}

_SEVERITY_LABELS: dict[Severity, str] = {
    Severity.CRITICAL: "[!!]",
    Severity.HIGH: "[!] ",
    Severity.MEDIUM: "[~] ",
    Severity.LOW: "[-] ",
    Severity.INFO: "[i] ",
}

_SARIF_LEVELS: dict[Severity, str] = {
    Severity.CRITICAL: "error",
    Severity.HIGH: "error",
    Severity.MEDIUM: "warning",
    Severity.LOW: "note",
    Severity.INFO: "note",
}

_console = Console(highlight=False)


def _severity_text(severity: Severity) -> Text:
    color = _SEVERITY_COLORS.get(severity, "white")
    label = _SEVERITY_LABELS.get(severity, "")
    return Text(f"{label} {severity.value.upper()}", style=color)


# ── console ────────────────────────────────────────────────────────────────


def print_finding(finding: Finding, console: Console | None = None) -> None:
    """Print one finding as a short rich block."""
    console = console or _console
    console.print(_severity_text(finding.severity), end=" ")
    console.print(Text.assemble((finding.rule_id, "bold"), "  ", finding.description))
    console.print(
        Text(f"    {finding.file_path}:{finding.line_number}:{finding.column_start}", style="dim")
    )
    console.print(f"    secret: {finding.secret}", markup=False)
    console.print(Text(f"    fingerprint: {finding.fingerprint}", style="dim"))
    console.print()


def print_summary(result: ScanResult, console: Console | None = None) -> None:
    """Print the scan summary block."""
    console = console or _console
    found = result.finding_count
    console.print("[bold]--- Scan Summary ---[/bold]")
    console.print(f"  Files scanned : [bold]{result.scanned_files}[/bold]")
    console.print(f"  Lines scanned : [bold]{result.scanned_lines}[/bold]")
    console.print(f"  Secrets found : [{'red' if found else 'green'}]{found}[/]")
    console.print(f"  Duration      : [dim]{result.duration:.2f}s[/dim]")
    console.print()


def print_report(result: ScanResult, console: Console | None = None, verbose: bool = False) -> None:
    """Print every finding followed by the summary; errors only when ``verbose``."""
    console = console or _console
    if not result.findings:
        console.print("[green][+][/green] No secrets found.")
        console.print()
    for finding in result.findings:
        print_finding(finding, console)

    if verbose and result.errors:
        console.print(f"[yellow]{len(result.errors)} file(s) could not be scanned:[/yellow]")
        for error in result.errors:
            console.print(f"  {error.file}: {error.message}", markup=False, style="dim")
        console.print()

    print_summary(result, console)


# ── JSON ───────────────────────────────────────────────────────────────────


def finding_to_dict(finding: Finding) -> dict[str, Any]:
    return {
        "ruleId": finding.rule_id,
        "description": finding.description,
        "severity": finding.severity.value,
        "category": finding.category.value,
        "filePath": finding.file_path,
        "lineNumber": finding.line_number,
        "columnStart": finding.column_start,
        "columnEnd": finding.column_end,
        "line": finding.line,
        "secret": finding.secret,
        "fingerprint": finding.fingerprint,
    }


def build_json_report(result: ScanResult, verbose: bool = False) -> dict[str, Any]:
    """Construct a serializable JSON report structure."""
    report: dict[str, Any] = {
        "findings": [finding_to_dict(f) for f in result.findings],
        "summary": {
            "filesScanned": result.scanned_files,
            "linesScanned": result.scanned_lines,
            "secretsFound": result.finding_count,
            "duration": round(result.duration, 3),
        },
    }
    if verbose and result.errors:
        report["errors"] = [{"file": e.file, "message": e.message} for e in result.errors]
    return report


def format_json(result: ScanResult, verbose: bool = False) -> str:
    return json.dumps(build_json_report(result, verbose), indent=2, sort_keys=True)


# ── SARIF ──────────────────────────────────────────────────────────────────


def build_sarif_report(result: ScanResult) -> dict[str, Any]:
    """
    Construct a SARIF 2.1.0 log with a single run.

    Driver rules are derived from the findings, one per distinct rule id in
    first-seen order.
    """
    rules: dict[str, dict[str, Any]] = {}
    for finding in result.findings:
        if finding.rule_id in rules:
            continue
        rules[finding.rule_id] = {
            "id": finding.rule_id,
            "name": finding.rule_id,
            "shortDescription": {"text": finding.description},
            "defaultConfiguration": {"level": _SARIF_LEVELS[finding.severity]},
            "properties": {
                "category": finding.category.value,
                "severity": finding.severity.value,
            },
        }

    results = [
        {
            "ruleId": f.rule_id,
            "level": _SARIF_LEVELS[f.severity],
            "message": {"text": f"{f.description}: {f.secret}"},
            "locations": [
                {
                    "physicalLocation": {
                        "artifactLocation": {"uri": f.file_path},
                        "region": {
                            "startLine": f.line_number,
                            "startColumn": f.column_start,
                            "endColumn": f.column_end,
                        },
                    }
                }
            ],
            "fingerprints": {"secretscanner": f.fingerprint},
        }
        for f in result.findings
    ]

    return {
        "$schema": SARIF_SCHEMA,
        "version": "2.1.0",
        "runs": [
            {
                "tool": {
                    "driver": {
                        "name": "SecretScanner",
                        "version": VERSION,
                        "informationUri": INFORMATION_URI,
                        "rules": list(rules.values()),
                    }
                },
                "results": results,
            }
        ],
    }


def format_sarif(result: ScanResult) -> str:
    return json.dumps(build_sarif_report(result), indent=2, sort_keys=True)


# ── compact ────────────────────────────────────────────────────────────────


def format_compact(result: ScanResult) -> str:
    """One ``path:line:col: [SEVERITY] ruleId - masked`` line per finding."""
    if not result.findings:
        return "No secrets found."
    lines = [
        f"{f.file_path}:{f.line_number}:{f.column_start}: "
        f"[{f.severity.value.upper()}] {f.rule_id} - {f.secret}"
        for f in result.findings
    ]
    files = len({f.file_path for f in result.findings})
    lines.append("")
    lines.append(f"Found {result.finding_count} secret(s) in {files} file(s)")
    return "\n".join(lines)


# ── rule listing ───────────────────────────────────────────────────────────


def _group_by_category(summaries: Iterable[RuleSummary]) -> dict[str, list[RuleSummary]]:
    groups: dict[str, list[RuleSummary]] = defaultdict(list)
    for summary in summaries:
        groups[summary.category].append(summary)
    # Categories in declaration order, unknown ones last
    order = [c.value for c in SecretCategory]

    def position(category: str) -> tuple[int, str]:
        return (order.index(category) if category in order else len(order), category)

    return {category: groups[category] for category in sorted(groups, key=position)}


def print_rules(summaries: Iterable[RuleSummary], console: Console | None = None) -> None:
    """Print the rule catalog as one rich table per category."""
    console = console or _console
    summaries = list(summaries)
    for category, group in _group_by_category(summaries).items():
        table = Table(
            title=Text(category, style="bold"),
            title_justify="left",
            title_style="bold",
            box=box.SIMPLE,
            show_header=True,
            header_style="bold dim",
            padding=(0, 1),
        )
        table.add_column("Rule", min_width=28)
        table.add_column("Severity", width=10)
        table.add_column("Description")
        for summary in group:
            severity = Severity.parse(summary.severity)
            table.add_row(
                Text(summary.id),
                Text(severity.value.upper(), style=_SEVERITY_COLORS[severity]),
                Text(summary.description),
            )
        console.print(table)
    console.print(f"[dim]{len(summaries)} rule(s)[/dim]")


def format_rules_json(summaries: Iterable[RuleSummary]) -> str:
    return json.dumps(
        [
            {
                "id": s.id,
                "description": s.description,
                "severity": s.severity,
                "category": s.category,
            }
            for s in summaries
        ],
        indent=2,
        sort_keys=True,
    )
