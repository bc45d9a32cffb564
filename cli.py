"""
SecretScanner CLI: secret detection and pre-commit scanner.

Commands:
  scan              Scan files and directories for secrets
  init              Write a sample configuration file
  list-rules        List the detection rules
  install-hook      Install the pre-commit hook into a Git repo
  uninstall-hook    Remove the pre-commit hook from a Git repo
"""

from __future__ import annotations

import logging
import sys
from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from git_hooks import pre_commit
from git_hooks.pre_commit import GitHookError, install_hook, uninstall_hook
from secretscanner.config_loader import (
    Configuration,
    ConfigurationError,
    load_config,
    write_sample_config,
)
from secretscanner.pattern_engine import Severity
from secretscanner.report import (
    VERSION,
    format_compact,
    format_json,
    format_rules_json,
    format_sarif,
    print_report,
    print_rules,
)
from secretscanner.rules import list_rules
from secretscanner.scanner import scan

_console = Console(highlight=False)
_err_console = Console(stderr=True, highlight=False)

_FORMATS = ["console", "json", "sarif", "compact"]
_SEVERITIES = [s.value for s in Severity]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False)],
        force=True,
    )


def _resolve_config(config_path: Path | None) -> Configuration:
    """Load the Configuration, exiting with a user-friendly message on failure."""
    try:
        return load_config(config_path)
    except ConfigurationError as exc:
        _err_console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(2)


def _apply_overrides(
    config: Configuration,
    paths: tuple[str, ...],
    min_severity: str | None,
    no_entropy: bool,
    disabled: tuple[str, ...],
) -> Configuration:
    """Command-line values replace configuration values only when given."""
    changes: dict = {}
    if paths:
        changes["paths"] = tuple(paths)
    if min_severity is not None:
        changes["min_severity"] = Severity.parse(min_severity)
    if no_entropy:
        changes["enable_entropy"] = False
    if disabled:
        changes["disabled_rules"] = config.disabled_rules | frozenset(disabled)
    return replace(config, **changes) if changes else config


def _hook_error(exc: GitHookError) -> None:
    _err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
    sys.exit(1)


@click.group()
@click.version_option(VERSION, prog_name="secretscanner")
def cli() -> None:
    """SecretScanner: find hardcoded secrets in source code."""


@cli.command("scan")
@click.argument("paths", nargs=-1, type=click.Path())
@click.option("--config", "-c", default=None, type=click.Path(path_type=Path), help="Path to configuration file")
@click.option("--format", "-f", "output_format", default="console", show_default=True,
              type=click.Choice(_FORMATS), help="Output format")
@click.option("--output", "-o", default=None, type=click.Path(path_type=Path),
              help="Write the report to a file instead of stdout")
@click.option("--min-severity", default=None, type=click.Choice(_SEVERITIES, case_sensitive=False),
              help="Minimum severity to report (overrides configuration)")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Show debug logging and scan errors")
@click.option("--no-entropy", is_flag=True, default=False, help="Disable entropy-based detection")
@click.option("--fail-on-secrets/--no-fail-on-secrets", default=True, show_default=True,
              help="Exit with code 1 when secrets are found")
@click.option("--disable-rule", "disabled", multiple=True, metavar="ID", help="Disable a rule (repeatable)")
def cmd_scan(
    paths: tuple[str, ...],
    config: Path | None,
    output_format: str,
    output: Path | None,
    min_severity: str | None,
    verbose: bool,
    no_entropy: bool,
    fail_on_secrets: bool,
    disabled: tuple[str, ...],
) -> None:
    """Scan PATHS (default: configured paths) for secrets."""
    _configure_logging(verbose)
    cfg = _apply_overrides(_resolve_config(config), paths, min_severity, no_entropy, disabled)

    result = scan(cfg)

    if output_format == "console":
        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            with open(output, "w", encoding="utf-8") as f:
                print_report(result, Console(file=f, highlight=False, width=120), verbose=verbose)
        else:
            print_report(result, _console, verbose=verbose)
    else:
        if output_format == "json":
            text = format_json(result, verbose=verbose)
        elif output_format == "sarif":
            text = format_sarif(result)
        else:
            text = format_compact(result)

        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(text + "\n", encoding="utf-8")
        else:
            click.echo(text)

    if output:
        _err_console.print(f"[dim]Report written to {escape(str(output))}[/dim]")

    if fail_on_secrets:
        sys.exit(result.exit_code)


@cli.command("init")
@click.option("--output", "-o", default=".secretscanner.yml", show_default=True,
              type=click.Path(path_type=Path), help="Where to write the configuration")
@click.option("--force", "-f", is_flag=True, default=False, help="Overwrite an existing file")
def cmd_init(output: Path, force: bool) -> None:
    """Write a sample configuration file."""
    try:
        write_sample_config(output, force=force)
    except ConfigurationError as exc:
        _err_console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(2)
    _console.print(f"[green]✓[/green] Configuration written to [bold]{escape(str(output))}[/bold]")


@cli.command("list-rules")
@click.option("--json", "as_json", is_flag=True, default=False, help="Output as JSON")
@click.option("--config", "-c", default=None, type=click.Path(path_type=Path),
              help="List the active rules for this configuration file")
def cmd_list_rules(as_json: bool, config: Path | None) -> None:
    """List the detection rules."""
    summaries = list_rules(_resolve_config(config) if config else None)
    if as_json:
        click.echo(format_rules_json(summaries))
    else:
        print_rules(summaries, _console)


@cli.command("install-hook")
@click.option("--path", "-p", "repo", default=".", show_default=True,
              type=click.Path(file_okay=False, path_type=Path), help="Git repository")
@click.option("--force", "-f", is_flag=True, default=False, help="Overwrite an existing hook")
def cmd_install_hook(repo: Path, force: bool) -> None:
    """Install the SecretScanner pre-commit hook into a Git repository."""
    try:
        hook = install_hook(repo, force=force)
    except GitHookError as exc:
        _hook_error(exc)
        return
    _console.print(f"[green]✓[/green] Pre-commit hook installed at [bold]{escape(str(hook))}[/bold]")
    _console.print("The hook scans staged files for secrets before each commit.")


@cli.command("uninstall-hook")
@click.option("--path", "-p", "repo", default=".", show_default=True,
              type=click.Path(file_okay=False, path_type=Path), help="Git repository")
def cmd_uninstall_hook(repo: Path) -> None:
    """Remove the SecretScanner pre-commit hook from a Git repository."""
    try:
        uninstall_hook(repo)
    except GitHookError as exc:
        _hook_error(exc)
        return
    _console.print("[green]✓[/green] Pre-commit hook removed")


@cli.command("pre-commit", hidden=True)
def cmd_pre_commit() -> None:
    """Scan staged files; run by the installed hook."""
    _configure_logging(False)
    try:
        code = pre_commit.main()
    except ConfigurationError as exc:
        _err_console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(2)
    except GitHookError as exc:
        _hook_error(exc)
        return
    sys.exit(code)


if __name__ == "__main__":
    cli()
