"""
SecretScanner Git pre-commit hook.

Installs and removes the hook script, lists staged files, and runs the scan
that blocks a commit when secrets are staged.

Install via: secretscanner install-hook
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from pathlib import Path

from secretscanner.config_loader import load_config
from secretscanner.report import format_compact
from secretscanner.scanner import scan_paths

logger = logging.getLogger(__name__)

HOOK_MARKER = "secretscanner"

_HOOK_TEMPLATE = """\
#!/bin/sh
# SecretScanner pre-commit hook, auto-generated by: secretscanner install-hook

if ! command -v secretscanner >/dev/null 2>&1; then
    echo "Warning: secretscanner not found in PATH, skipping secret scan" >&2
    exit 0
fi

secretscanner pre-commit
"""

_BLOCKED_MESSAGE = """\
SecretScanner found potential secrets in your commit!
Please review and remove any secrets before committing.

If these are false positives, you can:
  1. Add them to your .secretscanner.yml allowlist
  2. Skip this check with: git commit --no-verify"""


class GitHookError(Exception):
    """Raised when a hook operation fails."""


def _git_dir(repo: Path) -> Path:
    git_dir = Path(repo).resolve() / ".git"
    if not git_dir.is_dir():
        raise GitHookError(f"Not a git repository: {Path(repo).resolve()}")
    return git_dir


def hook_path(repo: Path) -> Path:
    return _git_dir(repo) / "hooks" / "pre-commit"


def _has_marker(path: Path) -> bool:
    try:
        return HOOK_MARKER in path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return False


def install_hook(repo: Path = Path("."), force: bool = False) -> Path:
    """
    Write the pre-commit hook into ``repo`` and return its path.

    An existing hook is an error unless ``force``; with ``force`` it is
    backed up to ``pre-commit.bak`` first.
    """
    path = hook_path(repo)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise GitHookError(f"Unable to create hooks directory: {exc}") from exc

    if path.exists():
        if not force:
            raise GitHookError(f"Pre-commit hook already exists: {path}\nUse --force to overwrite")
        backup = path.with_suffix(".bak")
        shutil.copy2(path, backup)
        logger.debug("Existing hook backed up to %s", backup)

    try:
        path.write_text(_HOOK_TEMPLATE, encoding="utf-8")
    except OSError as exc:
        raise GitHookError(f"Unable to write hook: {exc}") from exc

    try:
        path.chmod(0o755)
    except OSError as exc:
        raise GitHookError(f"Unable to set hook permissions: {exc}") from exc
    return path


def uninstall_hook(repo: Path = Path(".")) -> Path:
    """Remove the hook if SecretScanner installed it; return the removed path."""
    path = hook_path(repo)
    if not path.exists():
        raise GitHookError(f"Pre-commit hook not found: {path}")
    if not _has_marker(path):
        raise GitHookError(
            f"Existing hook was not installed by SecretScanner: {path}\nRemove it manually"
        )
    try:
        path.unlink()
    except OSError as exc:
        raise GitHookError(f"Unable to remove hook: {exc}") from exc
    return path


def is_hook_installed(repo: Path = Path(".")) -> bool:
    try:
        path = hook_path(repo)
    except GitHookError:
        return False
    return path.is_file() and _has_marker(path)


def get_staged_files(repo: Path = Path(".")) -> list[str]:
    """Return staged paths (added, copied, modified or renamed) relative to the repo root."""
    try:
        result = subprocess.run(
            ["git", "diff", "--cached", "--name-only", "--diff-filter=ACMR"],
            cwd=str(repo),
            capture_output=True,
            text=True,
            check=True,
        )
    except subprocess.CalledProcessError as exc:
        raise GitHookError(f"Failed to list staged files: {exc.stderr.strip() or exc}") from exc
    except FileNotFoundError as exc:
        raise GitHookError("git not found in PATH") from exc

    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def main(repo: Path = Path(".")) -> int:
    """Entry point run by the installed hook. Returns the process exit code."""
    staged = get_staged_files(repo)
    # Deleted or renamed-away files may still appear in the diff
    existing = [p for p in staged if (Path(repo) / p).is_file()]
    if not existing:
        return 0

    print("Running SecretScanner on staged files...")
    config = load_config()
    result = scan_paths(existing, config, base_dir=str(repo))
    print(format_compact(result))

    if result.has_secrets:
        print(f"\n{_BLOCKED_MESSAGE}", file=sys.stderr)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
