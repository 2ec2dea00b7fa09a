"""Shell and git utilities.

Provides a thin wrapper around subprocess calls for git, plus output
formatting helpers for the command line.
"""

from __future__ import annotations

import subprocess
import sys


def git(*args: str, cwd: str | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "status", "--short").
        cwd: Directory to run in; defaults to the current directory.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., ancestry test).

    Returns:
        Stripped stdout from the git command.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def git_ok(*args: str, cwd: str | None = None) -> bool:
    """Run a git command and report whether it exited with status 0."""
    result = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True)
    return result.returncode == 0


def step(msg: str) -> None:
    """Print a visually distinct step header to stderr.

    Keeps stdout clean for machine-readable output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}", file=sys.stderr)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the run.
    """
    print(f"ERROR: {msg}", file=sys.stderr)
    sys.exit(1)
