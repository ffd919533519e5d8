"""
Shared CLI runner helper.

Runs a command from the project root and propagates its exit code, so the
project scripts behave the same whichever directory they are invoked from.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def run(cmd: Sequence[str]) -> None:
    """
    Run a command from the project root and exit with its return code.

    Example:
        >>> run([sys.executable, "-m", "pytest", "-q"])
    """
    result = subprocess.run(cmd, cwd=PROJECT_ROOT)
    raise SystemExit(result.returncode)


def run_python(*args: str) -> None:
    """Run the current interpreter with `args` plus any extra command-line arguments."""
    run([sys.executable, *args, *sys.argv[1:]])
