"""CLI wrapper: Run the test suite."""

from __future__ import annotations

from cli._runner import run_python


def main() -> None:
    run_python("-m", "pytest", "-q")
