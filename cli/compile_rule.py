"""CLI wrapper: Compile (and optionally submit) a saved rule graph."""

from __future__ import annotations

from cli._runner import PROJECT_ROOT, run_python


def main() -> None:
    run_python(str(PROJECT_ROOT / "scripts" / "compile_rule.py"))
