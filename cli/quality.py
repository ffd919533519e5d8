"""CLI wrappers: lint and format with ruff."""

from __future__ import annotations

from cli._runner import run_python

SOURCE_DIRS = ("promo_builder", "tests", "scripts", "cli")


def lint() -> None:
    run_python("-m", "ruff", "check", *SOURCE_DIRS)


def format_code() -> None:
    run_python("-m", "ruff", "format", *SOURCE_DIRS)
