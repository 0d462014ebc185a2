"""Runnable scripts for common dev tasks. Use: uv run <script-name> (names in pyproject.toml)."""

import subprocess
import sys


def _run(args: list[str]) -> None:
    """Run a command; exit with its code."""
    sys.exit(subprocess.run(args).returncode)


def lint() -> None:
    """Run ruff check on scheduled_task and tests."""
    _run([sys.executable, "-m", "ruff", "check", "scheduled_task", "tests"])


def lint_fix() -> None:
    """Run ruff check --fix on scheduled_task and tests."""
    _run([sys.executable, "-m", "ruff", "check", "--fix", "scheduled_task", "tests"])


def format() -> None:
    """Run ruff format on scheduled_task and tests."""
    _run([sys.executable, "-m", "ruff", "format", "scheduled_task", "tests"])


def type_check() -> None:
    """Run pyright on scheduled_task."""
    _run([sys.executable, "-m", "pyright", "scheduled_task"])


def test() -> None:
    """Run pytest."""
    _run([sys.executable, "-m", "pytest", "tests/", "-v"])


def test_cov() -> None:
    """Run pytest with coverage report."""
    _run(
        [
            sys.executable,
            "-m",
            "pytest",
            "tests/",
            "--cov=scheduled_task",
            "--cov-report=term-missing",
            "-v",
        ]
    )
