"""Shared helpers for CLI command handlers."""

from __future__ import annotations

import argparse
import os
import shlex
import shutil
import subprocess
import sys
from datetime import date
from decimal import Decimal

from avkosten.domain.money import to_decimal
from avkosten.runtime import get_logger

logger = get_logger(__name__)


def decimal_arg(value: str) -> Decimal:
    """argparse type for amounts; accepts ``12.50`` and ``12,50``."""
    try:
        return to_decimal(value, "amount")
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def date_arg(value: str) -> date:
    """argparse type for ISO dates (YYYY-MM-DD)."""
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYY-MM-DD): {value}") from exc


def quantity_arg(value: str) -> int:
    """argparse type for planned item quantities."""
    try:
        return int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Quantity must be a whole number: {value}") from exc


def fail(message: str | None) -> None:
    """Print an error and exit with status 1."""
    for line in (message or "Command failed").splitlines():
        print(f"Error: {line}")
    sys.exit(1)


def confirm(prompt: str, assume_yes: bool = False) -> bool:
    """Ask a y/N question; non-interactive sessions need ``assume_yes``."""
    if assume_yes:
        return True
    if not sys.stdin.isatty():
        print(f"{prompt} Refusing without --yes in a non-interactive session.")
        return False
    print(f"{prompt} [y/N] ", end="")
    return input().strip().lower() == "y"


def resolve_editor() -> list[str]:
    """Resolve editor command: git core.editor -> $EDITOR -> vi."""
    git_path = shutil.which("git")
    if git_path:
        try:
            result = subprocess.run(
                ["git", "config", "--global", "core.editor"],
                capture_output=True,
                text=True,
            )
            if result.returncode == 0:
                editor = result.stdout.strip()
                if editor:
                    # Reject shell operators; fall back to $EDITOR for complex commands.
                    if any(ch in editor for ch in ["|", "&", ";", "<", ">", "`", "$", "(", ")"]):
                        print("Unsupported git core.editor (shell operators). Falling back to $EDITOR.")
                    else:
                        return shlex.split(editor)
        except OSError as exc:
            logger.debug("Could not read git core.editor: %s", exc)

    env_editor = os.environ.get("EDITOR", "").strip()
    if env_editor:
        return shlex.split(env_editor)

    return ["vi"]
