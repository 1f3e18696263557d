"""Coloured status lines for warnings and successes."""

from __future__ import annotations

import os

from rich.console import Console
from rich.text import Text


def no_emoji() -> bool:
    """Return True when the NO_EMOJI environment variable is set."""
    return "NO_EMOJI" in os.environ


def _report(plain: str, emoji: str, style: str, message: str) -> None:
    prefix = plain if no_emoji() else emoji
    line = Text.assemble((prefix, style), " ", (message, style))
    Console(highlight=False, soft_wrap=True).print(line)


def warn(message: str) -> None:
    """Print a red warning line."""
    _report("!", "⚠️ ", "red", message)


def success(message: str) -> None:
    """Print a green success line."""
    _report("✓", "✅", "green", message)