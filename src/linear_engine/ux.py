"""Terminal output helpers for the CLI."""

from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterable, Sequence
from typing import Any, TextIO

from .errors import redact
from .sync import CREATED, SKIPPED, UPDATED, SyncAction


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"


_STATUS_COLORS = {CREATED: Colors.GREEN, UPDATED: Colors.CYAN, SKIPPED: Colors.YELLOW}


def _supports_color(stream: TextIO | None = None) -> bool:
    """Check if terminal supports color output."""
    stream = stream or sys.stdout
    if os.environ.get("NO_COLOR"):
        return False
    if not hasattr(stream, "isatty") or not stream.isatty():
        return False
    return os.environ.get("TERM") != "dumb"


def colorize(text: str, color: str, bold: bool = False, stream: TextIO | None = None) -> str:
    """Apply color to text if terminal supports it."""
    if not _supports_color(stream):
        return text
    prefix = (Colors.BOLD if bold else "") + color
    return f"{prefix}{text}{Colors.RESET}"


def print_json(payload: Any, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print(json.dumps(payload, indent=2, default=str), file=stream)


def print_lines(lines: Iterable[str], stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    for line in lines:
        print(line, file=stream)


def print_error(message: str, as_json: bool = False, stream: TextIO | None = None) -> None:
    """Render a failure on stderr, as ``{"error": ...}`` in JSON mode."""
    stream = stream or sys.stderr
    message = redact(message)
    if as_json:
        print_json({"error": message}, stream=stream)
        return
    print(colorize(f"Error: {message}", Colors.RED, bold=True, stream=stream), file=stream)


def print_sync_actions(actions: Sequence[SyncAction], stream: TextIO | None = None) -> None:
    """Group sync actions by status, one ``- entity: name (reason)`` line each."""
    stream = stream or sys.stdout
    for status in (CREATED, UPDATED, SKIPPED):
        matching = [a for a in actions if a.status == status]
        header = f"{status}: {len(matching)}"
        print(colorize(header, _STATUS_COLORS[status], bold=True, stream=stream), file=stream)
        for action in matching:
            suffix = f" ({action.reason})" if action.reason else ""
            print(f"- {action.entity}: {action.name}{suffix}", file=stream)


def print_table(rows: Sequence[Sequence[str]], headers: Sequence[str], stream: TextIO | None = None) -> None:
    """Left-aligned plain table; empty input prints the header only."""
    stream = stream or sys.stdout
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))
    head = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)).rstrip()
    print(colorize(head, Colors.CYAN, bold=True, stream=stream), file=stream)
    for row in rows:
        print("  ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip(), file=stream)


__all__ = [
    "Colors",
    "colorize",
    "print_error",
    "print_json",
    "print_lines",
    "print_sync_actions",
    "print_table",
]
