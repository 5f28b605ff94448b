"""Managed-description sentinel.

Descriptions written by sync carry ``managedBy: linear-engine`` as their
first line, followed by a blank line and the user body. Older descriptions
used a fenced block instead::

    ---
    managedBy: linear-engine
    ---

which may sit at the start or the end of the text. ``strip_managed_metadata``
understands both forms; ``ensure_managed_metadata`` always renders the
leading bare-line form.
"""

from __future__ import annotations

TOOL_NAME = "linear-engine"
MANAGED_METADATA_LINE = f"managedBy: {TOOL_NAME}"
_FENCE = "---"


def _is_sentinel(line: str) -> bool:
    key, sep, value = line.strip().partition(":")
    return bool(sep) and key.strip() == "managedBy" and value.strip() == TOOL_NAME


def _is_fenced_at(lines: list[str], idx: int) -> bool:
    return (
        0 <= idx
        and idx + 2 < len(lines)
        and lines[idx].strip() == _FENCE
        and _is_sentinel(lines[idx + 1])
        and lines[idx + 2].strip() == _FENCE
    )


def _drop_blank_edges(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def strip_managed_metadata(description: str | None) -> str:
    """Return the semantic body of a description (sentinel removed, trimmed)."""
    if not description:
        return ""
    lines = _drop_blank_edges(description.splitlines())
    if _is_fenced_at(lines, 0):
        lines = _drop_blank_edges(lines[3:])
    if _is_fenced_at(lines, len(lines) - 3):
        lines = _drop_blank_edges(lines[:-3])
    if lines and _is_sentinel(lines[0]):
        lines = _drop_blank_edges(lines[1:])
    return "\n".join(lines).strip()


def ensure_managed_metadata(description: str | None) -> str:
    body = strip_managed_metadata(description)
    if not body:
        return MANAGED_METADATA_LINE
    return f"{MANAGED_METADATA_LINE}\n\n{body}"


def semantic_description(description: str | None) -> str:
    """Canonical comparison key: two descriptions match when these are equal."""
    return ensure_managed_metadata(description).strip()


__all__ = [
    "MANAGED_METADATA_LINE",
    "TOOL_NAME",
    "ensure_managed_metadata",
    "semantic_description",
    "strip_managed_metadata",
]
