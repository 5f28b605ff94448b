"""Workflow state resolution for a team's ordered set of states."""

from __future__ import annotations

import re
from collections.abc import Sequence

from .models import RemoteWorkflowState

TERMINAL_TYPES = frozenset({"completed", "canceled"})
UNKNOWN_STATE = "Unknown"

_ACTIVE_NAME_RE = re.compile(r"in progress|doing|active|started", re.IGNORECASE)


def find_state_by_name(
    states: Sequence[RemoteWorkflowState], name: str
) -> RemoteWorkflowState | None:
    needle = (name or "").strip().lower()
    if not needle:
        return None
    for state in states:
        if state.name.lower() == needle:
            return state
    return None


def state_name_by_id(states: Sequence[RemoteWorkflowState], state_id: str | None) -> str:
    if not state_id:
        return UNKNOWN_STATE
    for state in states:
        if state.id == state_id:
            return state.name
    return UNKNOWN_STATE


def first_active_state(states: Sequence[RemoteWorkflowState]) -> RemoteWorkflowState | None:
    """Pick the state ``start`` moves an issue into.

    Explicit ``started`` type beats a name heuristic, and any non-terminal
    state beats none.
    """
    ordered = sorted(states, key=lambda s: s.position or 0)
    for state in ordered:
        if (state.type or "").lower() == "started":
            return state
    for state in ordered:
        if _ACTIVE_NAME_RE.search(state.name):
            return state
    for state in ordered:
        if (state.type or "").lower() not in TERMINAL_TYPES:
            return state
    return None


__all__ = ["find_state_by_name", "first_active_state", "state_name_by_id", "UNKNOWN_STATE"]
