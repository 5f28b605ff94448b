"""Error taxonomy & redaction.

Every failure surfaced by linear-engine is a subclass of
``LinearEngineError`` so adapters (CLI, HTTP) can render a single message
string without caring where the failure came from.

Public API:
- exception hierarchy (NotFound / Validation / RemoteOperation / Configuration / Spec / Sync)
- classify_error(exc) -> ErrorInfo
- redact(text) -> str

Nothing here retries. A failed invocation leaves the tracker in whatever
state it reached; the next sync run reconciles forward.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

_SENSITIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"lin_api_[A-Za-z0-9]{16,}"),  # Linear personal API keys
    re.compile(r"lin_oauth_[A-Za-z0-9]{16,}"),  # Linear OAuth tokens
]

_REDACTION_PLACEHOLDER = "<redacted>"


class LinearEngineError(RuntimeError):
    """Base class for all domain failures."""


class NotFoundError(LinearEngineError):
    kind = "entity"

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(message or f"{self.kind.capitalize()} not found: {key}")
        self.key = key


class IssueNotFoundError(NotFoundError):
    kind = "issue"


class ProjectNotFoundError(NotFoundError):
    kind = "project"


class UserNotFoundError(NotFoundError):
    kind = "user"


class StateNotFoundError(NotFoundError):
    kind = "state"

    def __init__(self, key: str, message: str | None = None) -> None:
        super().__init__(key, message or f"State not found in team workflow: {key}")


class ValidationError(LinearEngineError):
    """Empty or otherwise invalid argument."""


class ConfigurationError(LinearEngineError):
    """Missing credential/secret or unreadable configuration."""


class SyncError(LinearEngineError):
    """Reconciliation could not proceed (unresolvable milestone, assignee or team)."""


class SpecError(LinearEngineError):
    """ProjectSpec could not be loaded; ``stage`` is one of read / parse / schema."""

    def __init__(self, stage: str, message: str) -> None:
        super().__init__(message)
        self.stage = stage


class RemoteOperationError(LinearEngineError):
    """Any non-domain failure raised by the tracker port."""

    def __init__(self, operation: str, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.cause = cause


@dataclass
class ErrorInfo:
    category: str
    message: str
    original_type: str
    details: dict[str, Any] | None = None


def redact(text: str) -> str:
    """Replace API keys / tokens in arbitrary text with a placeholder."""
    if not text:
        return text
    redacted = text
    for pat in _SENSITIVE_PATTERNS:
        redacted = pat.sub(_REDACTION_PLACEHOLDER, redacted)
    return redacted


def classify_error(exc: BaseException) -> ErrorInfo:
    """Map an exception onto the error taxonomy.

    Order matters: subclasses are checked before their parents, anything
    outside the hierarchy falls back to ``generic``.
    """
    msg = redact(str(exc)) if exc else ""
    name = exc.__class__.__name__
    if isinstance(exc, NotFoundError):
        return ErrorInfo("not_found", msg, name, {"kind": exc.kind, "key": exc.key})
    if isinstance(exc, ValidationError):
        return ErrorInfo("validation", msg, name)
    if isinstance(exc, RemoteOperationError):
        return ErrorInfo("remote", msg, name, {"operation": exc.operation})
    if isinstance(exc, ConfigurationError):
        return ErrorInfo("configuration", msg, name)
    if isinstance(exc, SpecError):
        return ErrorInfo("spec", msg, name, {"stage": exc.stage})
    if isinstance(exc, SyncError):
        return ErrorInfo("sync", msg, name)
    return ErrorInfo("generic", msg, name)


__all__ = [
    "ConfigurationError",
    "ErrorInfo",
    "IssueNotFoundError",
    "LinearEngineError",
    "NotFoundError",
    "ProjectNotFoundError",
    "RemoteOperationError",
    "SpecError",
    "StateNotFoundError",
    "SyncError",
    "UserNotFoundError",
    "ValidationError",
    "classify_error",
    "redact",
]
