"""Runtime helpers for linear-engine command orchestration."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, Protocol

from .config import EngineConfig
from .errors import ConfigurationError, LinearEngineError, classify_error
from .linear_client import LinearClient
from .logging import get_logger
from .tracker import TrackerCapabilities, TrackerPort


class _HandlerCallable(Protocol):
    def __call__(self) -> Any: ...


def build_tracker(cfg: EngineConfig) -> TrackerPort:
    """Construct the production tracker from configuration."""
    if not cfg.api_key:
        raise ConfigurationError(
            "LINEAR_API_KEY is missing. Set LINEAR_API_KEY or linear.api_key in config."
        )
    return LinearClient(
        api_key=cfg.api_key,
        api_url=cfg.api_url,
        default_team_id=cfg.team_id,
        timeout=cfg.request_timeout,
        capabilities=TrackerCapabilities(
            milestones=cfg.milestones_enabled,
            project_teams=cfg.project_teams_enabled,
        ),
    )


def execute_command(
    handler: _HandlerCallable,
    command: str,
    *,
    on_error: Callable[[LinearEngineError], None] | None = None,
) -> int:
    """Run a command handler and turn its outcome into an exit code.

    Domain failures (``LinearEngineError``) are logged, handed to
    ``on_error`` for rendering and mapped to exit code 1. Anything else
    propagates.
    """
    logger = get_logger()
    start = time.monotonic()
    try:
        result = handler()
        exit_code = int(result) if result is not None else 0
    except LinearEngineError as exc:
        info = classify_error(exc)
        logger.log_error(
            f"command {command} failed",
            error=info.message,
            command=command,
            category=info.category,
        )
        if on_error is not None:
            on_error(exc)
        exit_code = 1
    duration_ms = max(0.0, time.monotonic() - start) * 1000
    logger.log_performance(f"command_{command}", duration_ms, command=command, exit_code=exit_code)
    return exit_code


__all__ = ["build_tracker", "execute_command"]
