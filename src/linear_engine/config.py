from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .env_auth import EnvAuthConfig, get_auth_manager
from .errors import ConfigurationError
from .linear_client import DEFAULT_API_URL

DEFAULT_CONFIG_FILE = 'linear_engine.config.yaml'
DEFAULT_HOST = '127.0.0.1'
DEFAULT_PORT = 8787
DEFAULT_TIMEOUT = 30.0

_TRUE = {'1', 'true', 'yes', 'on'}


@dataclass
class EngineConfig:
    source_file: Path | None = None
    # Linear
    api_key: str | None = None
    api_url: str = DEFAULT_API_URL
    team_id: str | None = None
    request_timeout: float = DEFAULT_TIMEOUT
    milestones_enabled: bool = True
    project_teams_enabled: bool = True
    # HTTP server
    exec_secret: str | None = None
    server_host: str = DEFAULT_HOST
    server_port: int = DEFAULT_PORT
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = 'INFO'
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None


def _resolve_env_var(value: Any, env_var_name: str | None = None) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        env_name = env_var_name or value[1:]
        return os.getenv(env_name) or None
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(f'Config section "{name}" must be a mapping')
    return cast(dict[str, Any], value)


def _env_override(current: Any, env_name: str) -> Any:
    value = os.getenv(env_name)
    return value if value else current


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE
    return bool(value)


def _read_file(path: str | Path | None) -> tuple[dict[str, Any], Path | None]:
    if path is None:
        p = Path(DEFAULT_CONFIG_FILE)
        if not p.exists():
            return {}, None
    else:
        p = Path(path)
        if not p.exists():
            raise ConfigurationError(f'Configuration file not found: {p}')
    try:
        loaded = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f'Unable to load configuration {p}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigurationError(f'Configuration file {p} must contain a mapping')
    return cast(dict[str, Any], loaded), p


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Build the effective configuration.

    Order of precedence, lowest first: built-in defaults, the YAML file,
    ``$VAR`` references inside it, then the environment variables
    ``LINEAR_API_KEY``, ``LINEAR_API_URL``, ``LINEAR_TEAM_ID``, ``EXEC_SECRET``,
    ``LINEAR_ENGINE_LOG_LEVEL`` and ``LINEAR_ENGINE_LOG_JSON``. Dotenv files
    are loaded before the environment is consulted.
    """
    raw, source = _read_file(path)
    linear = _section(raw, 'linear')
    server = _section(raw, 'server')
    logging_config = _section(raw, 'logging')
    env_auth = _section(raw, 'environment')

    load_dotenv = _as_bool(env_auth.get('load_dotenv', True))
    dotenv_path = env_auth.get('dotenv_path')
    auth = get_auth_manager(EnvAuthConfig(load_dotenv=load_dotenv, dotenv_path=dotenv_path))

    api_key = auth.get_linear_api_key() or _resolve_env_var(linear.get('api_key'))
    exec_secret = auth.get_exec_secret() or _resolve_env_var(server.get('exec_secret'))

    try:
        timeout = float(linear.get('request_timeout', DEFAULT_TIMEOUT))
        port = int(server.get('port', DEFAULT_PORT))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f'Invalid numeric configuration value: {exc}') from exc

    return EngineConfig(
        source_file=source,
        api_key=api_key or None,
        api_url=_env_override(_resolve_env_var(linear.get('api_url')) or DEFAULT_API_URL, 'LINEAR_API_URL'),
        team_id=_env_override(_resolve_env_var(linear.get('team_id')), 'LINEAR_TEAM_ID'),
        request_timeout=timeout,
        milestones_enabled=_as_bool(linear.get('milestones', True)),
        project_teams_enabled=_as_bool(linear.get('project_teams', True)),
        exec_secret=exec_secret or None,
        server_host=str(server.get('host', DEFAULT_HOST)),
        server_port=port,
        logging_json_enabled=_as_bool(
            _env_override(logging_config.get('json_enabled', False), 'LINEAR_ENGINE_LOG_JSON')
        ),
        logging_level=str(_env_override(logging_config.get('level', 'INFO'), 'LINEAR_ENGINE_LOG_LEVEL')),
        env_auth_load_dotenv=load_dotenv,
        env_auth_dotenv_path=dotenv_path,
    )


__all__ = ['DEFAULT_CONFIG_FILE', 'EngineConfig', 'load_config']
