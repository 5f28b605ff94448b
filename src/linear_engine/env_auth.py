"""Environment-based credentials for linear-engine.

Loads ``.env`` style files through python-dotenv and exposes the Linear API
key and the HTTP exec secret from the process environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

DOTENV_LOCATIONS = ('.env', '.env.local')


@dataclass
class EnvAuthConfig:
    """Which files to load and which variables carry credentials."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    api_key_var: str = 'LINEAR_API_KEY'
    exec_secret_var: str = 'EXEC_SECRET'


class EnvironmentAuthManager:
    """Resolves credentials from the environment, loading dotenv files first."""

    def __init__(self, config: EnvAuthConfig | None = None):
        self.config = config or EnvAuthConfig()
        self.logger = get_logger()
        self.loaded_files: list[Path] = []
        if self.config.load_dotenv:
            self._load_dotenv()

    def _load_dotenv(self) -> None:
        # Existing environment variables win over file contents.
        if self.config.dotenv_path:
            candidates = [Path(self.config.dotenv_path)]
        else:
            candidates = [Path(location) for location in DOTENV_LOCATIONS]
        for env_file in candidates:
            if env_file.is_file():
                load_dotenv(str(env_file), override=False)
                self.loaded_files.append(env_file)
                self.logger.debug(f'Loaded environment variables from {env_file}')

    def get_linear_api_key(self) -> str | None:
        key = (os.getenv(self.config.api_key_var) or '').strip()
        if key:
            self.logger.debug('Found Linear API key in environment variables')
            return key
        return None

    def get_exec_secret(self) -> str | None:
        return (os.getenv(self.config.exec_secret_var) or '').strip() or None


_auth_manager: EnvironmentAuthManager | None = None


def get_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Get or create the process-wide manager (a new config replaces it)."""
    global _auth_manager  # noqa: PLW0603
    if _auth_manager is None or config is not None:
        _auth_manager = EnvironmentAuthManager(config)
    return _auth_manager


def reset_auth_manager() -> None:
    global _auth_manager  # noqa: PLW0603
    _auth_manager = None


__all__ = [
    'EnvAuthConfig',
    'EnvironmentAuthManager',
    'get_auth_manager',
    'reset_auth_manager',
]
