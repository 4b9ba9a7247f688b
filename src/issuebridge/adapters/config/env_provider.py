"""
Environment Configuration Provider - Load configuration from env vars and .env.

Precedence, lowest to highest:
1. Config file (.issuebridge.yaml, .issuebridge.toml, pyproject.toml)
2. .env file
3. Environment variables
4. CLI overrides
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from issuebridge.core.exceptions import ConfigFileError
from issuebridge.core.ports.config_provider import AppConfig, ConfigProviderPort

from .file_provider import (
    config_from_dict,
    find_config_file,
    get_path,
    read_config_file,
    set_path,
)


ENV_KEYS = {
    "AZURE_DEVOPS_ORGANIZATION": "azure_devops.organization",
    "AZURE_DEVOPS_PAT": "azure_devops.pat",
    "AZURE_DEVOPS_PROJECT": "azure_devops.project",
    "AZURE_DEVOPS_URL": "azure_devops.url",
    "GITLAB_TOKEN": "gitlab.token",
    "GITLAB_PROJECT": "gitlab.project",
    "GITLAB_URL": "gitlab.url",
    "ISSUEBRIDGE_TRACKER": "tracker",
    "ISSUEBRIDGE_CLOSED_STATES": "issues.closed_states",
    "ISSUEBRIDGE_EXECUTE": "execute",
    "ISSUEBRIDGE_TIMEOUT": "timeout",
    "ISSUEBRIDGE_MAX_RETRIES": "max_retries",
}


class EnvironmentConfigProvider(ConfigProviderPort):
    """Configuration provider layering a config file, .env, env vars and CLI overrides."""

    def __init__(
        self,
        config_file: Path | None = None,
        env_file: Path | None = None,
        cli_overrides: dict[str, Any] | None = None,
    ):
        """
        Initialize the environment config provider.

        Args:
            config_file: Explicit config file; auto-detected when None
            env_file: Explicit .env file; ./.env when None
            cli_overrides: Dot-notation values with the highest precedence
        """
        self._config_file = Path(config_file) if config_file else None
        self._env_file = Path(env_file) if env_file else None
        self._cli_overrides = cli_overrides or {}
        self._data: dict[str, Any] = {}
        self._config: AppConfig | None = None
        self._errors: list[str] = []
        self.config_file_path: Path | None = None
        self.logger = logging.getLogger("EnvironmentConfigProvider")

    @property
    def name(self) -> str:
        if self.config_file_path:
            return f"environment+{self.config_file_path.name}"
        return "environment"

    def load(self) -> AppConfig:
        self._errors = []
        data: dict[str, Any] = {}

        self.config_file_path = self._config_file or find_config_file()
        if self.config_file_path is not None:
            try:
                data = read_config_file(self.config_file_path)
            except ConfigFileError as e:
                self._errors.append(str(e))

        env_file = self._env_file or Path.cwd() / ".env"
        if env_file.is_file():
            self.logger.debug(f"Loading environment from {env_file}")
            self._apply_env(data, dotenv_values(env_file))

        self._apply_env(data, os.environ)

        for key, value in self._cli_overrides.items():
            if value is not None:
                set_path(data, key, value)

        self._data = data
        try:
            self._config = config_from_dict(data)
        except ValueError as e:
            self._errors.append(f"Invalid configuration: {e}")
            self._config = AppConfig()
        return self._config

    def _apply_env(self, data: dict[str, Any], env: Any) -> None:
        for env_key, config_key in ENV_KEYS.items():
            value = env.get(env_key)
            if value:
                set_path(data, config_key, value)

    def get(self, key: str, default: Any = None) -> Any:
        return get_path(self._data, key, default)

    def set(self, key: str, value: Any) -> None:
        set_path(self._data, key, value)

    def validate(self) -> list[str]:
        config = self._config or self.load()
        errors = self._errors + config.validate()
        if errors and self.config_file_path is None:
            errors.append(
                "No config file found; set values in .issuebridge.yaml or via environment "
                "variables (" + ", ".join(ENV_KEYS) + ")"
            )
        return errors
