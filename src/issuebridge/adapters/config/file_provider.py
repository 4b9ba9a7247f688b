"""
File Configuration Provider - Load configuration from YAML/TOML files.

Supported files, searched in the working directory then the home directory:
- .issuebridge.yaml / .issuebridge.yml
- .issuebridge.toml
- pyproject.toml ([tool.issuebridge] section)

Example .issuebridge.yaml:

    tracker: azure_devops
    azure_devops:
      organization: contoso
      pat: xxxx
      project: Fabrikam
    issues:
      mapping_expression: "Fabrikam\\\\Release $ReleaseNumber"
      closed_states: Resolved,Closed,Done
      variables:
        ReleaseNumber: "1.4"
    execute: false
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import yaml

from issuebridge.core.domain.value_objects import DEFAULT_CLOSED_STATES
from issuebridge.core.exceptions import ConfigFileError
from issuebridge.core.ports.config_provider import (
    AppConfig,
    AzureDevOpsConfig,
    ConfigProviderPort,
    GitLabConfig,
    IssueSettings,
    TrackerType,
)


CONFIG_FILE_NAMES = (
    ".issuebridge.yaml",
    ".issuebridge.yml",
    ".issuebridge.toml",
    "pyproject.toml",
)

TRUTHY = ("true", "1", "yes", "on")


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUTHY


def get_path(data: dict[str, Any], key: str, default: Any = None) -> Any:
    """Look up a dot-notation key in nested dictionaries."""
    current: Any = data
    for part in key.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def set_path(data: dict[str, Any], key: str, value: Any) -> None:
    """Set a dot-notation key, creating intermediate dictionaries."""
    parts = key.split(".")
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def config_from_dict(data: dict[str, Any]) -> AppConfig:
    """
    Build an AppConfig from a nested configuration dictionary.

    Raises:
        ValueError: If the tracker type is unknown or a number is invalid.
    """
    ado = data.get("azure_devops") or {}
    gitlab = data.get("gitlab") or {}
    issues = data.get("issues") or {}

    azure_devops_config = None
    if ado:
        azure_devops_config = AzureDevOpsConfig(
            organization=str(ado.get("organization", "")),
            pat=str(ado.get("pat", "")),
            project=ado.get("project"),
            base_url=ado.get("url", "https://dev.azure.com"),
        )

    gitlab_config = None
    if gitlab:
        project = gitlab.get("project")
        gitlab_config = GitLabConfig(
            token=str(gitlab.get("token", "")),
            project=str(project) if project is not None else None,
            base_url=gitlab.get("url", "https://gitlab.com/api/v4"),
        )

    variables = issues.get("variables") or {}
    settings = IssueSettings(
        custom_query=issues.get("custom_query"),
        mapping_expression=issues.get("mapping_expression"),
        iteration_path=issues.get("iteration"),
        extra_clause=issues.get("filter"),
        closed_states=issues.get("closed_states") or DEFAULT_CLOSED_STATES,
        variables={str(k): str(v) for k, v in variables.items()},
    )

    tracker = data.get("tracker")
    return AppConfig(
        tracker=TrackerType.from_string(tracker) if tracker else TrackerType.AZURE_DEVOPS,
        azure_devops=azure_devops_config,
        gitlab=gitlab_config,
        issues=settings,
        dry_run=not as_bool(data.get("execute", False)),
        timeout=float(data.get("timeout", 30.0)),
        max_retries=int(data.get("max_retries", 3)),
    )


def read_config_file(path: Path) -> dict[str, Any]:
    """
    Read a YAML or TOML configuration file into a dictionary.

    For pyproject.toml only the [tool.issuebridge] table is returned.

    Raises:
        ConfigFileError: If the file is missing or cannot be parsed.
    """
    if not path.exists():
        raise ConfigFileError(f"Config file not found: {path}", path=str(path))

    try:
        if path.suffix == ".toml":
            with path.open("rb") as f:
                data = tomllib.load(f)
            if path.name == "pyproject.toml":
                data = data.get("tool", {}).get("issuebridge", {})
        else:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigFileError(f"Invalid YAML syntax in {path}: {e}", path=str(path), cause=e) from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigFileError(f"Invalid TOML syntax in {path}: {e}", path=str(path), cause=e) from e

    if not isinstance(data, dict):
        raise ConfigFileError(f"Config file {path} must contain a mapping", path=str(path))
    return data


def find_config_file(search_dirs: list[Path] | None = None) -> Path | None:
    """Find the first config file in the working and home directories."""
    for directory in search_dirs or [Path.cwd(), Path.home()]:
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if not candidate.is_file():
                continue
            if name == "pyproject.toml":
                try:
                    if not read_config_file(candidate):
                        continue
                except ConfigFileError:
                    continue
            return candidate
    return None


class FileConfigProvider(ConfigProviderPort):
    """Configuration provider that loads from YAML/TOML files."""

    def __init__(
        self,
        config_path: Path | None = None,
        cli_overrides: dict[str, Any] | None = None,
    ):
        """
        Initialize the file config provider.

        Args:
            config_path: Explicit config file; auto-detected when None
            cli_overrides: Dot-notation values overriding the file
        """
        self._explicit_path = Path(config_path) if config_path else None
        self._cli_overrides = cli_overrides or {}
        self._data: dict[str, Any] = {}
        self._config: AppConfig | None = None
        self._errors: list[str] = []
        self.config_file_path: Path | None = None
        self.logger = logging.getLogger("FileConfigProvider")

    @property
    def name(self) -> str:
        if self.config_file_path:
            return f"file:{self.config_file_path}"
        return "file"

    def load_data(self) -> dict[str, Any]:
        """Read the raw configuration dictionary, recording errors."""
        path = self._explicit_path or find_config_file()
        self.config_file_path = path
        if path is None:
            return {}
        try:
            data = read_config_file(path)
        except ConfigFileError as e:
            self._errors.append(str(e))
            return {}
        self.logger.debug(f"Loaded configuration from {path}")
        return data

    def load(self) -> AppConfig:
        self._errors = []
        self._data = self.load_data()
        for key, value in self._cli_overrides.items():
            if value is not None:
                set_path(self._data, key, value)
        try:
            self._config = config_from_dict(self._data)
        except ValueError as e:
            self._errors.append(f"Invalid configuration: {e}")
            self._config = AppConfig()
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._cli_overrides and self._cli_overrides[key] is not None:
            return self._cli_overrides[key]
        return get_path(self._data, key, default)

    def set(self, key: str, value: Any) -> None:
        set_path(self._data, key, value)

    def validate(self) -> list[str]:
        config = self._config or self.load()
        return self._errors + config.validate()
