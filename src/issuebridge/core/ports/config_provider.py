"""
Configuration Provider Port - Abstract interface for configuration.

Implementations:
- EnvironmentConfigProvider: Load from env vars and .env
- FileConfigProvider: Load from YAML/TOML config files
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..domain.value_objects import DEFAULT_CLOSED_STATES


class TrackerType(Enum):
    """Supported issue tracker types."""

    AZURE_DEVOPS = "azure_devops"
    GITLAB = "gitlab"

    @classmethod
    def from_string(cls, value: str) -> "TrackerType":
        normalized = value.strip().lower().replace("-", "_")
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown tracker type: {value}")


@dataclass
class AzureDevOpsConfig:
    """Configuration for Azure DevOps."""

    organization: str
    pat: str  # Personal Access Token
    project: str | None = None
    base_url: str = "https://dev.azure.com"

    def is_valid(self) -> bool:
        """Check if configuration is valid."""
        return bool(self.organization and self.pat)

    @property
    def organization_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.organization}"


@dataclass
class GitLabConfig:
    """Configuration for GitLab."""

    token: str
    project: str | None = None  # ID or path, e.g. "group/project"
    base_url: str = "https://gitlab.com/api/v4"

    def is_valid(self) -> bool:
        """Check if configuration is valid."""
        return bool(self.token)


@dataclass
class IssueSettings:
    """Issue mapping settings shared by enumeration and transitions."""

    custom_query: str | None = None
    mapping_expression: str | None = None
    iteration_path: str | None = None
    extra_clause: str | None = None
    closed_states: str = DEFAULT_CLOSED_STATES
    variables: dict[str, str] = field(default_factory=dict)


@dataclass
class AppConfig:
    """Complete application configuration."""

    tracker: TrackerType = TrackerType.AZURE_DEVOPS
    azure_devops: AzureDevOpsConfig | None = None
    gitlab: GitLabConfig | None = None
    issues: IssueSettings = field(default_factory=IssueSettings)

    dry_run: bool = True
    timeout: float = 30.0
    max_retries: int = 3

    @property
    def project(self) -> str | None:
        """Project of the active tracker."""
        if self.tracker == TrackerType.GITLAB:
            return self.gitlab.project if self.gitlab else None
        return self.azure_devops.project if self.azure_devops else None

    def validate(self) -> list[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.tracker == TrackerType.AZURE_DEVOPS:
            if self.azure_devops is None:
                errors.append("Missing Azure DevOps configuration")
            else:
                if not self.azure_devops.organization:
                    errors.append("Missing Azure DevOps organization (AZURE_DEVOPS_ORGANIZATION)")
                if not self.azure_devops.pat:
                    errors.append("Missing Azure DevOps token (AZURE_DEVOPS_PAT)")
        elif self.tracker == TrackerType.GITLAB:
            if self.gitlab is None or not self.gitlab.token:
                errors.append("Missing GitLab token (GITLAB_TOKEN)")

        if self.timeout <= 0:
            errors.append("Timeout must be positive")
        if self.max_retries < 0:
            errors.append("max_retries cannot be negative")

        return errors


class ConfigProviderPort(ABC):
    """
    Abstract interface for configuration providers.

    Configuration can come from various sources:
    - Environment variables
    - .env files
    - YAML/TOML config files
    - Command line arguments
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        ...

    @abstractmethod
    def load(self) -> AppConfig:
        """
        Load configuration from source.

        Returns:
            Complete application configuration
        """
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a specific configuration value.

        Args:
            key: Configuration key (dot notation supported)
            default: Default value if not found

        Returns:
            Configuration value
        """
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value.

        Args:
            key: Configuration key
            value: Value to set
        """
        ...

    @abstractmethod
    def validate(self) -> list[str]:
        """
        Validate loaded configuration.

        Returns:
            List of validation errors
        """
        ...
