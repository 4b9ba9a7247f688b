"""
Ports - abstract interfaces the core depends on.
"""

from .config_provider import (
    AppConfig,
    AzureDevOpsConfig,
    ConfigProviderPort,
    GitLabConfig,
    IssueSettings,
    TrackerType,
)
from .issue_source import IssueSourcePort


__all__ = [
    "AppConfig",
    "AzureDevOpsConfig",
    "ConfigProviderPort",
    "GitLabConfig",
    "IssueSettings",
    "IssueSourcePort",
    "TrackerType",
]
