"""
Adapters - concrete trackers and configuration sources.
"""

from .azure_devops import AzureDevOpsApiClient, AzureDevOpsIssueSource
from .config import EnvironmentConfigProvider, FileConfigProvider
from .gitlab import GitLabApiClient, GitLabIssueSource


__all__ = [
    "AzureDevOpsApiClient",
    "AzureDevOpsIssueSource",
    "EnvironmentConfigProvider",
    "FileConfigProvider",
    "GitLabApiClient",
    "GitLabIssueSource",
]
