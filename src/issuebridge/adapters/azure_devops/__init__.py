"""
Azure DevOps Adapter - work items, iterations and builds.
"""

from .adapter import AzureDevOpsIssueSource
from .client import AzureDevOpsApiClient, AzureDevOpsRateLimiter


__all__ = [
    "AzureDevOpsApiClient",
    "AzureDevOpsIssueSource",
    "AzureDevOpsRateLimiter",
]
