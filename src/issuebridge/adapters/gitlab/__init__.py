"""
GitLab Adapter - project issues and milestones.
"""

from .adapter import GitLabIssueSource
from .client import GitLabApiClient, GitLabRateLimiter


__all__ = [
    "GitLabApiClient",
    "GitLabIssueSource",
    "GitLabRateLimiter",
]
