"""
Domain layer - entities and value objects shared by every tracker.
"""

from .entities import (
    ArtifactInfo,
    BuildInfo,
    CreatedWorkItem,
    Issue,
    IssueVersion,
    QueuedBuild,
    RawIssueRecord,
    TransitionResult,
)
from .value_objects import DEFAULT_CLOSED_STATES, ClosedStateSet, IssueFilter


__all__ = [
    "DEFAULT_CLOSED_STATES",
    "ArtifactInfo",
    "BuildInfo",
    "ClosedStateSet",
    "CreatedWorkItem",
    "Issue",
    "IssueFilter",
    "IssueVersion",
    "QueuedBuild",
    "RawIssueRecord",
    "TransitionResult",
]
