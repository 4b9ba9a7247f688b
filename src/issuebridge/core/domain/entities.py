"""
Domain Entities - records fetched from or written to a tracker.

Issue is the normalized form every tracker record is classified into.
The remaining entities describe versions, transition outcomes, created
work items and builds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class RawIssueRecord:
    """
    Tracker-neutral raw record, as mapped by an adapter from vendor JSON.

    ``status`` is None when the tracker did not return a status field.
    ``created`` is the unparsed timestamp string.
    """

    id: str
    title: str | None = None
    labels: tuple[str, ...] = ()
    description: str | None = None
    status: str | None = None
    created: str | None = None
    author: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class Issue:
    """A normalized issue. Immutable once produced."""

    id: str
    title: str
    type: str | None
    description: str
    status: str
    is_closed: bool
    submitted_date: datetime
    submitter: str | None
    url: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "description": self.description,
            "status": self.status,
            "is_closed": self.is_closed,
            "submitted_date": self.submitted_date.isoformat(),
            "submitter": self.submitter,
            "url": self.url,
        }


@dataclass(frozen=True)
class IssueVersion:
    """An iteration (Azure DevOps) or milestone (GitLab)."""

    name: str
    is_closed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "is_closed": self.is_closed}


@dataclass
class TransitionResult:
    """Outcome of a transition run: ids updated and ids skipped with a reason."""

    to_status: str
    from_status: str | None = None
    transitioned: list[str] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)

    @property
    def count(self) -> int:
        """Number of issues actually updated."""
        return len(self.transitioned)

    def to_dict(self) -> dict[str, Any]:
        return {
            "to_status": self.to_status,
            "from_status": self.from_status,
            "count": self.count,
            "transitioned": list(self.transitioned),
            "skipped": [{"id": i, "reason": r} for i, r in self.skipped],
        }


@dataclass(frozen=True)
class CreatedWorkItem:
    """A work item created through the tracker API."""

    id: str
    url: str | None = None


@dataclass(frozen=True)
class BuildInfo:
    """A build of a build definition."""

    id: int
    build_number: str
    definition: str
    status: str | None = None
    result: str | None = None
    url: str | None = None


@dataclass(frozen=True)
class ArtifactInfo:
    """A named artifact attached to a build."""

    name: str
    download_url: str
    build_id: int


@dataclass(frozen=True)
class QueuedBuild:
    """A build that was queued, and its final result when waited on."""

    id: int
    build_number: str
    status: str | None = None
    result: str | None = None
    url: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.result in ("succeeded", "partiallySucceeded")
