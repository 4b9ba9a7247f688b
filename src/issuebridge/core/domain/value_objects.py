"""
Value Objects - immutable values constructed once per request.

IssueFilter and ClosedStateSet are built when an enumeration or transition
request starts and are never mutated afterwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass


DEFAULT_CLOSED_STATES = "Resolved,Closed,Done"


@dataclass(frozen=True)
class IssueFilter:
    """
    Query filter for an issue enumeration or transition.

    Either ``custom_query`` is set, or the project/iteration mapping fields
    are. When ``custom_query`` is non-empty it wins outright: project,
    iteration path and extra clause are ignored, never merged.
    """

    custom_query: str | None = None
    project: str | None = None
    iteration_path: str | None = None
    extra_clause: str | None = None

    @classmethod
    def custom(cls, query: str) -> IssueFilter:
        """Filter that runs a raw tracker query as-is."""
        return cls(custom_query=query)

    @classmethod
    def mapping(
        cls,
        project: str | None,
        iteration_path: str | None,
        extra_clause: str | None = None,
    ) -> IssueFilter:
        """Filter built from a project and iteration/milestone path."""
        return cls(project=project, iteration_path=iteration_path, extra_clause=extra_clause)

    @property
    def is_custom(self) -> bool:
        return bool(self.custom_query)

    def to_wiql(self) -> str:
        """Render as WIQL; see issuebridge.core.query.render_wiql."""
        from ..query import render_wiql

        return render_wiql(self)

    def describe(self) -> str:
        """Short human-readable form used in log and error messages."""
        if self.is_custom:
            return f"custom query \"{self.custom_query}\""
        return f"project '{self.project or ''}' and iteration path '{self.iteration_path or ''}'"


@dataclass(frozen=True)
class ClosedStateSet:
    """
    Case-insensitive set of status names treated as closed.

    Members and compared statuses are not trimmed: "Done " is not "Done".
    """

    names: tuple[str, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "_folded", frozenset(n.casefold() for n in self.names))

    @classmethod
    def parse(cls, value: str | None) -> ClosedStateSet:
        """
        Build from a comma-separated configuration string.

        ``None`` or an empty string yields the default "Resolved,Closed,Done".
        """
        if not value:
            value = DEFAULT_CLOSED_STATES
        return cls(names=tuple(value.split(",")))

    @classmethod
    def of(cls, names: Iterable[str]) -> ClosedStateSet:
        return cls(names=tuple(names))

    def __contains__(self, status: object) -> bool:
        if not isinstance(status, str):
            return False
        return status.casefold() in self._folded  # type: ignore[attr-defined]

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __len__(self) -> int:
        return len(self.names)

    def __str__(self) -> str:
        return ",".join(self.names)
