"""
Issue Classifier - normalizes raw tracker records into Issues.
"""

from __future__ import annotations

from datetime import datetime, timezone

from .domain.entities import Issue, RawIssueRecord
from .domain.value_objects import ClosedStateSet
from .exceptions import MalformedRecordError


def parse_closed_states(value: str | None) -> ClosedStateSet:
    """Build the closed-state set from a comma-separated string."""
    return ClosedStateSet.parse(value)


def parse_timestamp(value: str | None, record_id: str | None = None) -> datetime:
    """
    Parse an ISO-8601 timestamp and normalize it to UTC.

    Naive timestamps are taken to be UTC already.

    Raises:
        MalformedRecordError: If the value is missing or unparseable.
    """
    if not value:
        raise MalformedRecordError(
            f"Record {record_id} has no creation timestamp",
            record_id=record_id,
            field_name="created",
            value=value,
        )
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedRecordError(
            f"Record {record_id} has an invalid creation timestamp: {value!r}",
            record_id=record_id,
            field_name="created",
            value=value,
            cause=e,
        ) from e

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def classify(record: RawIssueRecord, closed_states: ClosedStateSet) -> Issue:
    """
    Normalize a raw record.

    The first label becomes the issue type. A record without a status is
    reported with an empty status and is never closed.

    Raises:
        MalformedRecordError: If the creation timestamp cannot be parsed.
    """
    status = record.status
    return Issue(
        id=record.id,
        title=record.title or "",
        type=record.labels[0] if record.labels else None,
        description=record.description or "",
        status=status or "",
        is_closed=status is not None and status in closed_states,
        submitted_date=parse_timestamp(record.created, record.id),
        submitter=record.author or None,
        url=record.url or "",
    )
