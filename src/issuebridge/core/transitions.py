"""
Transition Engine - guarded, idempotent status transitions.

For each issue, in the order the source yields them:

1. a required source status that does not match skips the issue,
2. an issue already in the target status is skipped,
3. anything else is updated to the target status.

Status comparisons are case-insensitive. An update failure stops the run;
updates applied before it are kept.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .cancellation import CancellationToken, check_cancelled
from .domain.entities import Issue, TransitionResult
from .exceptions import OperationCancelledError, TrackerError, TransitionError
from .ports.issue_source import IssueSourcePort


def same_status(left: str, right: str) -> bool:
    """Case-insensitive status equality."""
    return left.casefold() == right.casefold()


class TransitionEngine:
    """Applies a status transition across a stream of issues."""

    def __init__(self, source: IssueSourcePort):
        self.source = source
        self.logger = logging.getLogger("TransitionEngine")

    def skip_reason(self, issue: Issue, to_status: str, from_status: str | None) -> str | None:
        """Return why ``issue`` is skipped, or None if it must be updated."""
        if from_status and not same_status(issue.status, from_status):
            return f"status is '{issue.status}', not '{from_status}'"
        if same_status(issue.status, to_status):
            return f"already in status '{to_status}'"
        return None

    def run(
        self,
        issues: Iterable[Issue],
        to_status: str,
        from_status: str | None = None,
        comment: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> TransitionResult:
        """
        Transition every issue in ``issues`` to ``to_status``.

        Args:
            issues: Forward-only stream of normalized issues.
            to_status: Target status.
            from_status: If set, only issues currently in this status change.
            comment: Optional comment passed with each update.
            cancel_token: Checked before each issue.

        Returns:
            TransitionResult with the updated and skipped issue ids.

        Raises:
            TransitionError: When an update fails. ``result`` holds the
                partial outcome.
            OperationCancelledError: When cancelled between issues.
        """
        result = TransitionResult(to_status=to_status, from_status=from_status)

        try:
            for issue in issues:
                check_cancelled(cancel_token)

                reason = self.skip_reason(issue, to_status, from_status)
                if reason is not None:
                    self.logger.debug(f"Skipping {issue.id}: {reason}")
                    result.skipped.append((issue.id, reason))
                    continue

                self.logger.debug(
                    f"Changing {issue.id} from '{issue.status}' to '{to_status}'"
                )
                self._update(issue, to_status, comment, result)
                result.transitioned.append(issue.id)
        except OperationCancelledError:
            self.logger.warning(
                f"Transition cancelled after {result.count} issue(s) were updated to '{to_status}'"
            )
            raise

        self.logger.info(f"{result.count} issue(s) were updated to state '{to_status}'")
        return result

    def _update(
        self,
        issue: Issue,
        to_status: str,
        comment: str | None,
        result: TransitionResult,
    ) -> None:
        try:
            ok = self.source.update_issue(issue.id, status=to_status, comment=comment)
        except TrackerError as e:
            self.logger.error(
                f"Failed to update {issue.id} to '{to_status}'; "
                f"{result.count} issue(s) were updated before the failure"
            )
            raise TransitionError(
                f"Failed to transition {issue.id} to '{to_status}'",
                issue_key=issue.id,
                to_status=to_status,
                result=result,
                cause=e,
            ) from e

        if not ok:
            self.logger.error(
                f"Tracker refused to update {issue.id} to '{to_status}'; "
                f"{result.count} issue(s) were updated before the failure"
            )
            raise TransitionError(
                f"Tracker refused to transition {issue.id} to '{to_status}'",
                issue_key=issue.id,
                to_status=to_status,
                result=result,
            )
