"""
Cooperative cancellation for lazy, paged iteration.

A CancellationToken is threaded explicitly through every iterator that talks
to a tracker. It is checked between pages and between records; completed
work is never rolled back.
"""

from __future__ import annotations

import threading

from .exceptions import OperationCancelledError


class CancellationToken:
    """Thread-safe, one-shot cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Idempotent."""
        if not self._event.is_set():
            self._reason = reason
            self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation was requested."""
        if self._event.is_set():
            message = "Operation cancelled"
            if self._reason:
                message = f"{message}: {self._reason}"
            raise OperationCancelledError(message)


def check_cancelled(token: CancellationToken | None) -> None:
    """Raise if ``token`` is set; a missing token never cancels."""
    if token is not None:
        token.raise_if_cancelled()
