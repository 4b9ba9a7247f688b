"""
Exception hierarchy for issuebridge.

All errors raised by the library derive from IssueBridgeError, which keeps
the human-readable message and an optional underlying cause.

Hierarchy:
- IssueBridgeError
  - ConfigurationError
    - ConfigFileError
  - MalformedRecordError
  - OperationCancelledError
  - TrackerError (alias: TransportError)
    - AuthenticationError
    - AccessDeniedError
    - ResourceNotFoundError
      - BuildNotFoundError
      - ArtifactNotFoundError
    - RateLimitError
    - TransientError
    - TransitionError
    - BuildFailedError
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from .domain.entities import TransitionResult


__all__ = [
    "AccessDeniedError",
    "ArtifactNotFoundError",
    "AuthenticationError",
    "BuildFailedError",
    "BuildNotFoundError",
    "ConfigFileError",
    "ConfigurationError",
    "IssueBridgeError",
    "MalformedRecordError",
    "OperationCancelledError",
    "RateLimitError",
    "ResourceNotFoundError",
    "TrackerError",
    "TransientError",
    "TransitionError",
    "TransportError",
]


class IssueBridgeError(Exception):
    """Base class for all issuebridge errors."""

    def __init__(self, message: str, cause: BaseException | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(IssueBridgeError):
    """
    Raised when the mapping configuration cannot produce a usable query.

    Examples: no custom query and no project/iteration path, a query
    template that evaluates to an empty string, or a missing variable.
    Aborts the whole operation.
    """


class ConfigFileError(ConfigurationError):
    """Raised when a configuration file cannot be read or parsed."""

    def __init__(self, message: str, path: str | None = None, cause: BaseException | None = None):
        super().__init__(message, cause=cause)
        self.path = path


# =============================================================================
# Records
# =============================================================================


class MalformedRecordError(IssueBridgeError):
    """Raised when a fetched record has a required field that cannot be parsed."""

    def __init__(
        self,
        message: str,
        record_id: str | None = None,
        field_name: str | None = None,
        value: Any = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.record_id = record_id
        self.field_name = field_name
        self.value = value


class OperationCancelledError(IssueBridgeError):
    """Raised when a cancellation token is triggered mid-iteration."""


# =============================================================================
# Tracker / Transport
# =============================================================================


class TrackerError(IssueBridgeError):
    """Base class for errors reported by a tracker transport."""

    def __init__(
        self,
        message: str,
        issue_key: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.issue_key = issue_key


TransportError = TrackerError


class AuthenticationError(TrackerError):
    """Credentials were rejected (HTTP 401)."""


class AccessDeniedError(TrackerError):
    """Credentials lack permission for the resource (HTTP 403)."""


class ResourceNotFoundError(TrackerError):
    """The requested resource does not exist (HTTP 404)."""


class BuildNotFoundError(ResourceNotFoundError):
    """No build of the requested definition/number was found."""

    def __init__(
        self,
        message: str,
        definition: str | None = None,
        build_number: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.definition = definition
        self.build_number = build_number


class ArtifactNotFoundError(ResourceNotFoundError):
    """The requested artifact is not attached to the build."""

    def __init__(
        self,
        message: str,
        artifact_name: str | None = None,
        build_number: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.artifact_name = artifact_name
        self.build_number = build_number


class RateLimitError(TrackerError):
    """The tracker throttled the request and retries were exhausted."""

    def __init__(
        self,
        message: str,
        retry_after: int | None = None,
        issue_key: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, issue_key=issue_key, cause=cause)
        self.retry_after = retry_after


class TransientError(TrackerError):
    """A server-side error persisted after all retries."""


class TransitionError(TrackerError):
    """
    A status transition failed.

    When raised by the transition engine, ``result`` holds the partial
    TransitionResult: the issues updated before the failure stay updated.
    """

    def __init__(
        self,
        message: str,
        issue_key: str | None = None,
        to_status: str | None = None,
        result: TransitionResult | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, issue_key=issue_key, cause=cause)
        self.to_status = to_status
        self.result = result


class BuildFailedError(TrackerError):
    """A queued build finished with an unsuccessful result."""

    def __init__(
        self,
        message: str,
        build_number: str | None = None,
        result: str | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message, cause=cause)
        self.build_number = build_number
        self.result = result
