"""
Shared HTTP infrastructure for the tracker API clients.

Provides the retry policy helpers, a token bucket rate limiter and
BaseApiClient, which owns the requests session, rate limiting, retries
and error mapping. Tracker clients subclass it and add their endpoints.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from issuebridge.core.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    RateLimitError,
    ResourceNotFoundError,
    TrackerError,
    TransientError,
)


# HTTP status codes that should trigger retry
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def calculate_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.1,
    retry_after: int | None = None,
) -> float:
    """
    Calculate delay before next retry using exponential backoff with jitter.

    Args:
        attempt: Current attempt number (0-indexed)
        initial_delay: Delay before the first retry
        max_delay: Upper bound for any delay
        backoff_factor: Multiplier for exponential backoff
        jitter: Random jitter factor (0.1 = 10% variation)
        retry_after: Optional Retry-After header value in seconds

    Returns:
        Delay in seconds
    """
    if retry_after is not None:
        base_delay = min(retry_after, max_delay)
    else:
        base_delay = min(initial_delay * (backoff_factor**attempt), max_delay)

    jitter_range = base_delay * jitter
    return max(0.0, base_delay + random.uniform(-jitter_range, jitter_range))


def get_retry_after(response: requests.Response) -> int | None:
    """
    Extract Retry-After header value from response.

    Returns:
        Retry delay in seconds, or None if header not present or not numeric
    """
    retry_after = response.headers.get("Retry-After")
    if retry_after is not None:
        try:
            return int(retry_after)
        except ValueError:
            return None
    return None


class TokenBucketRateLimiter:
    """
    Token bucket rate limiter for controlling API request rates.

    Tokens are added at ``requests_per_second``; each request consumes one.
    The bucket holds at most ``burst_size`` tokens. Thread-safe.
    """

    def __init__(
        self,
        requests_per_second: float = 10.0,
        burst_size: int = 20,
    ):
        self.requests_per_second = requests_per_second
        self.burst_size = max(1, burst_size)

        self._tokens = float(self.burst_size)
        self._last_update = time.monotonic()
        self._lock = threading.Lock()

        self._total_requests = 0
        self._total_wait_time = 0.0

        self.logger = logging.getLogger(type(self).__name__)

    def acquire(self, timeout: float | None = None) -> bool:
        """
        Acquire a token, waiting if necessary.

        Args:
            timeout: Maximum time to wait in seconds. None means wait forever.

        Returns:
            True if token was acquired, False if timeout was reached.
        """
        start_time = time.monotonic()

        while True:
            with self._lock:
                self._refill_tokens()

                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    self._total_requests += 1
                    return True

                wait_time = (1.0 - self._tokens) / self.requests_per_second

            if timeout is not None:
                elapsed = time.monotonic() - start_time
                if elapsed >= timeout:
                    return False
                wait_time = min(wait_time, timeout - elapsed)

            if wait_time > 0.01:
                self.logger.debug(f"Rate limit: waiting {wait_time:.3f}s for token")

            self._total_wait_time += wait_time
            time.sleep(wait_time)

    def _refill_tokens(self) -> None:
        """Refill tokens based on elapsed time. Must be called with lock held."""
        now = time.monotonic()
        elapsed = now - self._last_update
        self._last_update = now
        self._tokens = min(self.burst_size, self._tokens + elapsed * self.requests_per_second)

    def update_from_response(self, response: requests.Response) -> None:
        """
        Adjust to server feedback: a 429 halves the request rate.

        Retry-After is honoured by the retry loop, not here.
        """
        if response.status_code == 429:
            with self._lock:
                old_rate = self.requests_per_second
                self.requests_per_second = max(0.5, self.requests_per_second * 0.5)
                self.logger.warning(
                    f"Rate limited by server, reducing rate from "
                    f"{old_rate:.1f} to {self.requests_per_second:.1f} req/s"
                )

    @property
    def stats(self) -> dict[str, Any]:
        """Get rate limiter statistics."""
        with self._lock:
            return {
                "total_requests": self._total_requests,
                "total_wait_time": self._total_wait_time,
                "available_tokens": self._tokens,
                "requests_per_second": self.requests_per_second,
                "burst_size": self.burst_size,
            }

    def reset(self) -> None:
        """Reset the rate limiter to initial state."""
        with self._lock:
            self._tokens = float(self.burst_size)
            self._last_update = time.monotonic()
            self._total_requests = 0
            self._total_wait_time = 0.0


class BaseApiClient:
    """
    Base REST client: session, rate limiting, retries and error mapping.

    Features:
    - Automatic retry with exponential backoff for transient failures
    - Proactive rate limiting using a token bucket
    - Connection pooling
    - Dry-run mode for write operations
    """

    DEFAULT_MAX_RETRIES = 3
    DEFAULT_INITIAL_DELAY = 1.0
    DEFAULT_MAX_DELAY = 60.0
    DEFAULT_BACKOFF_FACTOR = 2.0
    DEFAULT_JITTER = 0.1

    DEFAULT_REQUESTS_PER_SECOND = 10.0
    DEFAULT_BURST_SIZE = 20

    DEFAULT_POOL_CONNECTIONS = 10
    DEFAULT_POOL_MAXSIZE = 10
    DEFAULT_TIMEOUT = 30.0

    # Shown on 401 responses
    AUTH_HINT = "Check the access token."

    def __init__(
        self,
        dry_run: bool = True,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        jitter: float = DEFAULT_JITTER,
        requests_per_second: float | None = DEFAULT_REQUESTS_PER_SECOND,
        burst_size: int = DEFAULT_BURST_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.dry_run = dry_run
        self.timeout = timeout
        self.logger = logging.getLogger(type(self).__name__)

        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter

        self._rate_limiter: TokenBucketRateLimiter | None = None
        if requests_per_second is not None and requests_per_second > 0:
            self._rate_limiter = self._create_rate_limiter(requests_per_second, burst_size)

        self._session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.DEFAULT_POOL_CONNECTIONS,
            pool_maxsize=self.DEFAULT_POOL_MAXSIZE,
        )
        self._session.mount("https://", adapter)
        self._session.mount("http://", adapter)

    def _create_rate_limiter(
        self, requests_per_second: float, burst_size: int
    ) -> TokenBucketRateLimiter:
        return TokenBucketRateLimiter(requests_per_second=requests_per_second, burst_size=burst_size)

    def _build_url(self, endpoint: str) -> str:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Core Request Methods
    # -------------------------------------------------------------------------

    def send(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        Send a request with rate limiting and retries, returning the raw response.

        Retries connection errors, timeouts and RETRYABLE_STATUS_CODES with
        exponential backoff. Non-retryable error statuses are returned as-is;
        use _handle_response to map them.

        Raises:
            RateLimitError: On 429 after all retries exhausted
            TransientError: On 5xx after all retries exhausted
            TrackerError: On connection failures or timeouts after all retries
        """
        url = self._build_url(endpoint)
        kwargs.setdefault("timeout", self.timeout)
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            if self._rate_limiter is not None:
                self._rate_limiter.acquire()

            try:
                response = self._session.request(method, url, **kwargs)
            except requests.exceptions.ConnectionError as e:
                if attempt < self.max_retries:
                    delay = self._calculate_delay(attempt)
                    self.logger.warning(
                        f"Connection error on {method} {endpoint}, "
                        f"attempt {attempt + 1}/{attempts}, retrying in {delay:.2f}s: {e}"
                    )
                    time.sleep(delay)
                    continue
                raise TrackerError(
                    f"Connection failed after {attempts} attempts: {e}", cause=e
                ) from e
            except requests.exceptions.Timeout as e:
                if attempt < self.max_retries:
                    delay = self._calculate_delay(attempt)
                    self.logger.warning(
                        f"Timeout on {method} {endpoint}, "
                        f"attempt {attempt + 1}/{attempts}, retrying in {delay:.2f}s: {e}"
                    )
                    time.sleep(delay)
                    continue
                raise TrackerError(
                    f"Request timed out after {attempts} attempts: {e}", cause=e
                ) from e

            if self._rate_limiter is not None:
                self._rate_limiter.update_from_response(response)

            if response.status_code not in RETRYABLE_STATUS_CODES:
                return response

            retry_after = get_retry_after(response)
            if attempt < self.max_retries:
                delay = self._calculate_delay(attempt, retry_after)
                self.logger.warning(
                    f"Retryable error {response.status_code} on {method} {endpoint}, "
                    f"attempt {attempt + 1}/{attempts}, retrying in {delay:.2f}s"
                )
                time.sleep(delay)
                continue

            if response.status_code == 429:
                raise RateLimitError(
                    f"Rate limit exceeded for {endpoint} after {attempts} attempts",
                    retry_after=retry_after,
                    issue_key=endpoint,
                )
            raise TransientError(
                f"Server error {response.status_code} for {endpoint} after {attempts} attempts",
                issue_key=endpoint,
            )

        raise TrackerError(f"Request failed after {attempts} attempts")

    def request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """
        Make an authenticated request and decode the JSON body.

        Raises:
            AuthenticationError: On 401 (not retried)
            AccessDeniedError: On 403 (not retried)
            ResourceNotFoundError: On 404 (not retried)
            TrackerError: On any other error response
        """
        response = self.send(method, endpoint, **kwargs)
        return self._handle_response(response, endpoint)

    def _calculate_delay(self, attempt: int, retry_after: int | None = None) -> float:
        return calculate_delay(
            attempt,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_factor=self.backoff_factor,
            jitter=self.jitter,
            retry_after=retry_after,
        )

    def get(self, endpoint: str, **kwargs: Any) -> Any:
        """Perform a GET request."""
        return self.request("GET", endpoint, **kwargs)

    def post(self, endpoint: str, json: Any = None, **kwargs: Any) -> Any:
        """Perform a POST request. Skipped in dry-run mode."""
        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would POST to {endpoint}")
            return {}
        return self.request("POST", endpoint, json=json, **kwargs)

    def put(self, endpoint: str, json: Any = None, **kwargs: Any) -> Any:
        """Perform a PUT request. Skipped in dry-run mode."""
        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would PUT to {endpoint}")
            return {}
        return self.request("PUT", endpoint, json=json, **kwargs)

    def patch(self, endpoint: str, json: Any = None, **kwargs: Any) -> Any:
        """Perform a PATCH request. Skipped in dry-run mode."""
        if self.dry_run:
            self.logger.info(f"[DRY-RUN] Would PATCH {endpoint}")
            return {}
        return self.request("PATCH", endpoint, json=json, **kwargs)

    # -------------------------------------------------------------------------
    # Response Handling
    # -------------------------------------------------------------------------

    def _handle_response(self, response: requests.Response, endpoint: str) -> Any:
        """
        Handle API response and convert errors to typed exceptions.

        Returns:
            Parsed JSON body, or {} for an empty body.
        """
        if response.ok:
            if response.text:
                return response.json()
            return {}

        status = response.status_code
        error_body = response.text[:500] if response.text else ""

        if status == 401:
            raise AuthenticationError(f"Authentication failed. {self.AUTH_HINT}")

        if status == 403:
            raise AccessDeniedError(f"Permission denied for {endpoint}", issue_key=endpoint)

        if status == 404:
            raise ResourceNotFoundError(f"Not found: {endpoint}", issue_key=endpoint)

        raise TrackerError(f"API error {status}: {error_body}", issue_key=endpoint)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def rate_limiter(self) -> TokenBucketRateLimiter | None:
        """Get the rate limiter instance, if rate limiting is enabled."""
        return self._rate_limiter

    def close(self) -> None:
        """Close the client and release connection pool resources."""
        self._session.close()
        self.logger.debug("Closed HTTP session")

    def __enter__(self) -> BaseApiClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
