"""Error taxonomy for the GitHub integration layer."""

from __future__ import annotations


class RepatchError(Exception):
    """Base exception for all repatch errors."""


class ApiError(RepatchError):
    """The remote API could not satisfy a request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        self.message = message
        super().__init__(message)


class PermanentApiError(ApiError):
    """4xx response other than rate limiting. Never retried."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(f"GitHub API error {status}: {message}", status=status)
        self.message = message


class TransientApiError(ApiError):
    """Network failure or 5xx that survived every retry."""


class RateLimitExceededError(TransientApiError):
    """Rate limit kept being reported after the maximum number of waits."""

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after:.0f}s", status=429)
