"""
Exception types raised by the harness.

Assertion-style failures derive from AssertionError so that they read as test
failures in reports; infrastructure failures derive from HarnessError.
"""

from typing import Any, Optional


class HarnessError(Exception):
    """Base class for harness infrastructure errors."""


class ConfigurationError(HarnessError, ValueError):
    """Required configuration is missing or invalid."""


class AuthenticationError(HarnessError):
    """The client-credentials exchange with the identity provider failed."""

    def __init__(self, message: str, error: Optional[str] = None, description: Optional[str] = None):
        super().__init__(message)
        self.error = error
        self.description = description


class ApiStatusError(HarnessError):
    """An API call returned a status the caller did not expect."""

    def __init__(self, method: str, url: str, status: int, body: str = ""):
        self.method = method
        self.url = url
        self.status = status
        self.body = body[:500] if body else ""
        message = f"{method} {url} returned HTTP {status}"
        if self.body:
            message += f": {self.body}"
        super().__init__(message)


class DepositConflictError(ApiStatusError):
    """A request that should have succeeded was rejected with 409 Conflict."""


class RetryablePollError(HarnessError):
    """A poll could not observe the resource yet; try again."""


class ResourceNotReady(RetryablePollError):
    """The resource does not exist yet (HTTP 404 while polling)."""


class TransientApiError(RetryablePollError):
    """Gateway-level failure while polling (HTTP 502/503/504)."""


class PollTimeoutError(HarnessError, TimeoutError):
    """Polling gave up before the predicate held."""

    def __init__(self, description: str, last_value: Any, attempts: int, elapsed: float,
                 last_error: Optional[BaseException] = None):
        self.description = description
        self.last_value = last_value
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_error = last_error
        message = (
            f"Timed out after {elapsed:.1f}s waiting for {description} "
            f"({attempts} attempts); last observed value: {last_value!r}"
        )
        if last_error is not None:
            message += f"; last error: {last_error}"
        super().__init__(message)


class MetsAssertionError(AssertionError):
    """A METS manifest did not have the expected structure."""


class ScenarioTimeoutError(HarnessError, TimeoutError):
    """A scenario ran past its time limit."""


class ReportingError(HarnessError):
    """The run summary could not be delivered."""
