"""
Polling helpers for waiting on asynchronous backend work.

Import jobs, pipeline runs and IIIF republishing complete in the background,
and the system under test exposes no push channel for them. Every wait in the
harness goes through poll_until() so interval and timeout behaviour is
identical whether the data source is an API call or a reloaded page.
"""

import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Pattern

from preservation_e2e.exceptions import PollTimeoutError, RetryablePollError
from preservation_e2e.logging_config import get_logger

logger = get_logger(__name__)

_NOTHING_OBSERVED = object()


@dataclass(frozen=True)
class PollPolicy:
    """Fixed retry interval and overall timeout, both in seconds."""

    interval: float = 2.0
    timeout: float = 60.0

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {self.interval}")
        if self.timeout < self.interval:
            raise ValueError(
                f"Poll timeout ({self.timeout}s) must be at least the interval ({self.interval}s)"
            )

    @classmethod
    def from_millis(cls, interval_ms: int, timeout_ms: int) -> "PollPolicy":
        return cls(interval=interval_ms / 1000.0, timeout=timeout_ms / 1000.0)


class StatusMatcher:
    """Matches an observed status string exactly or against a regex."""

    def __init__(self, expected: str, regex: Optional[Pattern] = None):
        self.expected = expected
        self._regex = regex

    @classmethod
    def exact(cls, value: str) -> "StatusMatcher":
        return cls(value)

    @classmethod
    def pattern(cls, regex: str) -> "StatusMatcher":
        return cls(regex, re.compile(regex))

    @property
    def is_pattern(self) -> bool:
        return self._regex is not None

    def matches(self, observed: Any) -> bool:
        if observed is None:
            return False
        text = str(observed)
        if self._regex is not None:
            return self._regex.fullmatch(text) is not None
        return text == self.expected

    __call__ = matches

    def __repr__(self) -> str:
        kind = "pattern" if self.is_pattern else "exact"
        return f"StatusMatcher.{kind}({self.expected!r})"


def poll_until(
    observe: Callable[[], Any],
    predicate: Callable[[Any], bool],
    policy: PollPolicy,
    description: str = "condition",
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Call observe() until predicate(value) holds, then return that value.

    An observe() call raising RetryablePollError counts as "not observed yet" and the
    loop carries on; any other exception propagates immediately.

    Raises:
        PollTimeoutError: once policy.timeout has elapsed without a match.
            The error carries the last observed value.
    """
    start = clock()
    deadline = start + policy.timeout
    attempts = 0
    last_value = _NOTHING_OBSERVED
    last_error: Optional[RetryablePollError] = None

    while True:
        attempts += 1
        try:
            value = observe()
        except RetryablePollError as e:
            last_error = e
            logger.debug(
                f"Poll attempt {attempts} for {description}: not ready ({e})",
                extra={"attempt": attempts},
            )
        else:
            last_value = value
            last_error = None
            if predicate(value):
                logger.debug(
                    f"Poll for {description} satisfied after {attempts} attempt(s)",
                    extra={"attempt": attempts, "status": value},
                )
                return value
            logger.debug(
                f"Poll attempt {attempts} for {description}: observed {value!r}",
                extra={"attempt": attempts, "status": value},
            )

        now = clock()
        if now >= deadline:
            observed = None if last_value is _NOTHING_OBSERVED else last_value
            raise PollTimeoutError(description, observed, attempts, now - start, last_error)

        sleep(min(policy.interval, deadline - now))


def wait_for_status(
    fetch_json: Callable[[], Dict[str, Any]],
    matcher: StatusMatcher,
    policy: PollPolicy,
    status_field: str = "status",
    description: Optional[str] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> Dict[str, Any]:
    """
    Poll a JSON resource until its status field satisfies the matcher.

    Returns the full body of the matching response. PollTimeoutError reports
    the last observed status rather than the whole body.
    """
    description = description or f"{status_field} {matcher!r}"
    bodies: Dict[str, Any] = {}

    def observe():
        body = fetch_json()
        bodies["last"] = body
        return body.get(status_field) if isinstance(body, dict) else None

    poll_until(observe, matcher, policy, description=description, clock=clock, sleep=sleep)
    return bodies["last"]
