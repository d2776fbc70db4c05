"""Retry policy for transient terraform failures."""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, TYPE_CHECKING

from terraform_harness.errors import ExecutionError

if TYPE_CHECKING:
    from terraform_harness.runtime.terraform import CommandResult

logger = logging.getLogger(__name__)


# Regex -> human readable reason. Matched against stdout + stderr.
DEFAULT_RETRYABLE_ERRORS: Dict[str, str] = {
    ".*read: connection reset by peer.*": "Connection reset by remote host.",
    ".*TLS handshake timeout.*": "Transient network error.",
    ".*i/o timeout.*": "Transient network error.",
    ".*unexpected EOF.*": "Transient network error.",
    ".*unable to verify signature.*": "Failed to retrieve plugin due to transient network error.",
    ".*unable to verify checksum.*": "Failed to retrieve plugin due to transient network error.",
    ".*no provider exists with the given name.*": "Failed to retrieve plugin due to transient network error.",
    ".*registry service is unreachable.*": "Failed to retrieve plugin due to transient network error.",
    ".*Error installing provider.*": "Failed to retrieve plugin due to transient network error.",
    ".*Failed to query available provider packages.*": "Failed to retrieve plugin due to transient network error.",
    ".*timeout while waiting for plugin to start.*": "Failed to retrieve plugin due to transient network error.",
    ".*timed out waiting for server handshake.*": "Failed to retrieve plugin due to transient network error.",
    "could not query provider registry for": "Failed to retrieve plugin due to transient network error.",
    ".*Provider produced inconsistent result after apply.*": "Provider eventual consistency error.",
    ".*429 Too Many Requests.*": "API rate limit reached.",
    "(?i).*rate limit exceeded.*": "API rate limit reached.",
    ".*503 Service Unavailable.*": "Provider API temporarily unavailable.",
    "(?i).*has a pending event.*": "Droplet still processing a previous action.",
    "(?i).*is currently locked.*": "Resource locked by an in-progress action.",
}


_INLINE_FLAGS = re.compile(r"^\(\?[aiLmsux]+\)")


def _unwrap(pattern: str) -> str:
    """Drop the ``.*`` padding around a terratest-style signature.

    ``search`` already matches anywhere; with the padding Python's
    backtracking engine goes quadratic on long output that does not match.
    """
    flags = _INLINE_FLAGS.match(pattern)
    prefix = flags.group(0) if flags else ""
    body = pattern[len(prefix):]
    if body.startswith(".*"):
        body = body[2:]
    if body.endswith(".*") and not body.endswith("\\.*"):
        body = body[:-2]
    return prefix + body


@dataclass(frozen=True)
class ErrorMatcher:
    """Predicate deciding whether a failed command is worth retrying."""
    pattern: str
    description: str = ""
    _regex: "re.Pattern[str]" = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_regex", re.compile(_unwrap(self.pattern)))

    def matches(self, error: ExecutionError) -> bool:
        text = f"{error.stdout}\n{error.stderr}"
        return self._regex.search(text) is not None


def matchers_from_mapping(patterns: Mapping[str, str]) -> List[ErrorMatcher]:
    """Build matchers from a ``{regex: description}`` mapping."""
    return [ErrorMatcher(pattern, description) for pattern, description in patterns.items()]


class RetryPolicy:
    """Fixed-interval retry over a set of pluggable error matchers.

    An operation is attempted at most ``max_retries + 1`` times. Failures that
    no matcher recognises are raised immediately. When the budget runs out the
    last ``ExecutionError`` is raised unchanged.
    """

    def __init__(
        self,
        max_retries: int = 0,
        interval: float = 0.0,
        matchers: Optional[Iterable[ErrorMatcher]] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_retry: Optional[Callable[[int, ErrorMatcher, ExecutionError], None]] = None,
    ):
        if max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {max_retries}")
        if interval < 0:
            raise ValueError(f"interval must be >= 0, got {interval}")
        self.max_retries = max_retries
        self.interval = interval
        self.matchers: List[ErrorMatcher] = list(
            matchers if matchers is not None else matchers_from_mapping(DEFAULT_RETRYABLE_ERRORS)
        )
        self._sleep = sleep
        self._on_retry = on_retry
        self.attempts = 0

    def add_matcher(self, pattern: str, description: str = "") -> None:
        """Register an additional retryable error signature."""
        self.matchers.append(ErrorMatcher(pattern, description))

    def classify(self, error: ExecutionError) -> Optional[ErrorMatcher]:
        """Return the first matcher recognising ``error``, or None."""
        for matcher in self.matchers:
            if matcher.matches(error):
                return matcher
        return None

    def call(self, operation: Callable[[], "CommandResult"]) -> "CommandResult":
        """Run ``operation`` under this policy."""
        self.attempts = 0
        while True:
            self.attempts += 1
            try:
                return operation()
            except ExecutionError as e:
                matcher = self.classify(e)
                if matcher is None:
                    raise
                if self.attempts > self.max_retries:
                    logger.warning(
                        f"Giving up after {self.attempts} attempt(s): {matcher.description or matcher.pattern}"
                    )
                    raise
                logger.info(
                    f"Retryable error on attempt {self.attempts} ({matcher.description or matcher.pattern}); "
                    f"sleeping {self.interval}s"
                )
                if self._on_retry is not None:
                    self._on_retry(self.attempts, matcher, e)
                self._sleep(self.interval)


def with_retry(
    operation: Callable[[], "CommandResult"],
    max_retries: int,
    interval: float,
    matchers: Optional[Iterable[ErrorMatcher]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> "CommandResult":
    """Run ``operation``, retrying transient ``ExecutionError`` failures."""
    policy = RetryPolicy(max_retries=max_retries, interval=interval, matchers=matchers, sleep=sleep)
    return policy.call(operation)
