"""
Retry policy configuration for node execution.

Design Pattern: Strategy Pattern
RetryPolicy encapsulates retry behavior as an immutable decision table. It
never sleeps, schedules or catches anything itself; the executor asks it
what to do after each failure and does the waiting.

Design Rationale:
- Sensible default: 3 attempts, 500 ms doubling up to 128 s
- Named presets for common cases
- Custom RetryPolicy for full control, validated at construction
"""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple, cast

from pychannels.models.errors import ChannelError, RetryableError

__all__ = ["RetryPolicy", "RetryDecision", "default_retry_on"]

# Upper bound of the random jitter added to an interval, in milliseconds.
JITTER_MS = 1000.0

# Programming errors that re-running the same node will not fix.
_NON_RETRYABLE = (
    ValueError,
    TypeError,
    ArithmeticError,
    ImportError,
    LookupError,
    NameError,
    SyntaxError,
    RuntimeError,
    ReferenceError,
    StopIteration,
    StopAsyncIteration,
    OSError,
)


def default_retry_on(exc: BaseException) -> bool:
    """
    Default retry predicate.

    - RetryableError decides for itself via is_retryable()
    - Engine errors (rejected updates) are never retried
    - Connection failures and timeouts are retried
    - Common programming errors and other OS errors are never retried
    - Everything else is treated as transient
    """
    if isinstance(exc, RetryableError):
        return exc.is_retryable()
    if isinstance(exc, ChannelError):
        return False
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    if isinstance(exc, _NON_RETRYABLE):
        return False
    return True


class RetryDecision(NamedTuple):
    """Outcome of consulting a RetryPolicy after a failure."""

    should_retry: bool
    wait_ms: float


@dataclass(frozen=True)
class RetryPolicy:
    """
    Configuration for node retry behavior.

    Examples:
        # Default: 3 attempts, 500 ms initial interval, doubling
        policy = RetryPolicy()

        # Named preset
        policy = RetryPolicy.AGGRESSIVE

        # Only retry timeouts
        policy = RetryPolicy(max_attempts=5, retry_on=lambda e: isinstance(e, TimeoutError))
    """

    initial_interval: float = 500.0
    """Interval before the first retry in milliseconds."""

    backoff_factor: float = 2.0
    """Multiplier applied to the interval after each retry.

    interval(attempt) = min(max_interval, initial_interval * backoff_factor^(attempt-1))
    """

    max_interval: float = 128000.0
    """Cap on the interval between retries in milliseconds."""

    max_attempts: int = 3
    """Maximum number of attempts, including the first one."""

    jitter: bool = False
    """Add up to one second of random jitter to each interval."""

    retry_on: Callable[[BaseException], bool] = default_retry_on
    """Predicate over a failure; False means give up immediately."""

    if TYPE_CHECKING:
        NONE: RetryPolicy
        DEFAULT: RetryPolicy
        AGGRESSIVE: RetryPolicy
    else:
        NONE = cast("RetryPolicy", None)
        DEFAULT = cast("RetryPolicy", None)
        AGGRESSIVE = cast("RetryPolicy", None)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.initial_interval < 0:
            raise ValueError(f"initial_interval must be >= 0, got {self.initial_interval}")
        if self.max_interval < 0:
            raise ValueError(f"max_interval must be >= 0, got {self.max_interval}")
        if self.backoff_factor < 1:
            raise ValueError(f"backoff_factor must be >= 1, got {self.backoff_factor}")
        if not callable(self.retry_on):
            raise ValueError("retry_on must be callable")

    @classmethod
    def with_max_attempts(cls, max_attempts: int) -> RetryPolicy:
        """
        Create a policy with custom max_attempts and default intervals.

        Example:
            policy = RetryPolicy.with_max_attempts(5)
        """
        return cls(max_attempts=max_attempts)

    def interval_for_attempt(self, attempt: int) -> float:
        """
        Interval in milliseconds to wait after the given failed attempt.

        attempt=1 (first retry): initial_interval
        attempt=2: initial_interval * backoff_factor
        ... capped at max_interval.

        Args:
            attempt: The attempt that just failed (1-indexed)
        """
        if attempt < 1:
            raise ValueError(f"attempt is 1-indexed, got {attempt}")
        interval = self.initial_interval * self.backoff_factor ** (attempt - 1)
        return min(self.max_interval, interval)

    def decide(
        self, attempt: int, failure: BaseException, rng: random.Random | None = None
    ) -> RetryDecision:
        """
        Decide whether to retry after a failed attempt and how long to wait.

        Retrying stops once attempt >= max_attempts or retry_on(failure) is
        False. The wait is 0 when not retrying.

        Args:
            attempt: The attempt that just failed (1-indexed)
            failure: The exception the node raised
            rng: Random source for jitter (module random when None)

        Example:
            decision = RetryPolicy().decide(1, TimeoutError())
            # RetryDecision(should_retry=True, wait_ms=500.0)
        """
        if attempt >= self.max_attempts or not self.retry_on(failure):
            return RetryDecision(False, 0.0)

        wait_ms = self.interval_for_attempt(attempt)
        if self.jitter:
            wait_ms += (rng or random).uniform(0, JITTER_MS)
        return RetryDecision(True, wait_ms)


RetryPolicy.NONE = RetryPolicy(max_attempts=1, initial_interval=0.0, max_interval=0.0)

RetryPolicy.DEFAULT = RetryPolicy()

RetryPolicy.AGGRESSIVE = RetryPolicy(
    max_attempts=10,
    initial_interval=100.0,  # 100 milliseconds
    backoff_factor=1.5,
    max_interval=10000.0,  # 10 seconds
    jitter=True,
)
