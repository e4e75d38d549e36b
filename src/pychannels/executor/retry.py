"""Running a node under a RetryPolicy.

The policy only decides; this module does the waiting. Non-retryable
failures propagate unchanged. A failure the policy would still retry,
hit after the last allowed attempt, is raised as RetryExhaustedError
with the failure chained.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from pychannels.models import RetryExhaustedError, RetryPolicy

logger = logging.getLogger(__name__)

__all__ = ["execute_with_retry"]

T = TypeVar("T")


async def execute_with_retry(
    fn: Callable[[], T | Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    node: str | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Call fn until it succeeds or the policy says stop.

    Args:
        fn: Zero-argument callable; may be sync or async
        policy: Retry policy (RetryPolicy.DEFAULT when None)
        node: Node name, used in log messages and errors
        sleep: Awaitable sleep taking seconds, replaceable in tests

    Returns:
        The first successful result

    Raises:
        RetryExhaustedError: Retries ran out while the failure was still retryable
        Exception: The original failure, when it is not retryable

    Example:
        ```python
        result = await execute_with_retry(
            lambda: fetch(url), RetryPolicy(max_attempts=5), node="fetch"
        )
        ```
    """
    policy = policy or RetryPolicy.DEFAULT
    attempt = 0

    while True:
        attempt += 1
        try:
            result = fn()
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            decision = policy.decide(attempt, e)
            if decision.should_retry:
                logger.warning(
                    f"Node {node} failed (attempt {attempt}/{policy.max_attempts}), "
                    f"retrying in {decision.wait_ms:.0f}ms: {e!r}"
                )
                await sleep(decision.wait_ms / 1000.0)
                continue

            # Only report exhaustion when retries actually happened
            if attempt > 1 and policy.retry_on(e):
                logger.error(f"Node {node} exhausted {attempt} attempts: {e!r}")
                raise RetryExhaustedError(attempt, e, node) from e
            raise
