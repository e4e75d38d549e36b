"""Running the nodes of one step and applying their outputs.

run_step() executes every node task of a step concurrently, each under its
own RetryPolicy, waits for all of them, then hands the results to
StateEngine.apply_step(). Reductions never start before every node has
finished, so outputs from one step are never interleaved with another's.

Concurrency vs Parallelism:
Nodes run under asyncio.gather(). This provides concurrency (interleaved
execution), not parallelism. Blocking node code should offload itself
with asyncio.to_thread().

Usage:
    ```python
    report = await run_step(engine, [
        NodeTask("agent", call_model, triggers=("messages",)),
        NodeTask("search", run_search, retry_policy=RetryPolicy(max_attempts=5)),
    ])
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pychannels.executor.retry import execute_with_retry
from pychannels.executor.step import NodeResult, StateEngine, StepReport
from pychannels.models import RetryPolicy

__all__ = ["NodeTask", "run_step"]


@dataclass(frozen=True)
class NodeTask:
    """
    One node scheduled to run in a step.

    Attributes:
        node: Node name
        fn: Zero-argument callable producing the node's raw value
        triggers: Channels that triggered the node
        retry_policy: Policy consulted when fn fails (no retries when None)
    """

    node: str
    fn: Callable[[], Any | Awaitable[Any]]
    triggers: tuple[str, ...] = ()
    retry_policy: RetryPolicy | None = None


async def run_step(engine: StateEngine, tasks: Sequence[NodeTask]) -> StepReport:
    """
    Run a step's node tasks concurrently and apply their results.

    Task indexes follow the order of tasks, which fixes reduction order.
    A node that fails or is cancelled contributes nothing to the step.

    Args:
        engine: Engine owning the channels
        tasks: Nodes to run in this step

    Returns:
        StepReport from the engine
    """
    outcomes = await asyncio.gather(
        *[
            execute_with_retry(task.fn, task.retry_policy or RetryPolicy.NONE, node=task.node)
            for task in tasks
        ],
        return_exceptions=True,
    )

    results = []
    for index, (task, outcome) in enumerate(zip(tasks, outcomes)):
        if isinstance(outcome, BaseException):
            results.append(
                NodeResult(task.node, index, triggers=task.triggers, error=outcome)
            )
        else:
            results.append(NodeResult(task.node, index, value=outcome, triggers=task.triggers))

    return engine.apply_step(results)
