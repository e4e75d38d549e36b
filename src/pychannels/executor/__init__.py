"""
Executor module - applying steps to channel state.

This module contains the step-level components:
- step: StateEngine, bulk-synchronous step application and checkpoints
- retry: Running a node under a RetryPolicy
- runner: Running a step's nodes concurrently, then applying them
"""

from pychannels.executor.retry import execute_with_retry
from pychannels.executor.runner import NodeTask, run_step
from pychannels.executor.step import (
    Checkpoint,
    NodeResult,
    StateEngine,
    StepFailure,
    StepReport,
)

__all__ = [
    # Step application
    "StateEngine",
    "NodeResult",
    "StepFailure",
    "StepReport",
    "Checkpoint",
    # Retry
    "execute_with_retry",
    # Running steps
    "NodeTask",
    "run_step",
]
