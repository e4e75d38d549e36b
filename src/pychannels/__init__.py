"""
pychannels: Versioned channel state for step-based graph runtimes

Node outputs produced within one step are merged into shared, partitioned
state. Each partition ("channel") has its own reducer and its own version,
so a runtime can tell exactly which channels changed since a checkpoint.

Design Pattern: Façade Pattern
This module re-exports the public surface of models, core and executor.

Example:
    ```python
    import asyncio
    from pychannels import Channel, Entry, NodeTask, ReducerKind, StateEngine, run_step

    engine = StateEngine(
        [Channel("messages", ReducerKind.IDENTITY_SEQUENCE), Channel("query")],
        default_channel="messages",
    )

    async def main():
        before = engine.versions
        await run_step(engine, [
            NodeTask("ask", lambda: {"query": "weather?"}),
            NodeTask("greet", lambda: [Entry("hello")]),
        ])
        print(engine.new_versions_since(before))

    asyncio.run(main())
    ```
"""

# Models - versions, retry configuration, errors
from pychannels.models import (
    ChannelError,
    EmptyChannelError,
    InvalidUpdateError,
    MalformedUpdateError,
    RetryableError,
    RetryDecision,
    RetryExhaustedError,
    RetryPolicy,
    UnknownIdentityDeletionError,
    VersionDomain,
    VersionMap,
    VersionTypeMismatchError,
    get_new_channel_versions,
    null_channel_version,
)

# Core - channels, coercion, sequences, metadata
from pychannels.core import (
    REMOVE_ALL,
    Channel,
    Entry,
    ReducerKind,
    RemoveEntry,
    StepMetadata,
    UpdateRecord,
    coerce_to_updates,
    compute_version_map,
    extract_step_metadata,
    reduce_sequence,
)

# Execution - steps, retries
from pychannels.executor import (
    Checkpoint,
    NodeResult,
    NodeTask,
    StateEngine,
    StepReport,
    execute_with_retry,
    run_step,
)

__version__ = "0.1.0"

__all__ = [
    # Errors
    "ChannelError",
    "EmptyChannelError",
    "InvalidUpdateError",
    "MalformedUpdateError",
    "RetryableError",
    "RetryExhaustedError",
    "UnknownIdentityDeletionError",
    "VersionTypeMismatchError",
    # Versions
    "VersionDomain",
    "VersionMap",
    "get_new_channel_versions",
    "null_channel_version",
    "compute_version_map",
    # Retry
    "RetryPolicy",
    "RetryDecision",
    "execute_with_retry",
    # Channels and updates
    "Channel",
    "ReducerKind",
    "UpdateRecord",
    "coerce_to_updates",
    # Sequences
    "Entry",
    "RemoveEntry",
    "REMOVE_ALL",
    "reduce_sequence",
    # Metadata
    "StepMetadata",
    "extract_step_metadata",
    # Steps
    "StateEngine",
    "NodeResult",
    "StepReport",
    "Checkpoint",
    "NodeTask",
    "run_step",
    # Version
    "__version__",
]
