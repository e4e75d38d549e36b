"""
Step application: merging one step's node outputs into channel state.

Design: Bulk-Synchronous Steps
Nodes of a step run independently; their outputs are applied only once
all of them have finished. StateEngine owns the channels, the step counter
and the current VersionMap, and threads that map from step to step. There
is no global version state.

**How a step is applied**:
1. Results are ordered by task index, which fixes the reduction order
2. Failed or cancelled nodes contribute nothing
3. Each node's return value is coerced into per-channel updates
4. Each node's updates are merged on top of the earlier nodes' merges. If
   any of them is rejected, the whole node is dropped and reported
5. All changed channels are committed with one shared next version
6. The VersionMap is recomputed and diffed against the previous one

Example:
    ```python
    engine = StateEngine(
        [Channel("messages", ReducerKind.IDENTITY_SEQUENCE), Channel("query")],
        default_channel="messages",
    )
    report = engine.apply_step([
        NodeResult("agent", task_index=0, value={"query": "q"}),
        NodeResult("tools", task_index=1, value=[Entry("done")]),
    ])
    report.updated       # frozenset({'messages', 'query'})
    report.new_versions  # VersionMap({'messages': 1, 'query': 1})
    ```
"""

from __future__ import annotations

import logging
import pickle
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pychannels.core import (
    MISSING,
    Channel,
    ReducerKind,
    StepMetadata,
    UpdateRecord,
    compute_version_map,
    normalize_triggers,
    to_update_records,
)
from pychannels.models import (
    ChannelError,
    InvalidUpdateError,
    MalformedUpdateError,
    VersionDomain,
    VersionMap,
    VersionTypeMismatchError,
    get_new_channel_versions,
)

logger = logging.getLogger(__name__)

__all__ = ["NodeResult", "StepFailure", "StepReport", "Checkpoint", "StateEngine"]

# Coercion target when the engine has no default channel; compared by identity
_NO_DEFAULT = "<no default channel>"


@dataclass
class NodeResult:
    """
    What one node produced in a step.

    Attributes:
        node: Node name
        task_index: Position of the task within the step (reduction order)
        value: The node's raw return value
        triggers: Channels that triggered the node
        error: Set when the node failed or was cancelled
    """

    node: str
    task_index: int
    value: Any = None
    triggers: tuple[str, ...] = ()
    error: BaseException | None = None

    def __post_init__(self) -> None:
        # triggers="messages" is one trigger, not eight
        self.triggers = () if self.triggers is None else normalize_triggers(self.triggers)

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class StepFailure:
    """A node whose contribution to a step was discarded."""

    node: str
    task_index: int
    error: BaseException


@dataclass
class StepReport:
    """
    Outcome of applying one step.

    Attributes:
        step: Index of the applied step
        updated: Channels whose value changed
        versions: VersionMap after the step
        new_versions: Entries of versions that advanced during the step
        failures: Nodes whose updates were discarded
    """

    step: int
    updated: frozenset[str]
    versions: VersionMap
    new_versions: VersionMap
    failures: list[StepFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class Checkpoint:
    """
    Snapshot of engine state between steps.

    Values are pickled so the snapshot is isolated from later mutation.
    Storing it durably is the checkpoint store's business.
    """

    step: int
    versions: VersionMap
    values: Mapping[str, bytes]
    domain: VersionDomain


class StateEngine:
    """
    Owns a graph's channels and applies steps to them.

    Callers must not apply two steps to the same engine concurrently.
    """

    def __init__(
        self,
        channels: Iterable[Channel],
        domain: VersionDomain = VersionDomain.NUMERIC,
        default_channel: str | None = None,
    ):
        """Initialize the engine.

        Args:
            channels: Channel definitions; names must be unique. The engine
                works on copies, so one list may seed several engines
            domain: Version domain for every channel of this engine
            default_channel: Target for node values that are not keyed
                mappings; defaults to the only channel when there is one

        Raises:
            ValueError: Duplicate channel names or unknown default_channel
            VersionTypeMismatchError: A channel already carries a version
                from another domain
        """
        self._channels: dict[str, Channel] = {}
        for channel in channels:
            if channel.name in self._channels:
                raise ValueError(f"Duplicate channel name {channel.name!r}")
            self._channels[channel.name] = channel.copy()

        if default_channel is None and len(self._channels) == 1:
            default_channel = next(iter(self._channels))
        if default_channel is not None and default_channel not in self._channels:
            raise ValueError(f"Default channel {default_channel!r} is not a channel")

        self.domain = domain
        self.default_channel = default_channel
        self._step = -1
        self._versions = self._validated_versions(compute_version_map(self._channels))

    def __repr__(self) -> str:
        return (
            f"StateEngine(channels={list(self._channels)}, domain={self.domain}, "
            f"step={self._step})"
        )

    @property
    def step(self) -> int:
        """Index of the last applied step, -1 before the first one."""
        return self._step

    @property
    def versions(self) -> VersionMap:
        """VersionMap as of the last applied step."""
        return self._versions

    @property
    def channels(self) -> Mapping[str, Channel]:
        return dict(self._channels)

    def values(self) -> dict[str, Any]:
        """Current value of every channel that holds one."""
        return {
            name: channel.value
            for name, channel in self._channels.items()
            if channel.is_available()
        }

    def new_versions_since(self, previous: Mapping[str, Any]) -> VersionMap:
        """Channels that advanced since previous (e.g. a resumed checkpoint's map)."""
        return get_new_channel_versions(previous, self._versions)

    def apply_step(self, results: Iterable[NodeResult]) -> StepReport:
        """
        Apply one step's node results.

        A node whose updates are rejected contributes nothing; the other
        nodes of the step still apply. Rejections are logged and returned
        in the report, with channel and step attached.

        Args:
            results: Results of every node that ran in the step

        Returns:
            StepReport for the step
        """
        step = self._step + 1
        ordered = sorted(results, key=lambda r: r.task_index)

        merged: dict[str, Any] = {}
        failures: list[StepFailure] = []

        for result in ordered:
            if result.failed:
                logger.warning(
                    f"Step {step}: node {result.node} (task {result.task_index}) failed, "
                    f"discarding its updates: {result.error!r}"
                )
                failures.append(StepFailure(result.node, result.task_index, result.error))
                continue

            try:
                staged = self._stage(result, step, merged)
            except ChannelError as e:
                e.with_context(step=step)
                logger.error(
                    f"Step {step}: rejected updates from node {result.node} "
                    f"(task {result.task_index}): {e}"
                )
                failures.append(StepFailure(result.node, result.task_index, e))
                continue

            merged.update(staged)

        next_version = self.domain.next_version(self._versions.max_version())
        # every commit is checked before any is made, so a step never half-applies
        for name in merged:
            self._channels[name].check_version(next_version)
        for name, value in merged.items():
            self._channels[name].commit(value, next_version)
            logger.debug(f"Step {step}: channel {name} -> version {next_version!r}")

        previous = self._versions
        self._versions = compute_version_map(self._channels)
        self._step = step

        report = StepReport(
            step=step,
            updated=frozenset(merged),
            versions=self._versions,
            new_versions=get_new_channel_versions(previous, self._versions),
            failures=failures,
        )
        logger.info(
            f"Applied step {step}: {len(report.updated)} channel(s) updated, "
            f"{len(failures)} node(s) discarded"
        )
        return report

    def _stage(self, result: NodeResult, step: int, merged: Mapping[str, Any]) -> dict[str, Any]:
        """Merge one node's updates on top of the step so far, without committing."""
        metadata = StepMetadata(step, result.node, tuple(result.triggers), result.task_index)
        records = to_update_records(result.value, self.default_channel or _NO_DEFAULT, metadata)
        staged: dict[str, Any] = {}
        for record in records:
            if record.target is _NO_DEFAULT:
                raise MalformedUpdateError(
                    f"Node {result.node!r} returned {type(result.value).__name__}, "
                    "but the engine has no default channel"
                )
            channel = self._channels.get(record.target)
            if channel is None:
                raise InvalidUpdateError(
                    f"Node {result.node!r} wrote to unknown channel {record.target!r}",
                    channel=record.target,
                )
            current = merged.get(record.target, channel.checkpoint())
            staged[record.target] = self._merge(channel, current, record, merged)
        return staged

    def _merge(
        self, channel: Channel, current: Any, record: UpdateRecord, merged: Mapping[str, Any]
    ) -> Any:
        if channel.name in merged and channel.kind is ReducerKind.LAST_VALUE:
            raise InvalidUpdateError(
                f"Channel {channel.name!r} can receive only one value per step",
                channel=channel.name,
            )
        try:
            return channel.merge(current, [record])
        except ChannelError as e:
            raise e.with_context(channel=channel.name)
        except Exception as e:
            raise MalformedUpdateError(
                f"Reducer rejected update: {e}", channel=channel.name
            ) from e

    def checkpoint(self) -> Checkpoint:
        """Snapshot values and versions between steps."""
        return Checkpoint(
            step=self._step,
            versions=self._versions,
            values={
                name: pickle.dumps(channel.checkpoint())
                for name, channel in self._channels.items()
                if channel.checkpoint() is not MISSING
            },
            domain=self.domain,
        )

    @classmethod
    def restore(
        cls,
        channels: Iterable[Channel],
        checkpoint: Checkpoint,
        default_channel: str | None = None,
    ) -> StateEngine:
        """
        Build an engine from channel definitions and a checkpoint.

        Channels absent from the checkpoint start empty.

        Raises:
            VersionTypeMismatchError: The checkpoint's versions do not
                belong to its declared domain
        """
        definitions = list(channels)
        restored = [
            channel.from_checkpoint(
                pickle.loads(checkpoint.values[channel.name])
                if channel.name in checkpoint.values
                else MISSING,
                checkpoint.versions.get(channel.name),
            )
            for channel in definitions
        ]
        engine = cls(restored, checkpoint.domain, default_channel)
        engine._step = checkpoint.step
        logger.info(
            f"Restored engine at step {checkpoint.step} with {len(checkpoint.versions)} "
            "versioned channel(s)"
        )
        return engine

    def _validated_versions(self, versions: VersionMap) -> VersionMap:
        if versions.domain is not None and versions.domain is not self.domain:
            raise VersionTypeMismatchError(
                f"Engine uses {self.domain} versions but channels carry {versions.domain} versions"
            )
        return versions
