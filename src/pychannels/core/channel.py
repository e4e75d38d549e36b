"""
Channels: named, independently versioned partitions of graph state.

Design Pattern: Strategy Pattern over a closed set
A channel holds one reducer selected from ReducerKind. The merge behavior
varies by configuration, not by subclassing:

- LAST_VALUE: the single update of a step replaces the value
- APPEND: updates are concatenated onto a list
- IDENTITY_SEQUENCE: upsert/delete by entry id (see sequence.py)
- CUSTOM: a user-supplied pure (current, update) -> next function

A channel's version advances every time apply() changes it and never
moves backwards. A channel that receives nothing in a step keeps its
version.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

from pychannels.core.coercion import UpdateRecord
from pychannels.core.sequence import deterministic_entry_ids, reduce_sequence
from pychannels.models import (
    EmptyChannelError,
    InvalidUpdateError,
    Version,
    VersionMap,
    VersionTypeMismatchError,
)

logger = logging.getLogger(__name__)

__all__ = ["ReducerKind", "Channel", "MISSING", "compute_version_map"]

Reducer = Callable[[Any, Any], Any]

# Sentinel for "no value yet", distinct from a stored None
MISSING = object()


class ReducerKind(Enum):
    """How a channel merges the updates it receives within a step."""

    LAST_VALUE = "last_value"
    APPEND = "append"
    IDENTITY_SEQUENCE = "identity_sequence"
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


class Channel:
    """
    A single named state partition.

    Usage:
        ```python
        messages = Channel("messages", ReducerKind.IDENTITY_SEQUENCE)
        messages.apply([[Entry("hi", id="1")]], next_version=1)
        messages.value    # [Entry(content='hi', id='1')]
        messages.version  # 1
        ```
    """

    def __init__(
        self,
        name: str,
        kind: ReducerKind = ReducerKind.LAST_VALUE,
        reducer: Reducer | None = None,
        default: Any = MISSING,
    ):
        """Initialize a channel.

        Args:
            name: Unique channel name within a graph
            kind: Which reducer variant merges updates
            reducer: Merge function, required for CUSTOM and rejected otherwise
            default: Initial value; APPEND and IDENTITY_SEQUENCE start from []

        Raises:
            ValueError: reducer does not match kind
        """
        if kind is ReducerKind.CUSTOM and reducer is None:
            raise ValueError(f"Channel {name!r}: CUSTOM channels need a reducer")
        if kind is not ReducerKind.CUSTOM and reducer is not None:
            raise ValueError(f"Channel {name!r}: reducer is only allowed for CUSTOM channels")

        self.name = name
        self.kind = kind
        self.reducer = reducer
        self._default = default
        self._value = default
        self._version: Version | None = None

    def __repr__(self) -> str:
        return f"Channel(name={self.name!r}, kind={self.kind}, version={self._version!r})"

    @property
    def value(self) -> Any:
        """Current merged value.

        Raises:
            EmptyChannelError: Channel was never written and has no default
        """
        if self._value is MISSING:
            if self.kind in (ReducerKind.APPEND, ReducerKind.IDENTITY_SEQUENCE):
                return []
            raise EmptyChannelError(f"Channel {self.name!r} is empty", channel=self.name)
        return self._value

    @property
    def version(self) -> Version | None:
        """Current version, None until the channel is first written."""
        return self._version

    def is_available(self) -> bool:
        """Check whether the channel holds a value."""
        return self._value is not MISSING

    def apply(self, updates: Sequence[Any], next_version: Version) -> Any:
        """
        Fold a step's updates into the channel and advance its version.

        Updates are applied in the order given. Items may be raw payloads or
        UpdateRecords; for IDENTITY_SEQUENCE channels a record's step
        metadata seeds deterministic ids for entries that lack one.

        The new value is computed before anything is assigned, so a failing
        reducer leaves both value and version untouched.

        Args:
            updates: Ordered updates for this step
            next_version: Version to assign; must be strictly later than the
                current one

        Returns:
            The new value. An empty update list changes nothing and returns
            the current value (MISSING for a channel that was never written)

        Raises:
            InvalidUpdateError: More than one update to a LAST_VALUE channel
            VersionTypeMismatchError: next_version is not comparable with the
                current version
            ValueError: next_version is not strictly later than the current one
        """
        if not updates:
            return self._value

        self.commit(self.merge(self._value, updates), next_version)
        logger.debug(
            f"Channel {self.name} applied {len(updates)} update(s), version={next_version!r}"
        )
        return self._value

    def merge(self, current: Any, updates: Sequence[Any]) -> Any:
        """
        Pure fold of updates onto current, without touching the channel.

        Lets a caller try one node's updates before committing them.
        Pass MISSING as current for an empty channel.

        Raises:
            InvalidUpdateError: More than one update to a LAST_VALUE channel
        """
        if self.kind is ReducerKind.LAST_VALUE and len(updates) > 1:
            raise InvalidUpdateError(
                f"Channel {self.name!r} can receive only one value per step, "
                f"got {len(updates)}",
                channel=self.name,
            )
        value = current
        for update in updates:
            value = self._reduce(value, update)
        return value

    def commit(self, value: Any, version: Version) -> None:
        """Store a merged value and the version it was merged at."""
        self.check_version(version)
        self._value = value
        self._version = version

    def check_version(self, next_version: Version) -> None:
        """Raise unless next_version may follow the current version.

        Raises:
            VersionTypeMismatchError: next_version is not comparable with the
                current version
            ValueError: next_version is not strictly later than the current one
        """
        if self._version is None:
            return
        try:
            later = next_version > self._version
        except TypeError as e:
            raise VersionTypeMismatchError(
                f"Version {next_version!r} cannot follow {self._version!r}",
                channel=self.name,
            ) from e
        if not later:
            raise ValueError(
                f"Channel {self.name!r}: version {next_version!r} is not later than "
                f"{self._version!r}"
            )

    def _reduce(self, current: Any, update: Any) -> Any:
        metadata = None
        if isinstance(update, UpdateRecord):
            metadata = update.step_metadata
            update = update.payload

        if self.kind is ReducerKind.LAST_VALUE:
            return update

        if self.kind is ReducerKind.APPEND:
            base = [] if current is MISSING else list(current)
            if isinstance(update, (list, tuple)):
                return base + list(update)
            return base + [update]

        if self.kind is ReducerKind.IDENTITY_SEQUENCE:
            id_factory = deterministic_entry_ids(metadata) if metadata is not None else None
            base = [] if current is MISSING else current
            return reduce_sequence(base, update, id_factory)

        if current is MISSING:
            return update
        return self.reducer(current, update)

    def checkpoint(self) -> Any:
        """Current value, or MISSING if the channel is empty."""
        return self._value

    def from_checkpoint(self, value: Any, version: Version | None) -> Channel:
        """New channel with this channel's configuration and restored state."""
        restored = Channel(self.name, self.kind, self.reducer, self._default)
        restored._value = value
        restored._version = version
        return restored

    def copy(self) -> Channel:
        """Independent channel with the same configuration, value and version."""
        return self.from_checkpoint(self._value, self._version)


def compute_version_map(channels: Mapping[str, Channel] | Iterable[Channel]) -> VersionMap:
    """
    Project channels onto a VersionMap.

    Only channels that have been written at least once appear. Take this
    between steps, never while a step's updates are being applied.
    """
    if isinstance(channels, Mapping):
        channels = channels.values()
    return VersionMap(
        (channel.name, channel.version) for channel in channels if channel.version is not None
    )
