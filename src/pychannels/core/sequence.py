"""
Identity-keyed sequence reducer.

Ordered sequences such as conversation histories need more than append:
a producer must be able to replace an entry it wrote earlier and to delete
entries by identity. Every entry therefore carries a stable id, and
reduce_sequence merges a batch of updates into the current sequence by id.

**How It Works**:
1. Entries without an id get one (uuid7 by default, so ids sort by creation)
2. An upsert whose id already exists replaces that entry in place
3. An upsert with a new id is appended, in update order
4. A RemoveEntry tombstone deletes the entry with its id
5. RemoveEntry(REMOVE_ALL) clears the sequence; only updates after it survive

Deleting an id that is not present raises UnknownIdentityDeletionError.
Silently ignoring it would hide producers that assume a deletion happened.

**Example**:
```python
history = [Entry("hi", id="1"), Entry("hello", id="2")]
reduce_sequence(history, [RemoveEntry("1"), Entry("hello!", id="2")])
# [Entry(content='hello!', id='2')]
```
"""

from __future__ import annotations

import dataclasses
import itertools
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import xxhash
from uuid_extensions import uuid7

from pychannels.core.metadata import StepMetadata, metadata_key
from pychannels.models import MalformedUpdateError, UnknownIdentityDeletionError

__all__ = [
    "Entry",
    "RemoveEntry",
    "REMOVE_ALL",
    "new_entry_id",
    "deterministic_entry_ids",
    "entry_id",
    "reduce_sequence",
]

IdFactory = Callable[[], str]

REMOVE_ALL = "__remove_all__"
"""Id that makes a RemoveEntry clear the whole sequence."""


@dataclass(frozen=True)
class Entry:
    """A sequence entry: opaque content plus a stable identity."""

    content: Any
    id: str | None = None


@dataclass(frozen=True)
class RemoveEntry:
    """Tombstone: remove the entry with this id from the sequence."""

    id: str


def new_entry_id() -> str:
    """Fresh, time-ordered unique id."""
    return str(uuid7())


def deterministic_entry_ids(metadata: StepMetadata) -> IdFactory:
    """
    Id factory seeded from step metadata.

    Replaying the same node invocation yields the same ids in the same
    order, so entries produced on resume match the ones produced originally.
    """
    namespace = metadata_key(metadata)
    counter = itertools.count()

    def factory() -> str:
        hex = xxhash.xxh3_128_hexdigest(f"{namespace}:{next(counter)}".encode("utf-8"))
        return f"{hex[:8]}-{hex[8:12]}-{hex[12:16]}-{hex[16:20]}-{hex[20:32]}"

    return factory


def entry_id(entry: Any) -> str | None:
    """Id of an Entry, RemoveEntry or mapping entry; None if it has none."""
    if isinstance(entry, (Entry, RemoveEntry)):
        return entry.id
    if isinstance(entry, Mapping):
        return entry.get("id")
    return getattr(entry, "id", None)


def _ensure_id(entry: Any, id_factory: IdFactory) -> Any:
    if isinstance(entry, RemoveEntry):
        return entry
    if isinstance(entry, Entry):
        return entry if entry.id is not None else dataclasses.replace(entry, id=id_factory())
    if isinstance(entry, Mapping):
        return entry if entry.get("id") is not None else {**entry, "id": id_factory()}
    if getattr(entry, "id", None) is not None:
        return entry
    # bare content: wrap so it can carry an identity
    return Entry(entry, id=id_factory())


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping)):
        return list(value)
    return [value]


def reduce_sequence(
    current: Any, updates: Any, id_factory: IdFactory | None = None
) -> list[Any]:
    """
    Merge updates into an identity-keyed sequence.

    Args:
        current: Existing sequence (None or a single entry are accepted)
        updates: Upserts and RemoveEntry tombstones, in application order
        id_factory: Source of ids for entries lacking one

    Returns:
        New list; neither input is mutated

    Raises:
        UnknownIdentityDeletionError: A tombstone names an id that is not present
        MalformedUpdateError: current already contains duplicate ids
    """
    id_factory = id_factory or new_entry_id
    left = [_ensure_id(e, id_factory) for e in _as_list(current)]
    right = [_ensure_id(e, id_factory) for e in _as_list(updates)]

    for i in range(len(right) - 1, -1, -1):
        if isinstance(right[i], RemoveEntry) and right[i].id == REMOVE_ALL:
            left, right = [], right[i + 1 :]
            break

    merged = list(left)
    positions: dict[str, int] = {}
    for i, entry in enumerate(merged):
        eid = entry_id(entry)
        if eid in positions:
            raise MalformedUpdateError(f"Sequence already contains duplicate id {eid!r}")
        positions[eid] = i

    removed: set[str] = set()
    for entry in right:
        eid = entry_id(entry)
        if isinstance(entry, RemoveEntry):
            if eid not in positions or eid in removed:
                raise UnknownIdentityDeletionError(eid)
            removed.add(eid)
        elif eid in positions:
            # upsert after a tombstone in the same batch revives the entry in place
            removed.discard(eid)
            merged[positions[eid]] = entry
        else:
            positions[eid] = len(merged)
            merged.append(entry)

    return [e for e in merged if entry_id(e) not in removed]
