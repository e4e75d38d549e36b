"""
Core types for the channel state engine.

This module contains the building blocks every step goes through:
- Channel: Named, versioned state partition with a reducer
- ReducerKind: Closed set of reducer variants
- compute_version_map: Projection of channels onto a VersionMap
- coerce_to_updates: Node return value -> per-channel updates
- UpdateRecord: One payload for one channel, with step metadata
- reduce_sequence: Identity-keyed upsert/delete merge
- Entry / RemoveEntry: Sequence entries and tombstones
- StepMetadata: Ordered {step, node, triggers, task_index} record
"""

from pychannels.core.channel import MISSING, Channel, ReducerKind, compute_version_map
from pychannels.core.coercion import UpdateRecord, coerce_to_updates, to_update_records
from pychannels.core.metadata import (
    StepMetadata,
    extract_step_metadata,
    metadata_key,
    normalize_triggers,
)
from pychannels.core.sequence import (
    REMOVE_ALL,
    Entry,
    RemoveEntry,
    deterministic_entry_ids,
    entry_id,
    new_entry_id,
    reduce_sequence,
)

__all__ = [
    "MISSING",
    "Channel",
    "ReducerKind",
    "compute_version_map",
    "UpdateRecord",
    "coerce_to_updates",
    "to_update_records",
    "StepMetadata",
    "extract_step_metadata",
    "metadata_key",
    "normalize_triggers",
    "REMOVE_ALL",
    "Entry",
    "RemoveEntry",
    "deterministic_entry_ids",
    "entry_id",
    "new_entry_id",
    "reduce_sequence",
]
