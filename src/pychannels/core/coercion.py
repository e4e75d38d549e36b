"""Update coercion.

Nodes may return either a partial state patch keyed by channel name or a
single value meant for one implicit channel. Coercion turns both forms into
a uniform {channel: payload} mapping before any reducer runs.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from datetime import date, time, timedelta
from typing import Any, NamedTuple

from pychannels.core.metadata import StepMetadata
from pychannels.models import MalformedUpdateError

__all__ = ["UpdateRecord", "coerce_to_updates", "to_update_records"]


class UpdateRecord(NamedTuple):
    """One payload addressed to one channel, tagged with where it came from."""

    target: str
    payload: Any
    step_metadata: StepMetadata | None = None


def _is_structured(value: Any) -> bool:
    # date/time values are compound but their fields are not state keys
    if isinstance(value, (date, time, timedelta)):
        return False
    if isinstance(value, Mapping):
        return True
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return True
    return callable(getattr(value, "model_dump", None)) and not isinstance(value, type)


def _fields(value: Any) -> Mapping[Any, Any]:
    if isinstance(value, Mapping):
        return value
    if dataclasses.is_dataclass(value):
        return {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    # pydantic-style model: only the fields that were actually set are updates
    return {name: getattr(value, name) for name in value.model_dump(exclude_unset=True)}


def coerce_to_updates(raw: Any, default_channel: str) -> dict[str, Any]:
    """
    Normalize a node's return value into per-channel updates.

    Structured objects (mappings, dataclass instances, pydantic-style models)
    become one update per field. Everything else (lists, tuples, scalars,
    strings, date/time values, None) is wrapped as a single update for
    default_channel.

    Args:
        raw: The node's return value
        default_channel: Channel for non-structured values

    Returns:
        Mapping of channel name to payload

    Raises:
        MalformedUpdateError: A structured value has a non-string key

    Example:
        ```python
        coerce_to_updates(["x", "y"], "messages")  # {"messages": ["x", "y"]}
        coerce_to_updates({"query": "q"}, "messages")  # {"query": "q"}
        ```
    """
    if not _is_structured(raw):
        return {default_channel: raw}

    updates: dict[str, Any] = {}
    for key, payload in _fields(raw).items():
        if not isinstance(key, str):
            raise MalformedUpdateError(
                f"Update keys must be channel names, got {type(key).__name__} key {key!r}"
            )
        updates[key] = payload
    return updates


def to_update_records(
    raw: Any, default_channel: str, metadata: StepMetadata | None = None
) -> list[UpdateRecord]:
    """Coerce raw and tag every resulting update with metadata, in field order."""
    return [
        UpdateRecord(target, payload, metadata)
        for target, payload in coerce_to_updates(raw, default_channel).items()
    ]
