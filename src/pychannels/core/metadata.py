"""Step metadata attached to every update.

The four fields identify where an update came from: the step index, the
node that produced it, the channels that triggered the node, and the task
index within the step. Field order is fixed (step, node, triggers,
task_index) because consumers hash and display the record in that order.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

import xxhash

__all__ = ["StepMetadata", "extract_step_metadata", "metadata_key", "normalize_triggers"]

# Order matters
_FIELDS = ("step", "node", "triggers", "task_index")


class StepMetadata(NamedTuple):
    """Ordered record {step, node, triggers, task_index}."""

    step: int | None
    node: str | None
    triggers: tuple[str, ...] | None
    task_index: int | None

    def as_dict(self) -> dict[str, Any]:
        """Field-ordered dict for tracing and checkpoint metadata."""
        return {name: getattr(self, name) for name in _FIELDS}


def extract_step_metadata(context: Any, prefix: str = "") -> StepMetadata:
    """
    Project an invocation context onto StepMetadata.

    Pure and total: missing fields become None, triggers are normalized to
    a tuple. Calling it twice on the same context gives equal results.

    Args:
        context: A StepMetadata, a mapping, or any object with the fields
            as attributes
        prefix: Key prefix used by the runtime's metadata mapping, e.g.
            "runtime_" for {"runtime_step": 3, "runtime_node": "agent", ...}

    Example:
        ```python
        extract_step_metadata({"task_index": 1, "node": "agent", "step": 3, "extra": 1})
        # StepMetadata(step=3, node='agent', triggers=None, task_index=1)
        ```
    """
    if isinstance(context, StepMetadata):
        return context

    if isinstance(context, Mapping):
        values = [context.get(f"{prefix}{name}") for name in _FIELDS]
    else:
        values = [getattr(context, f"{prefix}{name}", None) for name in _FIELDS]

    step, node, triggers, task_index = values
    if triggers is not None:
        triggers = normalize_triggers(triggers)
    return StepMetadata(step, node, triggers, task_index)


def normalize_triggers(triggers: Any) -> tuple[Any, ...]:
    """Tuple of trigger names; a string or any other scalar is one trigger."""
    if isinstance(triggers, (str, bytes)) or not isinstance(triggers, Iterable):
        return (triggers,)
    return tuple(triggers)


def metadata_key(metadata: StepMetadata) -> str:
    """Stable hex digest of the ordered metadata, usable as an identity namespace."""
    parts = [
        str(metadata.step),
        str(metadata.node),
        ",".join(map(str, metadata.triggers or ())),
        str(metadata.task_index),
    ]
    return xxhash.xxh3_64_hexdigest("\x00".join(parts).encode("utf-8"))
