"""
Error taxonomy for the channel state engine.

All engine errors share ChannelError as their base so an executor can tell
"this node's contribution was rejected" apart from failures raised by the
node itself. Every error carries the offending channel name and step index
when they are known, and includes them in its message.

Engine errors abort the offending node's contribution for one step. Whether
the node is re-run is the executor's decision (see RetryPolicy).
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ChannelError",
    "MalformedUpdateError",
    "InvalidUpdateError",
    "UnknownIdentityDeletionError",
    "VersionTypeMismatchError",
    "EmptyChannelError",
    "RetryableError",
    "RetryExhaustedError",
]


class ChannelError(Exception):
    """Base class for channel state engine errors.

    Attributes:
        channel: Name of the channel involved, if known
        step: Step index during which the error occurred, if known
    """

    def __init__(self, message: str, *, channel: str | None = None, step: int | None = None):
        super().__init__(message)
        self.message = message
        self.channel = channel
        self.step = step

    def with_context(self, *, channel: str | None = None, step: int | None = None) -> ChannelError:
        """Fill in channel/step if they were not known where the error was raised."""
        if self.channel is None:
            self.channel = channel
        if self.step is None:
            self.step = step
        return self

    def __str__(self) -> str:
        context = []
        if self.channel is not None:
            context.append(f"channel={self.channel!r}")
        if self.step is not None:
            context.append(f"step={self.step}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class MalformedUpdateError(ChannelError):
    """A node's return value cannot be turned into a valid channel update."""


class InvalidUpdateError(MalformedUpdateError):
    """An update violates the target channel's contract.

    Raised for writes to unknown channels and for more than one write to a
    last-value channel within a single step.
    """


class UnknownIdentityDeletionError(ChannelError):
    """A delete marker references an id absent from the sequence."""

    def __init__(
        self,
        entry_id: Any,
        *,
        channel: str | None = None,
        step: int | None = None,
    ):
        super().__init__(
            f"Attempting to delete an entry with id {entry_id!r} that doesn't exist",
            channel=channel,
            step=step,
        )
        self.entry_id = entry_id


class VersionTypeMismatchError(ChannelError):
    """Versions within one graph are not all numeric or all strings."""


class EmptyChannelError(ChannelError):
    """A channel was read before it received any value."""


class RetryableError(Exception):
    """
    Base class for errors that decide their own retryability.

    Example:
        ```python
        class UpstreamError(RetryableError):
            def __init__(self, message: str, transient: bool):
                super().__init__(message)
                self._transient = transient

            def is_retryable(self) -> bool:
                return self._transient
        ```
    """

    def is_retryable(self) -> bool:
        """Return True if the failure is transient and the node may be re-run."""
        return True


class RetryExhaustedError(Exception):
    """A node kept failing with retryable errors until max_attempts was reached.

    The last failure is chained as ``__cause__`` and kept on ``last_error``.
    """

    def __init__(self, attempts: int, last_error: BaseException, node: str | None = None):
        where = f" for node {node!r}" if node else ""
        super().__init__(f"Retries exhausted{where} after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
        self.node = node
