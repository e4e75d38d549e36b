"""Core data models for the channel state engine.

Defines version domains and maps, retry configuration and the error
taxonomy.

Design: Dependency-Free Models
These types have no dependencies on core or executor modules to
prevent circular imports and enable clean layering.
"""

from pychannels.models.errors import (
    ChannelError,
    EmptyChannelError,
    InvalidUpdateError,
    MalformedUpdateError,
    RetryableError,
    RetryExhaustedError,
    UnknownIdentityDeletionError,
    VersionTypeMismatchError,
)
from pychannels.models.retry import RetryDecision, RetryPolicy, default_retry_on
from pychannels.models.versions import (
    Version,
    VersionDomain,
    VersionMap,
    get_new_channel_versions,
    null_channel_version,
)

__all__ = [
    "ChannelError",
    "EmptyChannelError",
    "InvalidUpdateError",
    "MalformedUpdateError",
    "RetryableError",
    "RetryExhaustedError",
    "UnknownIdentityDeletionError",
    "VersionTypeMismatchError",
    "RetryDecision",
    "RetryPolicy",
    "default_retry_on",
    "Version",
    "VersionDomain",
    "VersionMap",
    "get_new_channel_versions",
    "null_channel_version",
]
