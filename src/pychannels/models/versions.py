"""
Channel versions and version maps.

Every channel carries a version that advances each time the channel changes.
Versions are compared between two points in execution to find the channels
that changed, which is how the runtime decides what to persist and which
downstream triggers fire.

Design: Explicit Version Domain
The version domain (numeric counters or lexicographically ordered strings)
is chosen once per engine instead of being guessed from values at every
comparison. VersionMap still infers the domain of versions it is handed,
so maps restored from a checkpoint are validated before they are compared.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from typing import Any, Union

import xxhash

from pychannels.models.errors import VersionTypeMismatchError

__all__ = [
    "Version",
    "VersionDomain",
    "VersionMap",
    "null_channel_version",
    "get_new_channel_versions",
]

Version = Union[int, float, str]

# Width of the counter part of lexicographic versions. Zero padding to a fixed
# width makes string order agree with numeric order.
_COUNTER_WIDTH = 32


class VersionDomain(Enum):
    """
    The value space channel versions live in.

    NUMERIC versions are integer counters. LEXICOGRAPHIC versions are strings
    that sort later each time they advance, the shape used by stores that
    order versions as text (hybrid logical clocks, fractional indexes).
    """

    NUMERIC = "numeric"
    LEXICOGRAPHIC = "lexicographic"

    @property
    def null_version(self) -> Version:
        """The version an absent channel is compared as."""
        if self is VersionDomain.NUMERIC:
            return 0
        return ""

    def contains(self, version: Any) -> bool:
        """Check whether a value is a version of this domain."""
        if self is VersionDomain.NUMERIC:
            return isinstance(version, (int, float)) and not isinstance(version, bool)
        return isinstance(version, str)

    def validate(self, version: Any) -> Version:
        """Return the version unchanged, or raise if it belongs to another domain."""
        if not self.contains(version):
            raise VersionTypeMismatchError(
                f"Version {version!r} of type {type(version).__name__} "
                f"is not a {self.value} version"
            )
        return version

    def next_version(self, current: Version | None) -> Version:
        """
        Return the version that follows current.

        NUMERIC: current + 1, starting at 1.
        LEXICOGRAPHIC: "<32-digit counter>.<xxh64 of counter>", starting at
        counter 1. The suffix is derived from the counter so every channel
        bumped from the same current version gets the same next version.

        Raises:
            VersionTypeMismatchError: current is not a version of this domain,
                or is a string this domain did not produce
        """
        if current is not None:
            self.validate(current)

        if self is VersionDomain.NUMERIC:
            return int(current) + 1 if current is not None else 1

        counter = _parse_counter(current) + 1
        digits = f"{counter:0{_COUNTER_WIDTH}d}"
        return f"{digits}.{xxhash.xxh64(digits.encode('utf-8')).hexdigest()}"

    @classmethod
    def infer(cls, versions: Iterable[Any]) -> VersionDomain | None:
        """
        Infer the domain from a collection of versions.

        Returns:
            The shared domain, or None when there are no versions

        Raises:
            VersionTypeMismatchError: versions mix numeric and string values
        """
        domain: VersionDomain | None = None
        for version in versions:
            if VersionDomain.NUMERIC.contains(version):
                found = VersionDomain.NUMERIC
            elif VersionDomain.LEXICOGRAPHIC.contains(version):
                found = VersionDomain.LEXICOGRAPHIC
            else:
                raise VersionTypeMismatchError(
                    f"Unsupported version type {type(version).__name__}: {version!r}"
                )
            if domain is None:
                domain = found
            elif domain is not found:
                raise VersionTypeMismatchError(
                    f"Mixed version types: expected {domain.value}, got {version!r}"
                )
        return domain

    def __str__(self) -> str:
        return self.value


def _parse_counter(current: str | None) -> int:
    if not current:
        return 0
    head = current.split(".", 1)[0]
    if not head.isdigit():
        raise VersionTypeMismatchError(
            f"Lexicographic version {current!r} was not produced by this engine "
            "and cannot be advanced"
        )
    return int(head)


class VersionMap(Mapping[str, Version]):
    """
    Immutable snapshot of channel name -> version.

    Channels that were never written are absent, never present with a zero
    entry. All versions in one map belong to the same domain; construction
    fails fast otherwise.

    Example:
        ```python
        versions = VersionMap({"messages": 3, "query": 1})
        bumped = versions.with_version("query", 4)
        assert versions["query"] == 1 and bumped["query"] == 4
        ```
    """

    __slots__ = ("_versions", "_domain")

    def __init__(self, versions: Mapping[str, Version] | Iterable[tuple[str, Version]] = ()):
        data = dict(versions)
        self._domain = VersionDomain.infer(data.values())
        self._versions = data

    @property
    def domain(self) -> VersionDomain | None:
        """Domain shared by all entries, or None when the map is empty."""
        return self._domain

    def __getitem__(self, channel: str) -> Version:
        return self._versions[channel]

    def __iter__(self) -> Iterator[str]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def __hash__(self) -> int:
        return hash(frozenset(self._versions.items()))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, VersionMap):
            return self._versions == other._versions
        if isinstance(other, Mapping):
            return self._versions == dict(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"VersionMap({self._versions!r})"

    def with_version(self, channel: str, version: Version) -> VersionMap:
        """Return a new map with one channel set to version."""
        return VersionMap({**self._versions, channel: version})

    def max_version(self) -> Version | None:
        """Highest version in the map, or None when empty."""
        return max(self._versions.values()) if self._versions else None

    def to_dict(self) -> dict[str, Version]:
        """Plain dict copy, for handing to a checkpoint store."""
        return dict(self._versions)


def null_channel_version(current: Mapping[str, Version]) -> Version | None:
    """
    Get the null version for a set of current versions.

    The null version is what an absent channel compares as: 0 for numeric
    versions, "" for string versions, None when there is nothing to infer
    the type from.
    """
    domain = current.domain if isinstance(current, VersionMap) else VersionDomain.infer(
        current.values()
    )
    return domain.null_version if domain is not None else None


def get_new_channel_versions(
    previous: Mapping[str, Version], current: Mapping[str, Version]
) -> VersionMap:
    """
    Return the entries of current whose version advanced since previous.

    1. previous is empty: everything in current is new (bootstrap).
    2. Otherwise an entry is new when its version is strictly greater than
       the previous version, with channels absent from previous compared
       against the null version inferred from current.
    3. current is empty: the null version is unresolved and nothing is new.

    Pure function: identical inputs always give identical results.

    Args:
        previous: Versions at the earlier point (e.g. the resumed checkpoint)
        current: Versions at the later point

    Returns:
        The newly advanced subset of current

    Raises:
        VersionTypeMismatchError: previous and current use different domains

    Example:
        ```python
        get_new_channel_versions({"a": 1, "b": 5}, {"a": 1, "b": 6, "c": 1})
        # VersionMap({"b": 6, "c": 1})
        ```
    """
    previous = previous if isinstance(previous, VersionMap) else VersionMap(previous)
    current = current if isinstance(current, VersionMap) else VersionMap(current)

    if not previous:
        return current

    null_version = null_channel_version(current)
    if null_version is None:
        return VersionMap()

    if previous.domain is not current.domain:
        raise VersionTypeMismatchError(
            f"Cannot compare {previous.domain} versions with {current.domain} versions"
        )

    return VersionMap(
        (channel, version)
        for channel, version in current.items()
        if version > previous.get(channel, null_version)
    )
