"""Tests for Channel reducers, versioning and compute_version_map."""

import operator

import pytest

from pychannels import (
    Channel,
    EmptyChannelError,
    Entry,
    InvalidUpdateError,
    ReducerKind,
    RemoveEntry,
    UnknownIdentityDeletionError,
    VersionTypeMismatchError,
    compute_version_map,
)
from pychannels.core import MISSING, StepMetadata, UpdateRecord


def test_last_value_channel():
    channel = Channel("query")
    assert not channel.is_available()
    assert channel.version is None

    assert channel.apply(["q1"], next_version=1) == "q1"
    assert channel.value == "q1"
    assert channel.version == 1

    channel.apply(["q2"], next_version=2)
    assert channel.value == "q2"
    assert channel.version == 2


def test_last_value_rejects_two_writes_in_one_step():
    channel = Channel("query")
    with pytest.raises(InvalidUpdateError) as exc_info:
        channel.apply(["a", "b"], next_version=1)

    assert exc_info.value.channel == "query"
    assert "query" in str(exc_info.value)
    assert not channel.is_available()
    assert channel.version is None


def test_empty_update_list_is_a_noop():
    channel = Channel("query")
    channel.apply(["q"], next_version=3)

    assert channel.apply([], next_version=4) == "q"
    assert channel.version == 3


def test_empty_update_list_on_unwritten_channel_returns_missing():
    channel = Channel("query")
    assert channel.apply([], next_version=1) is MISSING
    assert channel.version is None


def test_empty_channel_read_raises():
    with pytest.raises(EmptyChannelError):
        Channel("query").value


def test_default_value_is_readable_but_unversioned():
    channel = Channel("count", default=0)
    assert channel.value == 0
    assert channel.version is None
    assert compute_version_map([channel]) == {}


def test_append_channel():
    channel = Channel("log", ReducerKind.APPEND)
    assert channel.value == []

    channel.apply([["a", "b"], "c"], next_version=1)
    assert channel.apply([("d",)], next_version=2) == ["a", "b", "c", "d"]

    assert channel.value == ["a", "b", "c", "d"]


def test_custom_channel():
    channel = Channel("total", ReducerKind.CUSTOM, reducer=operator.add)
    channel.apply([1, 2, 3], next_version=1)
    assert channel.apply([10], next_version=2) == 16
    assert channel.value == 16


def test_custom_channel_requires_reducer():
    with pytest.raises(ValueError):
        Channel("total", ReducerKind.CUSTOM)
    with pytest.raises(ValueError):
        Channel("total", ReducerKind.APPEND, reducer=operator.add)


def test_identity_sequence_channel():
    channel = Channel("messages", ReducerKind.IDENTITY_SEQUENCE)
    channel.apply([[Entry("a", id="1"), Entry("b", id="2")]], next_version=1)
    channel.apply([[RemoveEntry("1"), Entry("B", id="2")]], next_version=2)

    assert channel.value == [Entry("B", id="2")]


def test_identity_sequence_failure_leaves_channel_untouched():
    channel = Channel("messages", ReducerKind.IDENTITY_SEQUENCE)
    channel.apply([[Entry("a", id="1")]], next_version=1)

    with pytest.raises(UnknownIdentityDeletionError):
        channel.apply([[Entry("b", id="2")], [RemoveEntry("missing")]], next_version=2)

    assert channel.value == [Entry("a", id="1")]
    assert channel.version == 1


def test_update_records_seed_deterministic_ids():
    metadata = StepMetadata(step=1, node="agent", triggers=("start",), task_index=0)
    first = Channel("messages", ReducerKind.IDENTITY_SEQUENCE)
    second = Channel("messages", ReducerKind.IDENTITY_SEQUENCE)

    first.apply([UpdateRecord("messages", ["hi", "there"], metadata)], next_version=1)
    second.apply([UpdateRecord("messages", ["hi", "there"], metadata)], next_version=1)

    assert first.value == second.value
    assert [e.content for e in first.value] == ["hi", "there"]
    assert first.value[0].id != first.value[1].id


def test_version_never_moves_backwards():
    channel = Channel("query")
    channel.apply(["a"], next_version=5)

    with pytest.raises(ValueError):
        channel.apply(["b"], next_version=5)
    with pytest.raises(ValueError):
        channel.apply(["b"], next_version=4)
    assert channel.value == "a"


def test_version_type_change_raises():
    channel = Channel("query")
    channel.apply(["a"], next_version=1)

    with pytest.raises(VersionTypeMismatchError):
        channel.apply(["b"], next_version="2")


def test_merge_is_pure():
    channel = Channel("log", ReducerKind.APPEND)
    channel.apply([["a"]], next_version=1)

    merged = channel.merge(channel.checkpoint(), [["b"]])

    assert merged == ["a", "b"]
    assert channel.value == ["a"]
    assert channel.version == 1


def test_from_checkpoint_keeps_configuration():
    channel = Channel("total", ReducerKind.CUSTOM, reducer=operator.add)
    restored = channel.from_checkpoint(10, 4)

    assert restored.value == 10
    assert restored.version == 4
    restored.apply([5], next_version=5)
    assert restored.value == 15
    assert channel.checkpoint() is MISSING


def test_compute_version_map_skips_uninitialized_channels():
    written = Channel("a")
    written.apply([1], next_version=3)
    untouched = Channel("b")

    versions = compute_version_map({"a": written, "b": untouched})

    assert versions == {"a": 3}
    assert "b" not in versions


def test_copy_is_independent():
    channel = Channel("log", ReducerKind.APPEND)
    channel.apply([["a"]], next_version=1)

    copied = channel.copy()
    copied.apply([["b"]], next_version=2)

    assert (copied.kind, copied.value, copied.version) == (ReducerKind.APPEND, ["a", "b"], 2)
    assert channel.value == ["a"]
    assert channel.version == 1


def test_check_version_does_not_commit():
    channel = Channel("query")
    channel.apply(["a"], next_version=2)

    channel.check_version(3)
    with pytest.raises(ValueError):
        channel.check_version(2)
    assert channel.version == 2
