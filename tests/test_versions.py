"""Tests for version domains, VersionMap and the new-versions diff."""

import pytest

from pychannels import (
    VersionDomain,
    VersionMap,
    VersionTypeMismatchError,
    get_new_channel_versions,
    null_channel_version,
)

# ==============================================================================
# get_new_channel_versions
# ==============================================================================


def test_bootstrap_returns_current():
    """With no previous versions, everything current is new."""
    current = {"a": 1, "b": 2}
    assert get_new_channel_versions({}, current) == {"a": 1, "b": 2}


def test_strict_greater_filter():
    """Unchanged channels are dropped, advanced and unseen channels are kept."""
    result = get_new_channel_versions({"a": 1, "b": 5}, {"a": 1, "b": 6, "c": 1})
    assert result == {"b": 6, "c": 1}


def test_string_domain_uses_empty_string_null():
    result = get_new_channel_versions({"a": "m"}, {"a": "m", "b": "a"})
    assert result == {"b": "a"}


def test_empty_current_yields_nothing():
    """Null version cannot be inferred from an empty map, so nothing is new."""
    result = get_new_channel_versions({"a": 1}, {})
    assert result == {}
    assert isinstance(result, VersionMap)


def test_older_current_version_is_not_new():
    """A version that moved backwards is never reported as new."""
    assert get_new_channel_versions({"a": 5}, {"a": 3}) == {}


def test_diff_is_idempotent():
    previous = VersionMap({"a": 2, "b": 7})
    current = VersionMap({"a": 3, "b": 7, "c": 1})
    first = get_new_channel_versions(previous, current)
    second = get_new_channel_versions(previous, current)
    assert first == second == {"a": 3, "c": 1}


def test_mixed_domains_raise():
    with pytest.raises(VersionTypeMismatchError):
        get_new_channel_versions({"a": 1}, {"a": "2"})


# ==============================================================================
# null_channel_version
# ==============================================================================


@pytest.mark.parametrize(
    "current, expected",
    [({"a": 4}, 0), ({"a": "00.x"}, ""), ({}, None)],
)
def test_null_channel_version(current, expected):
    assert null_channel_version(current) == expected
    assert null_channel_version(VersionMap(current)) == expected


# ==============================================================================
# VersionMap
# ==============================================================================


def test_version_map_is_immutable_and_hashable():
    versions = VersionMap({"a": 1})
    bumped = versions.with_version("a", 2)

    assert versions["a"] == 1
    assert bumped["a"] == 2
    assert hash(VersionMap({"a": 1})) == hash(versions)
    with pytest.raises(TypeError):
        versions["a"] = 3  # type: ignore[index]


def test_version_map_rejects_mixed_types():
    with pytest.raises(VersionTypeMismatchError):
        VersionMap({"a": 1, "b": "1"})


def test_version_map_rejects_bool_versions():
    with pytest.raises(VersionTypeMismatchError):
        VersionMap({"a": True})


def test_version_map_domain_and_max():
    assert VersionMap().domain is None
    assert VersionMap().max_version() is None
    assert VersionMap({"a": 3, "b": 9}).domain is VersionDomain.NUMERIC
    assert VersionMap({"a": 3, "b": 9}).max_version() == 9
    assert VersionMap({"a": "x"}).domain is VersionDomain.LEXICOGRAPHIC


def test_version_map_to_dict_is_a_copy():
    versions = VersionMap({"a": 1})
    copy = versions.to_dict()
    copy["a"] = 99
    assert versions["a"] == 1


# ==============================================================================
# VersionDomain
# ==============================================================================


def test_numeric_next_version():
    domain = VersionDomain.NUMERIC
    assert domain.next_version(None) == 1
    assert domain.next_version(1) == 2
    assert domain.null_version == 0


def test_lexicographic_next_version_sorts_later():
    domain = VersionDomain.LEXICOGRAPHIC
    versions = [domain.next_version(None)]
    for _ in range(12):
        versions.append(domain.next_version(versions[-1]))

    assert versions == sorted(versions)
    assert len(set(versions)) == len(versions)
    assert all(v > domain.null_version for v in versions)


def test_lexicographic_next_version_is_deterministic():
    domain = VersionDomain.LEXICOGRAPHIC
    first = domain.next_version(None)
    assert domain.next_version(None) == first
    assert domain.next_version(first) == domain.next_version(first)


def test_lexicographic_rejects_foreign_strings():
    with pytest.raises(VersionTypeMismatchError):
        VersionDomain.LEXICOGRAPHIC.next_version("m")


def test_next_version_rejects_wrong_domain():
    with pytest.raises(VersionTypeMismatchError):
        VersionDomain.NUMERIC.next_version("1")
    with pytest.raises(VersionTypeMismatchError):
        VersionDomain.LEXICOGRAPHIC.next_version(1)


def test_infer():
    assert VersionDomain.infer([]) is None
    assert VersionDomain.infer([1, 2.5]) is VersionDomain.NUMERIC
    assert VersionDomain.infer(["a"]) is VersionDomain.LEXICOGRAPHIC
    with pytest.raises(VersionTypeMismatchError):
        VersionDomain.infer([1, "a"])
    with pytest.raises(VersionTypeMismatchError):
        VersionDomain.infer([None])
