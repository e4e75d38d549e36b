"""
Pytest configuration and fixtures for pychannels tests.

Provides reusable channel sets, engines, and hypothesis strategies.
"""

import pytest
from hypothesis import strategies as st

from pychannels import Channel, Entry, ReducerKind, StateEngine, VersionDomain


@pytest.fixture
def chat_channels() -> list[Channel]:
    """Message history plus two scalar channels."""
    return [
        Channel("messages", ReducerKind.IDENTITY_SEQUENCE),
        Channel("query"),
        Channel("log", ReducerKind.APPEND),
    ]


@pytest.fixture
def engine(chat_channels) -> StateEngine:
    """Numeric-version engine defaulting to the messages channel."""
    return StateEngine(chat_channels, default_channel="messages")


@pytest.fixture
def string_engine(chat_channels) -> StateEngine:
    """Lexicographic-version engine defaulting to the messages channel."""
    return StateEngine(
        chat_channels, domain=VersionDomain.LEXICOGRAPHIC, default_channel="messages"
    )


@pytest.fixture
def history() -> list[dict]:
    """Two-entry message history in mapping form."""
    return [{"id": "1", "content": "a"}, {"id": "2", "content": "b"}]


# Hypothesis strategies for property-based testing

channel_names = st.text(
    min_size=1, max_size=8, alphabet=st.characters(whitelist_categories=("Ll",))
)

numeric_version_maps = st.dictionaries(
    channel_names, st.integers(min_value=1, max_value=1000), max_size=10
)

string_version_maps = st.dictionaries(
    channel_names,
    st.text(min_size=1, max_size=6, alphabet="abcdefghij0123456789"),
    max_size=10,
)


@st.composite
def entry_batches(draw):
    """A list of entries with unique ids and arbitrary content."""
    ids = draw(st.lists(st.uuids().map(str), min_size=0, max_size=15, unique=True))
    return [Entry(draw(st.integers()), id=entry_id) for entry_id in ids]
